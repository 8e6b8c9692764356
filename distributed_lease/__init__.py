"""Distributed leases on top of a store's atomic conditional writes."""

from .errors import (
    InvalidNewValue,
    LeaseError,
    LeaseNotAcquired,
    StoreUnavailable,
    TransactionConflict,
)
from .lease import LeaseGrant, LeaseHandle, LeaseState, new_lease
from .memory import MemoryLeaseStore
from .store import LeaseRecord, LeaseStore, SetResult

__all__ = [
    "InvalidNewValue",
    "LeaseError",
    "LeaseGrant",
    "LeaseHandle",
    "LeaseNotAcquired",
    "LeaseRecord",
    "LeaseState",
    "LeaseStore",
    "MemoryLeaseStore",
    "SetResult",
    "StoreUnavailable",
    "TransactionConflict",
    "new_lease",
]
