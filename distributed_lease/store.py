"""
Store-side half of the lease protocol.

A store executes two atomic operations against a single attribute of a
single resource, using its own clock as the time source:

- ``conditional_set``: write a new holder token if the record is free,
  still held by the caller, or its last write is older than the TTL.
- ``retract_if_match``: clear the holder token only if it still matches.

Backends: :class:`distributed_lease.memory.MemoryLeaseStore` and
:class:`distributed_lease.etcd_store.EtcdLeaseStore`.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

__all__ = [
    "SetResult",
    "LeaseRecord",
    "LeaseStore",
]


class SetResult(enum.Enum):
    """Outcome of a conditional set that did not fail outright."""

    ACQUIRED = "acquired"
    NOT_EXPIRED = "not_expired"


@dataclass(frozen=True)
class LeaseRecord:
    """
    Point-in-time view of the stored lease attribute.

    Attributes:
        resource_id: Resource the lease guards.
        attribute: Attribute of the resource holding the token.
        holder_token: Current holder, or None if nobody holds it.
        written_at_ms: Server commit time of the last write, if the store exposes it.
        revision: Store-assigned revision of the last write, if any.
    """
    resource_id: str
    attribute: str
    holder_token: Optional[uuid.UUID]
    written_at_ms: Optional[int] = None
    revision: Optional[int] = None


@runtime_checkable
class LeaseStore(Protocol):
    """Conditional transaction executor the lease handles talk to."""

    def functions_installed(self) -> bool:
        """Return True if the store is ready to run the conditional operations."""
        ...

    def install_functions(self) -> None:
        """Prepare the store for the conditional operations. Must be idempotent."""
        ...

    def conditional_set(
        self,
        resource_id: str,
        attribute: str,
        old_token: Optional[uuid.UUID],
        new_token: uuid.UUID,
        ttl_ms: int,
    ) -> SetResult:
        """
        Atomically replace the holder token with ``new_token``.

        Raises InvalidNewValue if ``new_token`` is already the stored value.
        """
        ...

    def retract_if_match(self, resource_id: str, attribute: str, token: uuid.UUID) -> bool:
        """Clear the holder token if it equals ``token``. Return True if cleared."""
        ...

    def read(self, resource_id: str, attribute: str) -> Optional[LeaseRecord]:
        """Return the current record, or None if no holder is stored."""
        ...
