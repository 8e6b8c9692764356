"""Errors raised by the lease protocol and its store backends."""


class LeaseError(RuntimeError):
    """Base error for lease operations."""


class InvalidNewValue(LeaseError):
    """
    The freshly generated token equals the token already stored.

    This only happens when token generation is broken, so it is never
    treated as a normal contention outcome.
    """


class StoreUnavailable(LeaseError):
    """The store could not be reached or refused the operation."""


class TransactionConflict(LeaseError):
    """Optimistic retries were exhausted while other writers kept winning."""


class LeaseNotAcquired(LeaseError):
    """Raised when entering a lease as a context manager and it is held elsewhere."""
