# lease.py

"""
Client side of the lease protocol.

A handle keeps the token it was last granted and presents it as ``old_token``
on the next acquire, which lets the current holder renew (reentrant) while
everyone else must wait for the TTL to run out on the store's clock.

Usage:
    lease = new_lease("job42", "owner", store, ttl_ms=30_000)
    grant = lease.acquire()
    if grant:
        # critical section; finish well within grant.remaining_ms
        ...
    lease.release()

Mutual exclusion is only as good as the clocks involved: a holder that stalls
longer than its TTL can still believe it holds the lease. Pass the token on to
whatever performs the side effect so it can reject stale holders.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Literal, Optional, Union

from .errors import LeaseNotAcquired
from .store import LeaseStore, SetResult

logger = logging.getLogger(__name__)


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


@dataclass(frozen=True)
class LeaseGrant:
    """A successful acquire: the fencing token and how long it is safe to rely on it."""
    token: uuid.UUID
    remaining_ms: int


class LeaseState:
    """The token a single handle believes it holds. Never persisted."""

    def __init__(self):
        self._lock = threading.Lock()
        self._token: Optional[uuid.UUID] = None

    @property
    def token(self) -> Optional[uuid.UUID]:
        with self._lock:
            return self._token

    def set(self, token: uuid.UUID):
        with self._lock:
            self._token = token

    def clear(self) -> Optional[uuid.UUID]:
        with self._lock:
            token, self._token = self._token, None
            return token


class LeaseHandle:
    """
    Lease on one attribute of one resource.

    Parameters:
        resource_id (str): resource the lease guards
        attribute (str): attribute holding the holder token
        store (LeaseStore): conditional transaction executor
        ttl_ms (int): lease time-to-live in milliseconds
        clock: local monotonic clock in ms, used only for the safety margin
        token_factory: source of fresh fencing tokens
    """

    def __init__(
        self,
        resource_id: str,
        attribute: str,
        store: LeaseStore,
        ttl_ms: int,
        clock: Callable[[], int] = _monotonic_ms,
        token_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self.resource_id = resource_id
        self.attribute = attribute
        self.store = store
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._token_factory = token_factory
        self._state = LeaseState()

    @property
    def token(self) -> Optional[uuid.UUID]:
        """Token from the last committed acquire, or None."""
        return self._state.token

    def acquire(self) -> Union[LeaseGrant, Literal[False]]:
        """
        Acquire the lease, or renew it if this handle already holds it.

        Returns a LeaseGrant, or False if someone else holds an unexpired
        lease or the round trip ate the whole TTL.
        """
        new_token = self._token_factory()
        old_token = self._state.token
        start = self._clock()

        result = self.store.conditional_set(
            self.resource_id, self.attribute, old_token, new_token, self.ttl_ms
        )
        if result is SetResult.NOT_EXPIRED:
            logger.debug("Lease %s/%s is held by someone else", self.resource_id, self.attribute)
            return False

        # The write committed; keep the token even if the margin below fails,
        # so the next acquire renews it and release can retract it.
        self._state.set(new_token)
        remaining_ms = (start + self.ttl_ms) - self._clock()
        if remaining_ms <= 0:
            logger.warning(
                "Lease %s/%s acquired but already expired locally (%d ms late)",
                self.resource_id, self.attribute, -remaining_ms,
            )
            return False

        logger.info(
            "Lease %s/%s %s by %s (%d ms remaining)",
            self.resource_id, self.attribute,
            "renewed" if old_token is not None else "acquired",
            new_token, remaining_ms,
        )
        return LeaseGrant(token=new_token, remaining_ms=remaining_ms)

    def release(self) -> Literal[True]:
        """
        Give the lease back if this handle still holds it in the store.

        Always returns True: a lease already seized by another holder is left
        alone and the local token is dropped either way.
        """
        token = self._state.token
        try:
            if token is not None:
                retracted = self.store.retract_if_match(self.resource_id, self.attribute, token)
                if retracted:
                    logger.info("Lease %s/%s released by %s", self.resource_id, self.attribute, token)
                else:
                    logger.debug(
                        "Lease %s/%s no longer held by %s; nothing to release",
                        self.resource_id, self.attribute, token,
                    )
        finally:
            self._state.clear()
        return True

    def is_held(self) -> bool:
        """True if the store still records this handle's token as the holder."""
        token = self._state.token
        if token is None:
            return False
        record = self.store.read(self.resource_id, self.attribute)
        return record is not None and record.holder_token == token

    def __enter__(self):
        grant = self.acquire()
        if not grant:
            raise LeaseNotAcquired(f"lease {self.resource_id}/{self.attribute} is held elsewhere")
        return grant

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


def new_lease(
    resource_id: str,
    attribute: str,
    store: LeaseStore,
    ttl_ms: int,
    **kwargs,
) -> LeaseHandle:
    """
    Make sure the store can run the lease operations, then return a handle.

    Extra keyword arguments (``clock``, ``token_factory``) go to LeaseHandle.
    """
    if not resource_id or not attribute:
        raise ValueError("resource_id and attribute must be non-empty")
    if ttl_ms <= 0:
        raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")
    if not store.functions_installed():
        store.install_functions()
    return LeaseHandle(resource_id, attribute, store, ttl_ms, **kwargs)
