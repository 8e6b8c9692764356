# memory.py

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .errors import InvalidNewValue, StoreUnavailable
from .store import LeaseRecord, SetResult

logger = logging.getLogger(__name__)


def _wall_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass
class _Entry:
    token: uuid.UUID
    written_at_ms: int
    revision: int


class MemoryLeaseStore:
    """
    In-process lease store.

    Every operation runs under one lock, so each conditional write sees a
    consistent snapshot. ``clock`` plays the role of the server's
    transaction timestamp and can be swapped for a manual clock in tests.

    Setting ``available = False`` makes every call raise StoreUnavailable.
    """

    def __init__(self, clock: Callable[[], int] = _wall_ms):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, str], _Entry] = {}
        self._revision = 0
        self._installed = False
        self.install_count = 0
        self.available = True

    def _check_available(self):
        if not self.available:
            raise StoreUnavailable("memory lease store is unavailable")

    def functions_installed(self) -> bool:
        self._check_available()
        return self._installed

    def install_functions(self) -> None:
        self._check_available()
        with self._lock:
            if self._installed:
                return
            self._installed = True
            self.install_count += 1
        logger.info("Lease functions installed in memory store")

    def conditional_set(self, resource_id, attribute, old_token, new_token, ttl_ms) -> SetResult:
        self._check_available()
        key = (resource_id, attribute)
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            current = entry.token if entry else None
            if current == new_token:
                raise InvalidNewValue(f"new token {new_token} equals the stored token for {key}")
            if not (
                # free
                current is None
                # reentrant renewal
                or current == old_token
                # expired
                or entry.written_at_ms + ttl_ms < now
            ):
                return SetResult.NOT_EXPIRED
            self._revision += 1
            self._entries[key] = _Entry(new_token, now, self._revision)
            return SetResult.ACQUIRED

    def retract_if_match(self, resource_id, attribute, token) -> bool:
        self._check_available()
        key = (resource_id, attribute)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.token != token:
                return False
            del self._entries[key]
            return True

    def read(self, resource_id, attribute) -> Optional[LeaseRecord]:
        self._check_available()
        with self._lock:
            entry = self._entries.get((resource_id, attribute))
            if entry is None:
                return None
            return LeaseRecord(
                resource_id=resource_id,
                attribute=attribute,
                holder_token=entry.token,
                written_at_ms=entry.written_at_ms,
                revision=entry.revision,
            )
