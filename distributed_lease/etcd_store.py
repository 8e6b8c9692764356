# etcd_store.py

import logging
import math
import uuid
from typing import Optional

import etcd3

from .config import LeaseSettings, get_settings
from .errors import InvalidNewValue, TransactionConflict
from .store import LeaseRecord, SetResult

logger = logging.getLogger(__name__)

# Bumped whenever the key layout below changes.
PROTOCOL_VERSION = "1"


def ttl_seconds(ttl_ms: int) -> int:
    """etcd leases have whole-second TTLs; round up so a lease never ends early."""
    return max(1, math.ceil(ttl_ms / 1000))


def safe_revoke(client, lease_id: int):
    """
    Try to revoke an etcd lease, but never fail the caller over it.

    Every revoke here is cleanup of a lease with no live key attached; if it
    survives, etcd drops it when its TTL runs out.
    """
    try:
        client.revoke_lease(lease_id)
        logger.debug("etcd lease %s revoked", lease_id)
    except Exception as e:
        # etcd returns an error if the lease is not found (already expired)
        if "requested lease not found" not in str(e):
            logger.error("Error revoking etcd lease %s: %s", lease_id, e)
        else:
            logger.warning("etcd lease %s not found (already expired)", lease_id)


class EtcdLeaseStore:
    """
    Lease store on etcd v3.

    The holder token lives at ``{key_prefix}/{resource_id}/{attribute}`` and is
    attached to an etcd lease of the requested TTL, so the etcd server (never
    the client) decides when a holder has expired: the key simply disappears.
    etcd cannot run caller-supplied logic inside a transaction, so the
    conditional set reads the key, decides, and commits with a revision guard,
    re-reading whenever another writer got in between.
    """

    def __init__(self, client, key_prefix: str = "/leases", max_cas_retries: int = 16):
        self.client = client
        self.key_prefix = key_prefix.rstrip("/")
        self.max_cas_retries = max_cas_retries

    def _key(self, resource_id: str, attribute: str) -> str:
        return f"{self.key_prefix}/{resource_id}/{attribute}"

    @property
    def functions_key(self) -> str:
        return f"{self.key_prefix}/_functions"

    def functions_installed(self) -> bool:
        value, _ = self.client.get(self.functions_key)
        return value is not None

    def install_functions(self) -> None:
        key = self.functions_key
        installed, _ = self.client.transaction(
            compare=[self.client.transactions.create(key) == 0],
            success=[self.client.transactions.put(key, PROTOCOL_VERSION)],
            failure=[],
        )
        if installed:
            logger.info("Lease functions installed under %s (version %s)", key, PROTOCOL_VERSION)
        else:
            logger.debug("Lease functions already installed under %s", key)

    def conditional_set(self, resource_id, attribute, old_token, new_token, ttl_ms) -> SetResult:
        key = self._key(resource_id, attribute)
        for attempt in range(1, self.max_cas_retries + 1):
            value, meta = self.client.get(key)
            current = uuid.UUID(value.decode()) if value is not None else None

            if current == new_token:
                raise InvalidNewValue(f"new token {new_token} equals the stored token at {key}")
            if current is None:
                # Never written, released, or its etcd lease ran out.
                compare = [self.client.transactions.create(key) == 0]
            elif current == old_token:
                compare = [self.client.transactions.mod(key) == meta.mod_revision]
            else:
                return SetResult.NOT_EXPIRED

            lease = self.client.lease(ttl_seconds(ttl_ms))
            logger.debug("Granted etcd lease %s (%ss) for %s", lease.id, ttl_seconds(ttl_ms), key)
            try:
                committed, _ = self.client.transaction(
                    compare=compare,
                    success=[self.client.transactions.put(key, str(new_token), lease)],
                    failure=[],
                )
            except Exception:
                safe_revoke(self.client, lease.id)
                raise
            if committed:
                if meta is not None and meta.lease_id:
                    # The previous holder's etcd lease no longer has keys attached.
                    safe_revoke(self.client, meta.lease_id)
                return SetResult.ACQUIRED

            logger.debug("Conditional set on %s lost a race (attempt %d); retrying", key, attempt)
            safe_revoke(self.client, lease.id)

        raise TransactionConflict(
            f"conditional set on {key} did not commit after {self.max_cas_retries} attempts"
        )

    def retract_if_match(self, resource_id, attribute, token) -> bool:
        key = self._key(resource_id, attribute)
        value, meta = self.client.get(key)
        if value is None or value.decode() != str(token):
            return False
        deleted, _ = self.client.transaction(
            compare=[self.client.transactions.value(key) == str(token)],
            success=[self.client.transactions.delete(key)],
            failure=[],
        )
        if deleted and meta.lease_id:
            safe_revoke(self.client, meta.lease_id)
        return deleted

    def read(self, resource_id, attribute) -> Optional[LeaseRecord]:
        value, meta = self.client.get(self._key(resource_id, attribute))
        if value is None:
            return None
        return LeaseRecord(
            resource_id=resource_id,
            attribute=attribute,
            holder_token=uuid.UUID(value.decode()),
            revision=meta.mod_revision,
        )


def connect(settings: Optional[LeaseSettings] = None) -> EtcdLeaseStore:
    """Build an EtcdLeaseStore from settings (environment by default)."""
    settings = settings or get_settings()
    client = etcd3.client(
        host=settings.etcd_host,
        port=settings.etcd_port,
        timeout=settings.etcd_timeout,
    )
    return EtcdLeaseStore(
        client,
        key_prefix=settings.key_prefix,
        max_cas_retries=settings.max_cas_retries,
    )
