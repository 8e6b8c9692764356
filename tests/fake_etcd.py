"""
Minimal in-memory stand-in for the parts of ``etcd3.Etcd3Client`` the lease
store uses: get, lease, revoke_lease, transaction and the transactions helpers.
"""

import itertools
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class FakeMeta:
    create_revision: int
    mod_revision: int
    lease_id: int


@dataclass
class FakeLease:
    id: int
    ttl: int


def _to_bytes(value) -> bytes:
    return value if isinstance(value, bytes) else str(value).encode()


class _Compare:
    def __init__(self, key, field, expected):
        self.key = key
        self.field = field
        self.expected = expected

    def holds(self, client) -> bool:
        entry = client.kv.get(self.key)
        if self.field == "create":
            return (entry[1].create_revision if entry else 0) == self.expected
        if self.field == "mod":
            return (entry[1].mod_revision if entry else 0) == self.expected
        return entry is not None and entry[0] == _to_bytes(self.expected)


class _Target:
    def __init__(self, key, field):
        self.key = key
        self.field = field

    def __eq__(self, other):
        return _Compare(self.key, self.field, other)


class _Put:
    def __init__(self, key, value, lease=None):
        self.key = key
        self.value = value
        self.lease_id = getattr(lease, "id", lease) or 0

    def apply(self, client):
        client.put(self.key, self.value, self.lease_id)


class _Delete:
    def __init__(self, key):
        self.key = key

    def apply(self, client):
        client.kv.pop(self.key, None)


class _Transactions:
    def create(self, key):
        return _Target(key, "create")

    def mod(self, key):
        return _Target(key, "mod")

    def value(self, key):
        return _Target(key, "value")

    def put(self, key, value, lease=None):
        return _Put(key, value, lease)

    def delete(self, key):
        return _Delete(key)


class FakeEtcdClient:
    def __init__(self):
        self.kv: Dict[str, tuple] = {}
        self.leases: Dict[int, FakeLease] = {}
        self.revoked = []
        self.transactions = _Transactions()
        self.transaction_count = 0
        # called with the client right before each transaction is evaluated
        self.before_transaction: Optional[Callable] = None
        self._revision = itertools.count(1)
        self._lease_ids = itertools.count(100)

    def get(self, key):
        entry = self.kv.get(key)
        if entry is None:
            return None, None
        return entry

    def put(self, key, value, lease_id=0):
        revision = next(self._revision)
        existing = self.kv.get(key)
        created = existing[1].create_revision if existing else revision
        self.kv[key] = (_to_bytes(value), FakeMeta(created, revision, lease_id))

    def lease(self, ttl):
        lease = FakeLease(next(self._lease_ids), ttl)
        self.leases[lease.id] = lease
        return lease

    def revoke_lease(self, lease_id):
        if lease_id not in self.leases:
            raise Exception("etcdserver: requested lease not found")
        self.expire_lease(lease_id)
        self.revoked.append(lease_id)

    def expire_lease(self, lease_id):
        """Drop the lease and every key attached to it, as the etcd server would."""
        self.leases.pop(lease_id, None)
        for key in [k for k, (_, meta) in self.kv.items() if meta.lease_id == lease_id]:
            del self.kv[key]

    def transaction(self, compare, success, failure):
        self.transaction_count += 1
        if self.before_transaction is not None:
            self.before_transaction(self)
        ok = all(c.holds(self) for c in compare)
        for op in success if ok else failure:
            op.apply(self)
        return ok, []
