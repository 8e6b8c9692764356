# __main__.py

import sys

from .config import get_settings
from .etcd_store import connect
from .lease import new_lease
from .log import configure_logging


def main(argv=None):
    """Acquire a lease on etcd, check it, and release it."""
    argv = sys.argv[1:] if argv is None else argv
    resource = argv[0] if len(argv) > 0 else "demo"
    attribute = argv[1] if len(argv) > 1 else "owner"

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)

    store = connect(settings)
    lease = new_lease(resource, attribute, store, settings.default_ttl_ms)
    grant = lease.acquire()
    if not grant:
        print(f"Lease {resource}/{attribute} is not held")
        # a write that committed too late is still ours to retract
        lease.release()
        return 1
    print("Acquired lease as", grant.token, "with", grant.remaining_ms, "ms remaining")
    if not lease.is_held():
        raise RuntimeError("Oops, we lost the lease!")
    print("Lease is still held")
    lease.release()
    print("Released lease")
    return 0


if __name__ == "__main__":
    sys.exit(main())
