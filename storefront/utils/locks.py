import os
from contextlib import ExitStack, contextmanager
from typing import Iterable, Iterator, Optional

from filelock import FileLock, Timeout

from storefront.config import settings
from storefront.errors import LockTimeout


def cart_lock_name(user_id: str) -> str:
    return f"cart-{user_id}"


def product_lock_name(product_id: int) -> str:
    return f"product-{int(product_id):012d}"


def _lock_path(name: str) -> str:
    locks_dir = settings.LOCKS_DIR
    os.makedirs(locks_dir, exist_ok=True)
    safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in name)
    return os.path.join(locks_dir, f"{safe}.lock")


@contextmanager
def named_lock(name: str, timeout: Optional[float] = None) -> Iterator[None]:
    """
    Hold an inter-process lock identified by ``name``.

    SQLite ignores SELECT ... FOR UPDATE, so the file lock is what actually
    serializes writers there. On row-locking backends it simply sits in front
    of the row locks.
    """
    timeout = settings.LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    lock = FileLock(_lock_path(name))
    try:
        lock.acquire(timeout=timeout)
    except Timeout:
        raise LockTimeout(name)
    try:
        yield
    finally:
        lock.release()


@contextmanager
def ordered_locks(names: Iterable[str], timeout: Optional[float] = None) -> Iterator[None]:
    """
    Acquire several named locks.

    Cart locks always come before product locks and product locks are taken
    in ascending product id, so two writers can never wait on each other.
    """
    ordered = sorted(set(names), key=lambda n: (not n.startswith("cart-"), n))
    with ExitStack() as stack:
        for name in ordered:
            stack.enter_context(named_lock(name, timeout=timeout))
        yield
