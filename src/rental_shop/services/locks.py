"""Per-shop write locks.

All booking writes for one shop run under the same re-entrant lock so the
"load snapshot, check, commit" sequence cannot interleave between threads.
"""

from __future__ import annotations

import threading

_locks: dict[int, threading.RLock] = {}
_guard = threading.Lock()


def shop_lock(shop_id: int) -> threading.RLock:
    with _guard:
        lock = _locks.get(shop_id)
        if lock is None:
            lock = threading.RLock()
            _locks[shop_id] = lock
        return lock
