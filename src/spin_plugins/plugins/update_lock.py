"""Process-wide guard against concurrent registry updates."""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)

_REGISTRY_UPDATE_LOCK = threading.Lock()


class UpdateLockGuard:
    """Result of a non-blocking attempt to take the update lock.

    The lock is released when the guard is dropped, or explicitly on leaving
    a ``with`` block::

        with UpdateLock().lock_updates() as guard:
            if guard.denied():
                raise LockDeniedError(...)
            ...
    """

    def __init__(self, lock: threading.Lock) -> None:
        self._lock = lock
        self._held = lock.acquire(blocking=False)
        if not self._held:
            logger.debug("Registry update lock is already held")

    def denied(self) -> bool:
        """True if another update already held the lock."""
        return not self._held

    def release(self) -> None:
        """Release the lock if this guard holds it. Safe to call repeatedly."""
        if self._held:
            self._held = False
            self._lock.release()

    def __enter__(self) -> UpdateLockGuard:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __del__(self) -> None:
        if getattr(self, "_held", False):
            self.release()


class UpdateLock:
    """Single-process advisory lock for registry mirror updates.

    Separate processes are not coordinated by this lock.
    """

    def __init__(self, lock: threading.Lock | None = None) -> None:
        self._lock = lock or _REGISTRY_UPDATE_LOCK

    def lock_updates(self) -> UpdateLockGuard:
        """Try to take the lock without waiting."""
        return UpdateLockGuard(self._lock)
