"""Per-path mutual exclusion for tool invocations against one worktree.

Git mutates the index and refs of a working directory without coordinating
between concurrent invocations, so everything that shells out against a
given worktree path (publication, manual commit, automated execution) takes
that path's lock first. Different paths never contend.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Dict, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class PathLocks:
    """Registry of one lock per resolved filesystem path."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @staticmethod
    def _key(path: PathLike) -> str:
        return str(Path(path).expanduser().resolve())

    def lock_for(self, path: PathLike) -> threading.Lock:
        """Return the lock guarding ``path``, creating it on first use."""
        key = self._key(path)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def is_locked(self, path: PathLike) -> bool:
        return self.lock_for(path).locked()

    @contextmanager
    def hold(self, path: PathLike):
        """Block until ``path`` is free, then hold it for the ``with`` body."""
        lock = self.lock_for(path)
        if lock.locked():
            logger.debug(f"Waiting for lock on {path}")
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    @asynccontextmanager
    async def hold_async(self, path: PathLike):
        """Async variant of :meth:`hold`; waits in a worker thread.

        Threading locks may be released from any thread, so a lock taken
        here also serializes against :meth:`hold` callers running in the
        server's thread pool.
        """
        lock = self.lock_for(path)
        acquiring = asyncio.ensure_future(asyncio.to_thread(lock.acquire))
        try:
            await asyncio.shield(acquiring)
        except asyncio.CancelledError:
            # The worker thread still ends up owning the lock; hand it back.
            acquiring.add_done_callback(lambda _: lock.release())
            raise
        try:
            yield
        finally:
            lock.release()
