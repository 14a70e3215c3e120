"""Run features in the background, each in its own work directory.

The coordinator owns the set of running feature ids. Web handlers only ask
it to start work and read snapshots of that set.
"""

import asyncio
import logging
import threading
import time
from pathlib import Path
from typing import Callable, FrozenSet, Optional, Set, Tuple, Union

from ..store.feature_store import FeatureStore
from ..utils.rich_logging import ContextLogger
from ..utils.validators import validate_feature_id
from ..workspace.path_locks import PathLocks
from ..workspace.worktree_registry import (
    WorktreeConflictError,
    WorktreeNotFoundError,
    WorktreeRegistry,
)
from .config import OrchestratorConfig
from .executor import ExecutionRequest, FeatureExecutor
from .feature import FeatureStatus

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class FeatureAlreadyRunningError(RuntimeError):
    """The feature already has an execution in flight."""


class RunningFeatures:
    """Thread-safe set of feature ids with an execution in flight."""

    def __init__(self):
        self._ids: Set[str] = set()
        self._lock = threading.Lock()

    def add(self, feature_id: str) -> bool:
        """Insert ``feature_id``; False if it was already present."""
        with self._lock:
            if feature_id in self._ids:
                return False
            self._ids.add(feature_id)
            return True

    def discard(self, feature_id: str) -> None:
        with self._lock:
            self._ids.discard(feature_id)

    def __contains__(self, feature_id: object) -> bool:
        with self._lock:
            return feature_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def snapshot(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._ids)


class ExecutionCoordinator:
    """Starts feature executions and keeps their status records current."""

    def __init__(
        self,
        registry: WorktreeRegistry,
        executor: FeatureExecutor,
        running: Optional[RunningFeatures] = None,
        path_locks: Optional[PathLocks] = None,
        config: Optional[OrchestratorConfig] = None,
        store_factory: Optional[Callable[[Path], FeatureStore]] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.registry = registry
        self.executor = executor
        self.running = running if running is not None else RunningFeatures()
        self.path_locks = path_locks or registry.path_locks
        self.store_factory = store_factory or (lambda project: FeatureStore(project, self.config))
        self._tasks: Set[asyncio.Task] = set()

    def running_ids(self) -> FrozenSet[str]:
        return self.running.snapshot()

    def execute(
        self,
        project_path: PathLike,
        feature_id: str,
        use_isolated_copy: bool = True,
        existing_worktree_path: Optional[PathLike] = None,
    ) -> asyncio.Task:
        """
        Schedule a feature execution and return its task immediately.

        Must be called from a running event loop. The task never raises;
        failures are logged and the feature goes back to the backlog.

        Raises:
            ValueError: If ``feature_id`` is malformed
            FeatureAlreadyRunningError: If the feature is already executing
        """
        validate_feature_id(feature_id)
        loop = asyncio.get_running_loop()
        if not self.running.add(feature_id):
            raise FeatureAlreadyRunningError(f"Feature {feature_id} is already running")

        try:
            task = loop.create_task(
                self._run(Path(project_path), feature_id, use_isolated_copy, existing_worktree_path),
                name=f"feature:{feature_id}",
            )
        except BaseException:
            self.running.discard(feature_id)
            raise
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        # A task cancelled before its first step never reaches _run's cleanup
        task.add_done_callback(lambda t: t.cancelled() and self.running.discard(feature_id))
        return task

    async def wait_idle(self) -> None:
        """Wait for every in-flight execution to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _resolve_work_dir(
        self,
        project_path: Path,
        feature_id: str,
        use_isolated_copy: bool,
        existing_worktree_path: Optional[PathLike],
    ) -> Tuple[Path, bool]:
        """Returns ``(work_dir, isolated)``."""
        if existing_worktree_path:
            work_dir = Path(existing_worktree_path)
            if not work_dir.is_dir():
                raise WorktreeNotFoundError(f"Worktree not found: {work_dir}")
            return work_dir, True

        if not use_isolated_copy:
            return project_path, False

        branch = f"{self.config.worktrees.feature_branch_prefix}{feature_id}"
        try:
            created = await asyncio.to_thread(self.registry.create_worktree, project_path, branch)
            return Path(created.path), True
        except WorktreeConflictError:
            work_dir = self.registry.worktree_dir(project_path, branch)
            existing = await asyncio.to_thread(self.registry.find_worktree, project_path, work_dir)
            if existing is None:
                raise WorktreeNotFoundError(
                    f"{work_dir} exists but is not a worktree of {project_path}"
                )
            logger.info(f"Reusing existing worktree {work_dir} for {feature_id}")
            return work_dir, True

    async def _run(
        self,
        project_path: Path,
        feature_id: str,
        use_isolated_copy: bool,
        existing_worktree_path: Optional[PathLike],
    ) -> None:
        log = ContextLogger(logger, feature_id)
        store = self.store_factory(project_path)

        try:
            feature = await asyncio.to_thread(store.get, feature_id)
        except Exception as e:
            self.running.discard(feature_id)
            log.feature_failed(f"could not load feature: {e}")
            return
        if feature is None:
            self.running.discard(feature_id)
            log.feature_failed(f"unknown feature in {project_path}")
            return

        started = time.monotonic()
        try:
            log.phase_change("allocate")
            work_dir, isolated = await self._resolve_work_dir(
                project_path, feature_id, use_isolated_copy, existing_worktree_path
            )

            changes = {"status": FeatureStatus.IN_PROGRESS}
            if isolated:
                changes["worktree_path"] = str(work_dir)
            feature = await asyncio.to_thread(store.update, feature_id, **changes)

            log.feature_started(feature_id, work_dir)
            log.phase_change("execute")
            async with self.path_locks.hold_async(work_dir):
                await self.executor.execute(
                    ExecutionRequest(
                        project_path=project_path,
                        work_dir=work_dir,
                        feature=feature,
                        isolated=isolated,
                    )
                )

            await asyncio.to_thread(store.set_status, feature_id, FeatureStatus.WAITING_APPROVAL)
            log.feature_completed(time.monotonic() - started)
        except asyncio.CancelledError:
            log.warning("Execution cancelled")
            await self._return_to_backlog(store, feature_id)
            raise
        except Exception as e:
            log.feature_failed(str(e))
            await self._return_to_backlog(store, feature_id)
        finally:
            self.running.discard(feature_id)

    async def _return_to_backlog(self, store: FeatureStore, feature_id: str) -> None:
        try:
            await asyncio.to_thread(store.set_status, feature_id, FeatureStatus.BACKLOG)
        except Exception as e:
            logger.error(f"Could not return {feature_id} to backlog: {e}")
