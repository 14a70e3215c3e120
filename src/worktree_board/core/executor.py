"""Feature executor interface.

The agent that actually implements a feature is an external collaborator;
the coordinator only decides where it runs and tracks that it is running.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .feature import Feature

logger = logging.getLogger(__name__)


@dataclass
class ExecutionRequest:
    """Everything an executor needs to work on one feature."""
    project_path: Path
    work_dir: Path  # Worktree or main copy the feature runs in
    feature: Feature
    isolated: bool = False


class ExecutionFailedError(RuntimeError):
    """The executor finished without completing the feature."""


class FeatureExecutor(ABC):
    """Abstract base class for feature execution backends."""

    @abstractmethod
    async def execute(self, request: ExecutionRequest) -> None:
        """
        Work on ``request.feature`` inside ``request.work_dir``.

        Returns normally on success.

        Raises:
            ExecutionFailedError: If the feature could not be completed
        """


class CommandFeatureExecutor(FeatureExecutor):
    """Runs a configured command (e.g. an agent CLI) in the work directory."""

    def __init__(
        self,
        command: List[str],
        env: Optional[dict] = None,
        timeout: Optional[int] = None,
    ):
        if not command:
            raise ValueError("Executor command cannot be empty")
        self.command = command
        self.env = env
        self.timeout = timeout

    def build_args(self, feature: Feature) -> List[str]:
        values = {
            "feature_id": feature.id,
            "title": feature.title,
            "description": feature.description,
        }
        # Only known placeholders; other braces (JSON, shell) pass through
        args = []
        for part in self.command:
            for key, value in values.items():
                part = part.replace(f"{{{key}}}", value)
            args.append(part)
        return args

    async def execute(self, request: ExecutionRequest) -> None:
        args = self.build_args(request.feature)
        logger.info(f"Running {args[0]} for {request.feature.id} in {request.work_dir}")

        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(request.work_dir),
            env=self.env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ExecutionFailedError(
                f"{args[0]} timed out after {self.timeout}s for {request.feature.id}"
            )

        if process.returncode != 0:
            detail = (stderr or stdout or b"").decode(errors="replace").strip()
            raise ExecutionFailedError(
                f"{args[0]} exited with {process.returncode} for {request.feature.id}: {detail}"
            )


class UnconfiguredExecutor(FeatureExecutor):
    """Placeholder used when no execution command is configured."""

    async def execute(self, request: ExecutionRequest) -> None:
        raise ExecutionFailedError(
            "No feature executor configured; set execution.command in the config file"
        )


def executor_from_config(execution, env: Optional[dict] = None) -> FeatureExecutor:
    """Build the executor described by the ``execution`` config section."""
    if not execution.command:
        logger.warning("No execution command configured; feature runs will fail")
        return UnconfiguredExecutor()
    return CommandFeatureExecutor(execution.command, env=env, timeout=execution.timeout)
