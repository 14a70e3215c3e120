"""Git worktree registry for isolated feature workspaces.

Discovers, creates and deletes the git worktrees of a project. Git owns the
authoritative state: every call re-reads ``git worktree list --porcelain``
instead of caching what a previous call observed.
"""

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..core.config import OrchestratorConfig
from ..utils.subprocess_utils import SubprocessError, build_tool_env, run_command, run_git_command
from ..utils.validators import sanitize_directory_name, validate_branch_name
from .path_locks import PathLocks

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class WorktreeError(RuntimeError):
    """Base class for worktree registry failures."""


class NoRepositoryError(WorktreeError):
    """The project path is not a git repository (or lists no worktrees)."""


class WorktreeConflictError(WorktreeError):
    """Something already occupies the target worktree directory."""


class WorktreeNotFoundError(WorktreeError):
    """The path is not a known isolated worktree of the project."""


@dataclass
class AheadBehind:
    ahead: int = 0
    behind: int = 0


@dataclass
class Worktree:
    """One entry of the project's worktree listing."""
    path: str
    branch: str
    is_main: bool = False
    has_changes: Optional[bool] = None
    changed_files_count: Optional[int] = None
    ahead_behind: Optional[AheadBehind] = None

    def to_dict(self) -> Dict:
        """Convert to the camelCase JSON shape used by the HTTP surface."""
        data: Dict = {"path": self.path, "branch": self.branch, "isMain": self.is_main}
        if self.has_changes is not None:
            data["hasChanges"] = self.has_changes
        if self.changed_files_count is not None:
            data["changedFilesCount"] = self.changed_files_count
        if self.ahead_behind is not None:
            data["aheadBehind"] = asdict(self.ahead_behind)
        return data


@dataclass
class CreatedWorktree:
    path: str
    branch: str
    is_new: bool

    def to_dict(self) -> Dict:
        return {"path": self.path, "branch": self.branch, "isNew": self.is_new}


@dataclass
class LinkResult:
    """Outcome of sharing the metadata directory with a new worktree."""
    linked: bool
    target: Optional[str] = None
    reason: Optional[str] = None


def parse_worktree_porcelain(output: str, include_detached: bool = False) -> List[Worktree]:
    """Parse ``git worktree list --porcelain`` output.

    Records are blank-line separated blocks. Git always emits the main
    worktree first, so ``is_main`` is positional: the first block, which is
    always kept. Other blocks without a ``branch`` line (detached HEAD, bare)
    are dropped unless ``include_detached`` is set. A detached entry has
    branch ``""``.
    """
    worktrees: List[Worktree] = []
    block_index = 0
    current: Dict[str, str] = {}

    def flush() -> None:
        nonlocal block_index
        if "path" not in current:
            return
        branch = current.get("branch")
        if branch is not None or include_detached or block_index == 0:
            worktrees.append(
                Worktree(path=current["path"], branch=branch or "", is_main=block_index == 0)
            )
        block_index += 1

    for line in output.splitlines():
        if line.startswith("worktree "):
            current["path"] = line[len("worktree "):]
        elif line.startswith("branch "):
            ref = line[len("branch "):]
            current["branch"] = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
        elif not line.strip():
            flush()
            current = {}
    flush()

    return worktrees


class WorktreeRegistry:
    """Observes and commands the git worktrees of a project."""

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        path_locks: Optional[PathLocks] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.path_locks = path_locks or PathLocks()
        self.env = build_tool_env(self.config.tools.extra_path_dirs)

    def _git(self, args: List[str], cwd: PathLike, check: bool = True):
        return run_git_command(
            args,
            cwd=Path(cwd),
            check=check,
            timeout=self.config.tools.git_timeout,
            env=self.env,
        )

    def is_git_repo(self, project_path: PathLike) -> bool:
        """Check whether ``project_path`` is inside a git work tree."""
        path = Path(project_path)
        if not path.is_dir():
            return False
        try:
            result = self._git(["rev-parse", "--is-inside-work-tree"], cwd=path, check=False)
        except SubprocessError as e:
            logger.debug(f"git probe failed for {path}: {e}")
            return False
        return result.returncode == 0 and result.stdout.strip() == "true"

    def worktree_dir(self, project_path: PathLike, branch_name: str) -> Path:
        """Directory a worktree for ``branch_name`` lives in."""
        root = Path(project_path).expanduser().resolve()
        return root / self.config.worktrees.directory_name / sanitize_directory_name(branch_name)

    def _list_entries(self, project_path: PathLike, include_detached: bool) -> List[Worktree]:
        if not self.is_git_repo(project_path):
            raise NoRepositoryError(f"Not a git repository: {project_path}")

        try:
            result = self._git(["worktree", "list", "--porcelain"], cwd=project_path)
        except SubprocessError as e:
            raise NoRepositoryError(f"Cannot list worktrees of {project_path}: {e.detail}") from e

        entries = parse_worktree_porcelain(result.stdout, include_detached=include_detached)
        if not entries and not result.stdout.strip():
            raise NoRepositoryError(f"git reported no worktrees for {project_path}")
        return entries

    def list_worktrees(self, project_path: PathLike, include_details: bool = False) -> List[Worktree]:
        """
        List the project's worktrees, main copy first.

        Args:
            project_path: Path inside the repository
            include_details: Also collect change counts and upstream divergence

        Returns:
            Worktree entries in git's listing order

        Raises:
            NoRepositoryError: If the path is not a git repository
        """
        worktrees = self._list_entries(project_path, include_detached=False)

        if include_details:
            for wt in worktrees:
                self._attach_details(wt)

        return worktrees

    def _attach_details(self, wt: Worktree) -> None:
        """Fill change count and ahead/behind; each probe degrades to zeros."""
        try:
            # --no-optional-locks keeps a read-only probe from taking index.lock
            status = self._git(["--no-optional-locks", "status", "--porcelain"], cwd=wt.path)
            changed = [line for line in status.stdout.splitlines() if line.strip()]
            wt.changed_files_count = len(changed)
            wt.has_changes = bool(changed)
        except SubprocessError as e:
            logger.debug(f"Could not read status of {wt.path}: {e.detail}")
            wt.changed_files_count = 0
            wt.has_changes = False

        try:
            rev_list = self._git(
                ["rev-list", "--left-right", "--count", f"origin/{wt.branch}...HEAD"],
                cwd=wt.path,
            )
            behind, ahead = (int(n) for n in rev_list.stdout.split())
            wt.ahead_behind = AheadBehind(ahead=ahead, behind=behind)
        except (SubprocessError, ValueError):
            # Branch has no upstream yet
            wt.ahead_behind = AheadBehind()

    def find_worktree(self, project_path: PathLike, path: PathLike) -> Optional[Worktree]:
        """Find the listing entry for ``path``, detached worktrees included."""
        wanted = Path(path).expanduser().resolve()
        for wt in self._list_entries(project_path, include_detached=True):
            if Path(wt.path).resolve() == wanted:
                return wt
        return None

    def _branch_exists(self, project_path: Path, branch_name: str) -> bool:
        result = self._git(
            ["rev-parse", "--verify", "--quiet", f"refs/heads/{branch_name}"],
            cwd=project_path,
            check=False,
        )
        return result.returncode == 0

    def create_worktree(
        self,
        project_path: PathLike,
        branch_name: str,
        base_branch: Optional[str] = None,
    ) -> CreatedWorktree:
        """
        Create an isolated worktree for ``branch_name``.

        Attaches to the branch if it exists, otherwise creates it from
        ``base_branch`` (default: HEAD) in the same ``git worktree add``.

        Raises:
            ValueError: If the branch name is invalid
            NoRepositoryError: If the project is not a git repository
            WorktreeConflictError: If the target directory already exists
            WorktreeError: If git refuses to create the worktree
        """
        branch_name = validate_branch_name(branch_name)
        if base_branch:
            base_branch = validate_branch_name(base_branch)

        project = Path(project_path).expanduser().resolve()
        if not self.is_git_repo(project):
            raise NoRepositoryError(f"Not a git repository: {project}")

        worktree_path = self.worktree_dir(project, branch_name)
        worktree_path.parent.mkdir(parents=True, exist_ok=True)
        self._exclude_from_git(project, self.config.worktrees.directory_name)

        with self.path_locks.hold(worktree_path):
            if worktree_path.exists() or worktree_path.is_symlink():
                raise WorktreeConflictError(
                    f"Worktree for branch '{branch_name}' already exists at {worktree_path}"
                )

            branch_exists = self._branch_exists(project, branch_name)
            if branch_exists:
                args = ["worktree", "add", str(worktree_path), branch_name]
            else:
                args = ["worktree", "add", "-b", branch_name, str(worktree_path), base_branch or "HEAD"]

            try:
                self._git(args, cwd=project)
            except SubprocessError as e:
                logger.error(f"Failed to create worktree {worktree_path}: {e.detail}")
                raise WorktreeError(f"Failed to create worktree: {e.detail}") from e

            logger.info(
                f"Created worktree: {worktree_path} "
                f"(branch: {branch_name}, {'existing' if branch_exists else 'new'})"
            )

            link = self.link_metadata(project, worktree_path)
            if link.linked:
                logger.debug(f"Shared metadata directory via {link.target}")
            else:
                logger.warning(f"Worktree {worktree_path} keeps its own metadata: {link.reason}")

        return CreatedWorktree(path=str(worktree_path), branch=branch_name, is_new=not branch_exists)

    def link_metadata(self, project_path: PathLike, worktree_path: PathLike) -> LinkResult:
        """Link the main copy's metadata directory into a worktree.

        Never raises: the worktree stays usable with an independent
        registry view when linking is impossible.
        """
        name = self.config.features.metadata_dir
        source = Path(project_path) / name
        target = Path(worktree_path) / name

        if not source.is_dir():
            return LinkResult(linked=False, reason=f"no {name} directory in main copy")
        if target.exists() or target.is_symlink():
            return LinkResult(linked=False, target=str(target), reason=f"{target} already exists")

        try:
            if os.name == "nt":
                # Junctions need no elevated privileges, unlike directory symlinks
                run_command(
                    ["cmd", "/c", "mklink", "/J", str(target), str(source)],
                    check=True,
                    timeout=self.config.tools.git_timeout,
                )
            else:
                target.symlink_to(source, target_is_directory=True)
        except (OSError, SubprocessError) as e:
            return LinkResult(linked=False, target=str(target), reason=str(e))

        self._exclude_from_git(Path(worktree_path), name)
        return LinkResult(linked=True, target=str(target))

    def _exclude_from_git(self, worktree_path: Path, name: str) -> None:
        """Keep the metadata link out of ``git status`` and publication commits."""
        try:
            result = self._git(["rev-parse", "--git-path", "info/exclude"], cwd=worktree_path)
            exclude_file = Path(result.stdout.strip())
            if not exclude_file.is_absolute():
                exclude_file = worktree_path / exclude_file
            pattern = f"/{name}"
            existing = exclude_file.read_text().splitlines() if exclude_file.exists() else []
            if pattern not in existing:
                exclude_file.parent.mkdir(parents=True, exist_ok=True)
                with open(exclude_file, "a") as f:
                    f.write(f"{pattern}\n")
        except (SubprocessError, OSError) as e:
            logger.debug(f"Could not add {name} to git excludes: {e}")

    def delete_worktree(self, project_path: PathLike, path: PathLike, force: bool = False) -> None:
        """
        Remove an isolated worktree via ``git worktree remove``.

        Raises:
            NoRepositoryError: If the project is not a git repository
            WorktreeNotFoundError: If ``path`` is not one of the project's isolated worktrees
            WorktreeError: If git refuses (e.g. uncommitted changes without ``force``)
        """
        entry = self.find_worktree(project_path, path)
        if entry is None or entry.is_main:
            raise WorktreeNotFoundError(f"Not an isolated worktree of {project_path}: {path}")

        args = ["worktree", "remove"]
        if force:
            args.append("--force")
        args.append(entry.path)

        with self.path_locks.hold(entry.path):
            try:
                self._git(args, cwd=project_path)
            except SubprocessError as e:
                logger.error(f"Failed to remove worktree {entry.path}: {e.detail}")
                raise WorktreeError(f"Failed to remove worktree: {e.detail}") from e

        logger.info(f"Removed worktree: {entry.path}")
