"""FastAPI server exposing worktrees, publication, execution and the board."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.board import BOARD_COLUMNS, archived_features, project_board
from ..core.config import OrchestratorConfig, load_config
from ..core.coordinator import ExecutionCoordinator, FeatureAlreadyRunningError
from ..core.executor import FeatureExecutor, executor_from_config
from ..publish.pipeline import PublicationPipeline, PublishError, PublishOptions
from ..store.feature_store import FeatureStore
from ..store.ingest import parse_generated_features
from ..utils.subprocess_utils import build_tool_env
from ..workspace.path_locks import PathLocks
from ..workspace.worktree_registry import (
    NoRepositoryError,
    WorktreeConflictError,
    WorktreeError,
    WorktreeNotFoundError,
    WorktreeRegistry,
)
from .models import (
    BoardRequest,
    BoardResponse,
    CommitRequest,
    CreatePullRequestRequest,
    CreateWorktreeRequest,
    DeleteWorktreeRequest,
    ErrorResponse,
    GhStatusResponse,
    ImportFeaturesRequest,
    ImportResponse,
    ListWorktreesRequest,
    PushRequest,
    PushResponse,
    ResultResponse,
    RunFeatureRequest,
    RunningResponse,
    SuccessResponse,
    WorktreeCreateResponse,
    WorktreeListResponse,
)

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[OrchestratorConfig] = None,
    executor: Optional[FeatureExecutor] = None,
    registry: Optional[WorktreeRegistry] = None,
    pipeline: Optional[PublicationPipeline] = None,
) -> FastAPI:
    """Create FastAPI application with all routes."""
    app = FastAPI(
        title="Worktree Board",
        description="Isolated git worktrees, feature board and PR publication",
        version="0.1.0",
    )

    config = config or OrchestratorConfig()
    path_locks = PathLocks()
    registry = registry or WorktreeRegistry(config, path_locks)
    pipeline = pipeline or PublicationPipeline(config, registry.path_locks)
    if executor is None:
        executor = executor_from_config(
            config.execution, env=build_tool_env(config.tools.extra_path_dirs)
        )

    # Store in app state
    app.state.config = config
    app.state.registry = registry
    app.state.pipeline = pipeline
    app.state.coordinator = ExecutionCoordinator(
        registry, executor, path_locks=registry.path_locks, config=config
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
            for err in exc.errors()
        )
        return _error(400, problems or "Invalid request")

    register_routes(app)
    return app


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(by_alias=True),
    )


def _require_dir(path: str) -> Optional[JSONResponse]:
    if not Path(path).expanduser().is_dir():
        return _error(400, f"Project path does not exist: {path}")
    return None


def register_routes(app: FastAPI):
    """Register all API routes."""

    # ============== Worktrees ==============

    @app.post("/api/worktree/list", response_model=WorktreeListResponse, response_model_by_alias=True)
    async def list_worktrees(body: ListWorktreesRequest):
        """List worktrees; a folder that is not a repository has none."""
        try:
            worktrees = await asyncio.to_thread(
                app.state.registry.list_worktrees, body.project_path, body.include_details
            )
        except NoRepositoryError as e:
            logger.debug(f"No worktrees for {body.project_path}: {e}")
            return WorktreeListResponse(worktrees=[])
        except Exception as e:
            logger.error(f"List worktrees failed: {e}")
            return _error(500, str(e))
        return WorktreeListResponse(worktrees=[wt.to_dict() for wt in worktrees])

    @app.post("/api/worktree/create", response_model=WorktreeCreateResponse, response_model_by_alias=True)
    async def create_worktree(body: CreateWorktreeRequest):
        try:
            created = await asyncio.to_thread(
                app.state.registry.create_worktree,
                body.project_path,
                body.branch_name,
                body.base_branch,
            )
        except (ValueError, NoRepositoryError, WorktreeConflictError) as e:
            return _error(400, str(e))
        except WorktreeError as e:
            return _error(500, str(e))
        except Exception as e:
            logger.error(f"Create worktree failed: {e}")
            return _error(500, str(e))
        return WorktreeCreateResponse(worktree=created.to_dict())

    @app.post("/api/worktree/delete", response_model=SuccessResponse, response_model_by_alias=True)
    async def delete_worktree(body: DeleteWorktreeRequest):
        try:
            await asyncio.to_thread(
                app.state.registry.delete_worktree, body.project_path, body.path, body.force
            )
        except WorktreeNotFoundError as e:
            return _error(404, str(e))
        except NoRepositoryError as e:
            return _error(400, str(e))
        except WorktreeError as e:
            return _error(500, str(e))
        except Exception as e:
            logger.error(f"Delete worktree failed: {e}")
            return _error(500, str(e))
        return SuccessResponse()

    # ============== Publication ==============

    @app.post("/api/worktree/create-pr", response_model=ResultResponse, response_model_by_alias=True)
    async def create_pr(body: CreatePullRequestRequest):
        """Commit, push and open a PR. PR failures are reported in the result."""
        options = PublishOptions(
            commit_message=body.commit_message,
            pr_title=body.pr_title,
            pr_body=body.pr_body,
            base_branch=body.base_branch,
            draft=body.draft,
        )
        try:
            result = await asyncio.to_thread(app.state.pipeline.publish, body.worktree_path, options)
        except PublishError as e:
            return _error(500, str(e))
        except Exception as e:
            logger.error(f"Publish failed for {body.worktree_path}: {e}")
            return _error(500, str(e))
        return ResultResponse(result=result.to_dict())

    @app.post("/api/worktree/commit", response_model=ResultResponse, response_model_by_alias=True)
    async def commit(body: CommitRequest):
        try:
            result = await asyncio.to_thread(app.state.pipeline.commit, body.worktree_path, body.message)
        except PublishError as e:
            return _error(500, str(e))
        except Exception as e:
            logger.error(f"Commit failed for {body.worktree_path}: {e}")
            return _error(500, str(e))
        return ResultResponse(result=result.to_dict())

    @app.post("/api/worktree/push", response_model=PushResponse, response_model_by_alias=True)
    async def push(body: PushRequest):
        try:
            branch = await asyncio.to_thread(app.state.pipeline.push, body.worktree_path)
        except PublishError as e:
            return _error(500, str(e))
        except Exception as e:
            logger.error(f"Push failed for {body.worktree_path}: {e}")
            return _error(500, str(e))
        return PushResponse(branch=branch)

    @app.get("/api/setup/gh-status", response_model=GhStatusResponse, response_model_by_alias=True)
    async def gh_status():
        try:
            status = await asyncio.to_thread(app.state.pipeline.gh_status)
        except Exception as e:
            logger.warning(f"gh probe failed: {e}")
            return GhStatusResponse(installed=False)
        return GhStatusResponse(installed=status.installed, version=status.version)

    # ============== Execution ==============

    @app.post("/api/auto-mode/run-feature", response_model=SuccessResponse, response_model_by_alias=True)
    async def run_feature(body: RunFeatureRequest):
        """Start a feature in the background and return immediately."""
        missing = _require_dir(body.project_path)
        if missing:
            return missing
        try:
            app.state.coordinator.execute(
                body.project_path,
                body.feature_id,
                use_isolated_copy=body.use_worktrees,
                existing_worktree_path=body.worktree_path,
            )
        except (ValueError, FeatureAlreadyRunningError) as e:
            return _error(400, str(e))
        return SuccessResponse()

    @app.get("/api/auto-mode/running", response_model=RunningResponse, response_model_by_alias=True)
    async def running():
        return RunningResponse(running_ids=sorted(app.state.coordinator.running_ids()))

    # ============== Features ==============

    @app.post("/api/features/board", response_model=BoardResponse, response_model_by_alias=True)
    async def board(body: BoardRequest):
        missing = _require_dir(body.project_path)
        if missing:
            return missing
        store = FeatureStore(body.project_path, app.state.config)
        try:
            features = await asyncio.to_thread(store.load_all)
        except Exception as e:
            logger.error(f"Loading features from {body.project_path} failed: {e}")
            return _error(500, str(e))
        columns = project_board(
            features,
            app.state.coordinator.running_ids(),
            search_query=body.search_query,
            scope=body.worktree_path or None,
        )
        return BoardResponse(
            columns={name: [f.to_json_dict() for f in columns[name]] for name in BOARD_COLUMNS},
            archived=[f.to_json_dict() for f in archived_features(features)],
        )

    @app.post("/api/features/import", response_model=ImportResponse, response_model_by_alias=True)
    async def import_features(body: ImportFeaturesRequest):
        """Store generator output as new backlog features."""
        missing = _require_dir(body.project_path)
        if missing:
            return missing
        try:
            features = parse_generated_features(body.content)
        except ValueError as e:
            return _error(400, str(e))
        store = FeatureStore(body.project_path, app.state.config)
        try:
            created = await asyncio.to_thread(store.create_batch, features)
        except Exception as e:
            logger.error(f"Import into {body.project_path} failed: {e}")
            return _error(500, str(e))
        return ImportResponse(created=[f.id for f in created])


def run_server(
    config_path: Path = Path("worktree-board.yaml"),
    host: Optional[str] = None,
    port: Optional[int] = None,
):
    """Run the API server.

    Args:
        config_path: YAML config file (defaults apply when missing)
        host: Bind address, overrides ``server.host``
        port: Server port, overrides ``server.port``
    """
    import uvicorn

    config = load_config(config_path)
    app = create_app(config)

    host = host or config.server.host
    port = port or config.server.port
    logger.info(f"Starting worktree board API at http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())
