"""Pydantic models for the HTTP API. Field names are camelCase on the wire."""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for request/response bodies: accepts and emits camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _require_text(v: str) -> str:
    if not v.strip():
        raise ValueError("must not be empty")
    return v


RequiredText = Annotated[str, AfterValidator(_require_text)]


# ============== Requests ==============

class ListWorktreesRequest(ApiModel):
    project_path: RequiredText
    include_details: bool = False


class CreateWorktreeRequest(ApiModel):
    project_path: RequiredText
    branch_name: RequiredText
    base_branch: Optional[str] = None


class DeleteWorktreeRequest(ApiModel):
    project_path: RequiredText
    path: RequiredText
    force: bool = False


class CreatePullRequestRequest(ApiModel):
    worktree_path: RequiredText
    commit_message: Optional[str] = None
    pr_title: Optional[str] = None
    pr_body: Optional[str] = None
    base_branch: Optional[str] = None
    draft: bool = False


class CommitRequest(ApiModel):
    worktree_path: RequiredText
    message: Optional[str] = None


class PushRequest(ApiModel):
    worktree_path: RequiredText


class RunFeatureRequest(ApiModel):
    project_path: RequiredText
    feature_id: RequiredText
    use_worktrees: bool = True
    worktree_path: Optional[str] = None


class BoardRequest(ApiModel):
    project_path: RequiredText
    search_query: str = ""
    worktree_path: Optional[str] = None


class ImportFeaturesRequest(ApiModel):
    project_path: RequiredText
    content: RequiredText


# ============== Responses ==============

class SuccessResponse(ApiModel):
    success: bool = True


class ErrorResponse(ApiModel):
    success: bool = False
    error: str


class WorktreeListResponse(SuccessResponse):
    worktrees: List[Dict[str, Any]] = Field(default_factory=list)


class WorktreeCreateResponse(SuccessResponse):
    worktree: Dict[str, Any]


class ResultResponse(SuccessResponse):
    result: Dict[str, Any]


class PushResponse(SuccessResponse):
    branch: str


class RunningResponse(SuccessResponse):
    running_ids: List[str] = Field(default_factory=list)


class BoardResponse(SuccessResponse):
    columns: Dict[str, List[Dict[str, Any]]]
    archived: List[Dict[str, Any]] = Field(default_factory=list)


class ImportResponse(SuccessResponse):
    created: List[str] = Field(default_factory=list)


class GhStatusResponse(SuccessResponse):
    installed: bool
    version: Optional[str] = None
