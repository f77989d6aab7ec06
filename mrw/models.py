"""Shared pydantic models used by the providers, the engine, the CLI and the webhook."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = ""
    availability: str = ""  # "not_set" | "busy" on GitLab


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str = ""
    status: UserStatus = UserStatus()


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    path: str  # namespace/slug


class MergeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    iid: int  # per-project number, used for approval and update calls
    title: str = ""
    description: str | None = None
    web_url: str = ""
    author: User | None = None
    assignee: User | None = None
    reviewers: list[User] = []
    created_at: datetime
    updated_at: datetime
    project_id: int
    draft: bool = False
    source_branch: str = ""

    @property
    def key(self) -> tuple[int, int]:
        """(project_id, iid). IIDs repeat across projects."""
        return self.project_id, self.iid


class MergeRequestWithStatus(MergeRequest):
    """A merge request plus fields derived on every call, never persisted."""

    approvals: list[User] = []
    approval_count: int = 0
    is_stalled: bool = False
    is_current_branch: bool = False
    is_current_project: bool = False


class Commit(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    author_name: str = ""
    author_email: str = ""
    created_at: datetime | None = None
    message: str = ""
    web_url: str = ""


class UserWorkload(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: User
    mr_count: int = 0  # unresolved merge requests
    commits: int = 0
    active_mrs: list[MergeRequest] = []


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    action: str = ""
    target_type: str | None = None
    target_title: str | None = None
    target_id: int | None = None
    project_id: int | None = None
    project_path: str = ""
    created_at: datetime
    web_url: str = ""
    # push events
    push_ref: str = ""
    push_action: str = ""
    commit_count: int = 0
    commit_title: str = ""
    # note events
    note_body: str = ""
    noteable_type: str = ""
