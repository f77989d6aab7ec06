"""Builders and the in-memory GitProvider shared by the test modules."""

import threading
from collections.abc import Sequence
from datetime import date, datetime, timedelta, timezone

from mrw.errors import NotFoundError
from mrw.models import Commit, Event, MergeRequest, Project, User, UserStatus
from mrw.providers.base import GitProvider

NOW = datetime(2025, 3, 12, 15, 0, tzinfo=timezone.utc)  # a Wednesday


def make_user(user_id: int, username: str | None = None, email: str | None = None, **status: str) -> User:
    name = username or f"user{user_id}"
    return User(
        id=user_id,
        username=name,
        email=email if email is not None else f"{name}@example.com",
        status=UserStatus(**status),
    )


def make_mr(
    iid: int,
    *,
    project_id: int = 1,
    author: User | None = None,
    assignee: User | None = None,
    reviewers: Sequence[User] = (),
    draft: bool = False,
    source_branch: str = "",
    updated_at: datetime | None = None,
    title: str = "",
) -> MergeRequest:
    updated = updated_at or NOW - timedelta(hours=1)
    return MergeRequest(
        id=project_id * 1000 + iid,
        iid=iid,
        title=title or f"MR {iid}",
        web_url=f"https://gitlab.example.com/group/proj{project_id}/-/merge_requests/{iid}",
        author=author,
        assignee=assignee,
        reviewers=list(reviewers),
        created_at=updated - timedelta(days=1),
        updated_at=updated,
        project_id=project_id,
        draft=draft,
        source_branch=source_branch,
    )


class FakeProvider(GitProvider):
    """In-memory GitProvider. Approval entries may be exceptions, which are raised."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.directory: list[User] | None = None
        self.current_user: User | None = None
        self.projects: dict[str, Project] = {}
        self.mrs: list[MergeRequest] = []
        self.my_mrs: list[MergeRequest] = []
        self.approvals: dict[tuple[int, int], list[User] | Exception] = {}
        self.commits: dict[int, list[Commit]] = {}
        self.events: list[Event] = []
        self.updates: list[tuple[int, int, int | None, list[int]]] = []
        self.preload_error: Exception | None = None
        self.calls: list[tuple] = []
        self._lock = threading.Lock()

    def add_users(self, *users: User) -> None:
        for user in users:
            self.users[user.username] = user

    def _record(self, *call: object) -> None:
        with self._lock:
            self.calls.append(call)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def get_project(self, path: str) -> Project:
        self._record("get_project", path)
        if path not in self.projects:
            raise NotFoundError(f"project not found: {path}")
        return self.projects[path]

    def list_merge_requests(self, state: str, *scope: str) -> list[MergeRequest]:
        self._record("list_merge_requests", state, *scope)
        return list(self.mrs) if scope else list(self.my_mrs)

    def get_merge_request(self, project_id: int, iid: int) -> MergeRequest:
        self._record("get_merge_request", project_id, iid)
        for mr in [*self.mrs, *self.my_mrs]:
            if mr.key == (project_id, iid):
                return mr
        raise NotFoundError(f"merge request not found: {project_id}!{iid}")

    def get_merge_request_approvals(self, project_id: int, iid: int) -> list[User]:
        self._record("get_merge_request_approvals", project_id, iid)
        entry = self.approvals.get((project_id, iid), [])
        if isinstance(entry, Exception):
            raise entry
        return list(entry)

    def update_merge_request(
        self, project_id: int, iid: int, assignee_id: int | None, reviewer_ids: Sequence[int]
    ) -> None:
        self._record("update_merge_request", project_id, iid)
        self.updates.append((project_id, iid, assignee_id, list(reviewer_ids)))

    def get_all_users(self) -> list[User]:
        self._record("get_all_users")
        return list(self.directory if self.directory is not None else self.users.values())

    def get_user_by_username(self, username: str) -> User:
        self._record("get_user_by_username", username)
        if username not in self.users:
            raise NotFoundError(f"user not found: {username}")
        return self.users[username]

    def get_current_user(self) -> User:
        self._record("get_current_user")
        assert self.current_user is not None
        return self.current_user

    def list_commits(self, project_id: int) -> list[Commit]:
        self._record("list_commits", project_id)
        return list(self.commits.get(project_id, []))

    def get_user_events(self, user_id: int, since: date, until: date | None = None) -> list[Event]:
        self._record("get_user_events", user_id, since, until)
        return list(self.events)

    def preload_users_by_usernames(self, usernames: Sequence[str]) -> list[User]:
        self._record("preload_users_by_usernames", tuple(usernames))
        if self.preload_error is not None:
            raise self.preload_error
        return [self.users[name] for name in usernames if name in self.users]


def make_commit(sha: str, email: str) -> Commit:
    return Commit(id=sha, author_name=email.split("@")[0], author_email=email, message=f"commit {sha}")

