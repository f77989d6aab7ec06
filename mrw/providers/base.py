"""Abstract base class for remote platform providers."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date

from mrw.models import Commit, Event, MergeRequest, Project, User


class GitProvider(ABC):
    @abstractmethod
    def get_project(self, path: str) -> Project: ...

    @abstractmethod
    def list_merge_requests(self, state: str, *scope: str) -> list[MergeRequest]: ...

    @abstractmethod
    def get_merge_request(self, project_id: int, iid: int) -> MergeRequest: ...

    @abstractmethod
    def get_merge_request_approvals(self, project_id: int, iid: int) -> list[User]: ...

    @abstractmethod
    def update_merge_request(
        self,
        project_id: int,
        iid: int,
        assignee_id: int | None,
        reviewer_ids: Sequence[int],
    ) -> None: ...

    @abstractmethod
    def get_all_users(self) -> list[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> User: ...

    @abstractmethod
    def get_current_user(self) -> User: ...

    @abstractmethod
    def list_commits(self, project_id: int) -> list[Commit]: ...

    @abstractmethod
    def get_user_events(self, user_id: int, since: date, until: date | None = None) -> list[Event]: ...

    @abstractmethod
    def preload_users_by_usernames(self, usernames: Sequence[str]) -> list[User]:
        """Best-effort warm-up; returns the users that were loaded."""
