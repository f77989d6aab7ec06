"""Memoizing decorator around any GitProvider."""

import logging
from collections.abc import Iterable, Sequence
from datetime import date

from mrw.cache import UserCache
from mrw.models import Commit, Event, MergeRequest, Project, User
from mrw.providers.base import GitProvider

logger = logging.getLogger(__name__)


class CachedProvider(GitProvider):
    """Remembers every user it sees and answers username lookups from memory.

    Directory listings (``get_all_users``) are not stored: they carry no
    status and would overwrite hydrated entries.
    """

    def __init__(self, inner: GitProvider, cache: UserCache) -> None:
        self._inner = inner
        self._cache = cache

    @property
    def cache(self) -> UserCache:
        return self._cache

    def _remember(self, users: Iterable[User | None]) -> None:
        for user in users:
            if user is not None:
                self._cache.put(user)

    def _remember_mr(self, mr: MergeRequest) -> None:
        self._remember([mr.author, mr.assignee, *mr.reviewers])

    def get_project(self, path: str) -> Project:
        return self._inner.get_project(path)

    def list_merge_requests(self, state: str, *scope: str) -> list[MergeRequest]:
        mrs = self._inner.list_merge_requests(state, *scope)
        for mr in mrs:
            self._remember_mr(mr)
        return mrs

    def get_merge_request(self, project_id: int, iid: int) -> MergeRequest:
        mr = self._inner.get_merge_request(project_id, iid)
        self._remember_mr(mr)
        return mr

    def get_merge_request_approvals(self, project_id: int, iid: int) -> list[User]:
        approvals = self._inner.get_merge_request_approvals(project_id, iid)
        self._remember(approvals)
        return approvals

    def update_merge_request(
        self,
        project_id: int,
        iid: int,
        assignee_id: int | None,
        reviewer_ids: Sequence[int],
    ) -> None:
        self._inner.update_merge_request(project_id, iid, assignee_id, reviewer_ids)

    def get_all_users(self) -> list[User]:
        return self._inner.get_all_users()

    def get_user_by_username(self, username: str) -> User:
        cached = self._cache.get_by_username(username)
        if cached is not None:
            return cached
        user = self._inner.get_user_by_username(username)
        self._cache.put(user)
        return user

    def get_current_user(self) -> User:
        user = self._inner.get_current_user()
        self._cache.put(user)
        return user

    def list_commits(self, project_id: int) -> list[Commit]:
        return self._inner.list_commits(project_id)

    def get_user_events(self, user_id: int, since: date, until: date | None = None) -> list[Event]:
        return self._inner.get_user_events(user_id, since, until)

    def preload_users_by_usernames(self, usernames: Sequence[str]) -> list[User]:
        users = self._inner.preload_users_by_usernames(usernames)
        self._remember(users)
        logger.debug("preloaded %d of %d users", len(users), len(usernames))
        return users
