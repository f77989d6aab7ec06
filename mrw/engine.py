"""Engine entry points used by the CLI and the webhook."""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from mrw import git
from mrw.classify import has_approved, is_involved
from mrw.errors import GatewayError, GitContextError, NotFoundError
from mrw.fanout import DEFAULT_MAX_WORKERS, FetchPolicy
from mrw.models import Event, MergeRequest, MergeRequestWithStatus, Project, User, UserWorkload
from mrw.providers.base import GitProvider
from mrw.status import sort_by_priority, stalled_cutoff, with_status
from mrw.suggest import suggest
from mrw.workload import compute_team_workload, fetch_approvals

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ContextResolver = Callable[[], tuple[str, str]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Engine:
    """Workload analysis, assignment suggestions and status reports over one provider.

    ``context_resolver`` returns ``(remote_url, branch)`` for the working copy
    and raises GitContextError outside a clone; ``clock`` returns an aware now.
    """

    def __init__(
        self,
        provider: GitProvider,
        team: Sequence[str],
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        clock: Clock | None = None,
        context_resolver: ContextResolver | None = None,
    ) -> None:
        self.provider = provider
        self.team = list(team)
        self.max_workers = max_workers
        self._clock = clock or _utcnow
        self._context_resolver = context_resolver or git.remote_and_branch

    def preload(self) -> None:
        """Warm the user cache with the team. Failures are logged and ignored."""
        try:
            users = self.provider.preload_users_by_usernames(self.team)
        except GatewayError as exc:
            logger.warning("could not preload team members: %s", exc)
            return
        logger.debug("preloaded %d team members", len(users))

    # ------------------------------------------------------------------
    # Workload
    # ------------------------------------------------------------------

    def analyze_workload(self, project_id: int) -> list[UserWorkload]:
        return compute_team_workload(self.provider, self.team, project_id=project_id, max_workers=self.max_workers)

    def analyze_active_mrs(self) -> list[UserWorkload]:
        return compute_team_workload(self.provider, self.team, include_active=True, max_workers=self.max_workers)

    def analyze_my_review_workload(self) -> UserWorkload:
        user = self.provider.get_current_user()
        relevant = [mr for mr in self.provider.list_merge_requests("opened", "all") if is_involved(mr, user.id)]
        approvals = fetch_approvals(self.provider, relevant, policy=FetchPolicy.STRICT, max_workers=self.max_workers)
        active = [mr for mr in relevant if not has_approved(approvals[mr.key], user.id)]
        return UserWorkload(user=user, mr_count=len(active), active_mrs=active)

    def suggest_assignee_and_reviewer(
        self, mr: MergeRequest, workloads: Sequence[UserWorkload]
    ) -> tuple[User | None, User | None]:
        return suggest(mr, workloads)

    # ------------------------------------------------------------------
    # Status reports
    # ------------------------------------------------------------------

    def _context_safe(self) -> tuple[int | None, str | None]:
        """Current project ID and branch, or (None, None) outside a usable clone."""
        try:
            project, branch = self.current_project_info()
        except (GitContextError, GatewayError) as exc:
            logger.debug("no working-copy context: %s", exc)
            return None, None
        return project.id, branch

    def _enrich(
        self,
        mrs: Sequence[MergeRequest],
        approvals: dict[tuple[int, int], list[User]],
        project_id: int | None,
        branch: str | None,
    ) -> list[MergeRequestWithStatus]:
        cutoff = stalled_cutoff(self._clock())
        enriched = [
            with_status(
                mr,
                approvals.get(mr.key, []),
                cutoff=cutoff,
                current_project_id=project_id,
                current_branch=branch,
            )
            for mr in mrs
        ]
        return sort_by_priority(enriched)

    def get_merge_requests_with_status(self) -> list[MergeRequestWithStatus]:
        """The caller's own open merge requests, enriched and in priority order."""
        mrs = self.provider.list_merge_requests("opened")
        project_id, branch = self._context_safe()
        approvals = fetch_approvals(self.provider, mrs, policy=FetchPolicy.LENIENT, max_workers=self.max_workers)
        return self._enrich(mrs, approvals, project_id, branch)

    def get_my_review_workload_with_status(self) -> list[MergeRequestWithStatus]:
        """Merge requests waiting on the current user's review, enriched and in priority order."""
        user = self.provider.get_current_user()
        relevant = [mr for mr in self.provider.list_merge_requests("opened", "all") if is_involved(mr, user.id)]
        project_id, branch = self._context_safe()
        approvals = fetch_approvals(self.provider, relevant, policy=FetchPolicy.LENIENT, max_workers=self.max_workers)
        pending = [mr for mr in relevant if not has_approved(approvals.get(mr.key), user.id)]
        return self._enrich(pending, approvals, project_id, branch)

    def get_merge_request_status(self, project_id: int, iid: int) -> MergeRequestWithStatus:
        mr = self.provider.get_merge_request(project_id, iid)
        approvals = self.provider.get_merge_request_approvals(project_id, iid)
        return with_status(mr, approvals, cutoff=stalled_cutoff(self._clock()))

    def get_my_activity(self, since: datetime, until: datetime | None = None) -> list[Event]:
        user = self.provider.get_current_user()
        return self.provider.get_user_events(user.id, since, until)

    # ------------------------------------------------------------------
    # Working copy
    # ------------------------------------------------------------------

    def current_project_info(self) -> tuple[Project, str]:
        remote, branch = self._context_resolver()
        project = self.provider.get_project(git.project_path_from_remote(remote))
        return project, branch

    def new_merge_request_url(self) -> str:
        remote, branch = self._context_resolver()
        return git.new_merge_request_url(remote, branch)

    def get_merge_request_by_branch(self, project_id: int, branch: str) -> MergeRequest:
        """Most recently updated open merge request from ``branch`` in the project."""
        matching = [
            mr
            for mr in self.provider.list_merge_requests("opened", "all")
            if mr.project_id == project_id and mr.source_branch == branch
        ]
        if not matching:
            raise NotFoundError(f"no merge request found for branch {branch}")
        return max(matching, key=lambda mr: mr.updated_at)

    # ------------------------------------------------------------------
    # Pass-throughs
    # ------------------------------------------------------------------

    def get_project(self, path: str) -> Project:
        return self.provider.get_project(path)

    def get_merge_request(self, project_id: int, iid: int) -> MergeRequest:
        return self.provider.get_merge_request(project_id, iid)

    def get_merge_request_approvals(self, project_id: int, iid: int) -> list[User]:
        return self.provider.get_merge_request_approvals(project_id, iid)

    def list_merge_requests(self, state: str, *scope: str) -> list[MergeRequest]:
        return self.provider.list_merge_requests(state, *scope)

    def update_merge_request(
        self, project_id: int, iid: int, assignee_id: int | None, reviewer_ids: Sequence[int]
    ) -> None:
        self.provider.update_merge_request(project_id, iid, assignee_id, reviewer_ids)
