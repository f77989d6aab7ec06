"""Per-person review and authoring workload."""

import logging
from collections.abc import Iterable, Sequence

from mrw.classify import has_approved, is_involved
from mrw.errors import AuthError, GatewayError
from mrw.fanout import DEFAULT_MAX_WORKERS, FetchPolicy, fetch_all
from mrw.models import MergeRequest, User, UserWorkload
from mrw.providers.base import GitProvider

logger = logging.getLogger(__name__)

ApprovalMap = dict[tuple[int, int], list[User]]


def build_email_index(provider: GitProvider) -> dict[str, int]:
    """Map email → user ID over the whole user directory. Users without an email are skipped."""
    return {user.email: user.id for user in provider.get_all_users() if user.email}


def count_commits(provider: GitProvider, project_id: int, email_index: dict[str, int]) -> dict[int, int]:
    """Count the project's commits per user ID.

    An author email missing from the index is retried as a username (the part
    before ``@``); a hit is memoized into ``email_index`` for the rest of the
    pass, a miss skips the commit. Commits without an author email count for nobody.
    """
    counts: dict[int, int] = {}
    for commit in provider.list_commits(project_id):
        email = commit.author_email
        if not email:
            continue
        user_id = email_index.get(email)
        if user_id is None:
            username = email.split("@", 1)[0]
            try:
                user_id = provider.get_user_by_username(username).id
            except AuthError:
                raise
            except GatewayError as exc:
                logger.debug("skipping commit %s: no user for %s (%s)", commit.id, email, exc)
                continue
            email_index[email] = user_id
        counts[user_id] = counts.get(user_id, 0) + 1
    return counts


def resolve_team(provider: GitProvider, team: Sequence[str], *, max_workers: int = DEFAULT_MAX_WORKERS) -> list[User]:
    """Resolve team usernames to users, in team order. Unresolvable members are omitted."""
    found = fetch_all(team, provider.get_user_by_username, policy=FetchPolicy.LENIENT, max_workers=max_workers)
    missing = [name for name in team if name not in found]
    if missing:
        logger.debug("team members not found: %s", ", ".join(missing))
    return [found[name] for name in dict.fromkeys(team) if name in found]


def fetch_approvals(
    provider: GitProvider,
    mrs: Iterable[MergeRequest],
    *,
    policy: FetchPolicy = FetchPolicy.STRICT,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> ApprovalMap:
    """Approvals per merge request keyed by (project_id, iid)."""
    return fetch_all(
        (mr.key for mr in mrs),
        lambda key: provider.get_merge_request_approvals(*key),
        policy=policy,
        max_workers=max_workers,
    )


def unresolved_for(user: User, mrs: Iterable[MergeRequest], approvals: ApprovalMap) -> list[MergeRequest]:
    """MRs the user is involved in and has not approved. MRs with unknown approvals are left out."""
    return [
        mr
        for mr in mrs
        if is_involved(mr, user.id) and mr.key in approvals and not has_approved(approvals[mr.key], user.id)
    ]


def compute_team_workload(
    provider: GitProvider,
    team: Sequence[str],
    *,
    project_id: int | None = None,
    include_active: bool = False,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[UserWorkload]:
    """One UserWorkload per resolvable team member, in team order.

    With ``project_id`` each workload carries the member's commit count in that
    project. With ``include_active`` it also carries the unresolved MRs themselves.
    Approvals are fetched once for the union of involved MRs; an MR whose
    approvals could not be fetched is counted for nobody.
    """
    commit_counts: dict[int, int] = {}
    if project_id is not None:
        commit_counts = count_commits(provider, project_id, build_email_index(provider))

    mrs = provider.list_merge_requests("opened", "all")
    users = resolve_team(provider, team, max_workers=max_workers)

    involved = {mr.key: mr for mr in mrs for user in users if is_involved(mr, user.id)}
    approvals = fetch_approvals(provider, involved.values(), policy=FetchPolicy.LENIENT, max_workers=max_workers)
    if len(approvals) < len(involved):
        logger.debug("approvals unavailable for %d of %d merge requests", len(involved) - len(approvals), len(involved))

    workloads = []
    for user in users:
        active = unresolved_for(user, involved.values(), approvals)
        workloads.append(
            UserWorkload(
                user=user,
                mr_count=len(active),
                commits=commit_counts.get(user.id, 0),
                active_mrs=active if include_active else [],
            )
        )
    return workloads
