"""Assignee/reviewer roulette over team workloads."""

from collections.abc import Sequence

from mrw.classify import is_available
from mrw.errors import NoAvailableTeamMembersError, NoTeamMembersError
from mrw.models import MergeRequest, User, UserWorkload


def calculate_score(commits: int, mr_count: int) -> float:
    """Historical contribution relative to current load; higher means more bandwidth."""
    return commits / (1 + mr_count)


def suggest(mr: MergeRequest, workloads: Sequence[UserWorkload]) -> tuple[User | None, User | None]:
    """Pick an assignee (highest score, not the author) and a reviewer (least loaded, neither).

    Both orderings are stable, so ties go to the earlier workload. The reviewer is
    None when nobody besides the author and the assignee is available.
    Raises a SuggestionError subclass when there is nobody to pick from.
    """
    if not workloads:
        raise NoTeamMembersError()

    available = [w for w in workloads if is_available(w.user)]
    if not available:
        raise NoAvailableTeamMembersError()

    author_id = mr.author.id if mr.author is not None else None

    by_score = sorted(available, key=lambda w: calculate_score(w.commits, w.mr_count), reverse=True)
    assignee = next((w.user for w in by_score if w.user.id != author_id), None)

    by_load = sorted(available, key=lambda w: w.mr_count)
    assignee_id = assignee.id if assignee is not None else None
    reviewer = next((w.user for w in by_load if w.user.id not in (author_id, assignee_id)), None)

    return assignee, reviewer
