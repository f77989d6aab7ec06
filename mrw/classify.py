"""Pure predicates over merge requests, approvals and user status."""

from collections.abc import Iterable

from mrw.models import MergeRequest, User

_AWAY_MARKERS = ("ooo", "vacation")


def is_involved(mr: MergeRequest | None, user_id: int) -> bool:
    """True if the user is assignee or reviewer of a non-draft MR they did not author."""
    if mr is None or mr.draft:
        return False
    if mr.author is not None and mr.author.id == user_id:
        return False
    if mr.assignee is not None and mr.assignee.id == user_id:
        return True
    return any(reviewer.id == user_id for reviewer in mr.reviewers)


def has_approved(approvals: Iterable[User] | None, user_id: int) -> bool:
    if not approvals:
        return False
    return any(approver.id == user_id for approver in approvals)


def is_available(user: User) -> bool:
    """Heuristic gate on the user's status; not a guarantee of real-world availability."""
    message = user.status.message.lower()
    if any(marker in message for marker in _AWAY_MARKERS):
        return False
    return user.status.availability.lower() != "busy"
