"""Enrich merge requests with approval, staleness and affinity flags, and order them for display."""

from collections.abc import Iterable
from datetime import datetime

from mrw.models import MergeRequest, MergeRequestWithStatus, User
from mrw.workdays import subtract_working_days

STALLED_AFTER_WORKING_DAYS = 3
MIN_APPROVALS = 2


def stalled_cutoff(now: datetime) -> datetime:
    return subtract_working_days(now, STALLED_AFTER_WORKING_DAYS)


def with_status(
    mr: MergeRequest,
    approvals: list[User] | None,
    *,
    cutoff: datetime,
    current_project_id: int | None = None,
    current_branch: str | None = None,
) -> MergeRequestWithStatus:
    """Attach derived fields to ``mr``. Missing context leaves the affinity flags False."""
    approvals = list(approvals or [])
    return MergeRequestWithStatus(
        **mr.model_dump(include=set(MergeRequest.model_fields)),
        approvals=approvals,
        approval_count=len(approvals),
        is_stalled=mr.updated_at < cutoff,
        is_current_branch=bool(current_branch) and mr.source_branch == current_branch,
        is_current_project=current_project_id is not None and mr.project_id == current_project_id,
    )


def _priority(mr: MergeRequestWithStatus) -> tuple[bool, bool, float]:
    return not mr.is_current_branch, not mr.is_current_project, -mr.updated_at.timestamp()


def sort_by_priority(mrs: Iterable[MergeRequestWithStatus]) -> list[MergeRequestWithStatus]:
    """Current branch first, then current project, then most recently updated. Stable."""
    return sorted(mrs, key=_priority)


def status_label(mr: MergeRequestWithStatus) -> str:
    if mr.is_stalled:
        return "stalled"
    if mr.approval_count >= MIN_APPROVALS:
        return "approved"
    return "waiting"
