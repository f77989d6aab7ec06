"""Rich tables for every report."""

from collections.abc import Sequence

from rich.table import Table

from mrw.issue import Issuer
from mrw.models import Event, MergeRequest, MergeRequestWithStatus, User, UserWorkload
from mrw.status import status_label

UNKNOWN_PROJECT = "Unknown Project"
DESCRIPTION_MAX_LEN = 100
COMMIT_TITLE_MAX_LEN = 60
NOTE_BODY_MAX_LEN = 80

_STATUS_STYLE = {"stalled": "red", "approved": "green", "waiting": "yellow"}


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def truncate(text: str, max_len: int) -> str:
    if len(text) > max_len:
        return text[: max_len - 3] + "..."
    return text


def one_line(text: str | None, max_len: int = DESCRIPTION_MAX_LEN) -> str:
    """Collapse newlines into "; " and truncate."""
    flattened = "; ".join(line for line in (text or "").splitlines() if line.strip())
    return truncate(flattened, max_len)


def usernames(users: Sequence[User]) -> str:
    return ", ".join(user.username for user in users) if users else "None"


def project_name(base_url: str, web_url: str) -> str:
    """Project path from a merge request URL, or UNKNOWN_PROJECT."""
    parts = web_url.split("/-/merge_requests/")
    if len(parts) != 2:
        return UNKNOWN_PROJECT
    return parts[0].removeprefix(base_url.rstrip("/") + "/")


def normalize_ref(ref: str) -> str:
    return ref.removeprefix("refs/tags/").removeprefix("refs/heads/")


def ref_type(ref: str) -> str:
    return "tag" if ref.startswith("refs/tags/") else "branch"


def describe_event(event: Event) -> str:
    """One-line human description of an activity event."""
    action = event.action.lower()
    target_type = (event.target_type or "").lower()
    title = event.target_title or ""

    if (not target_type or "push" in action or event.action == "deleted") and event.push_ref:
        desc = f"{event.push_action or event.action} {ref_type(event.push_ref)} {normalize_ref(event.push_ref)}"
        if event.commit_count > 0:
            plural = "" if event.commit_count == 1 else "s"
            desc += f" ({event.commit_count} commit{plural}"
            if event.commit_title:
                desc += f": {truncate(event.commit_title, COMMIT_TITLE_MAX_LEN)}"
            desc += ")"
        return desc

    if target_type in ("note", "diffnote", "discussionnote") or "comment" in action:
        desc = "commented"
        if title:
            desc += f": {title}"
        if event.note_body:
            body = event.note_body.replace("\n", " ")
            desc += f" ({truncate(body, NOTE_BODY_MAX_LEN)})"
        return desc

    if target_type in ("mergerequest", "merge_request", "issue"):
        return f"{event.action}: {title}" if title else event.action

    desc = event.action
    if event.target_type:
        desc += f" {event.target_type}"
    if title:
        desc += f": {title}"
    return desc


def _status_cell(mr: MergeRequestWithStatus) -> str:
    label = status_label(mr)
    return f"[{_STATUS_STYLE[label]}]{label}[/{_STATUS_STYLE[label]}]"


def _title_cell(mr: MergeRequest, issuer: Issuer | None) -> str:
    if issuer is None:
        return mr.title
    issue_url = issuer.make_url(issuer.extract_number(mr.title))
    return f"{mr.title}\n[dim]{issue_url}[/dim]" if issue_url else mr.title


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def team_workload_table(workloads: Sequence[UserWorkload], issuer: Issuer | None = None) -> Table:
    table = Table(title="Team Review Workload")
    table.add_column("User", style="cyan")
    table.add_column("Open", justify="right")
    table.add_column("Role")
    table.add_column("Merge request")
    table.add_column("URL", style="dim")

    for workload in workloads:
        if not workload.active_mrs:
            table.add_row(workload.user.username, str(workload.mr_count), "", "[dim]nothing to review[/dim]", "")
            continue
        for index, mr in enumerate(workload.active_mrs):
            role = "Assignee" if mr.assignee is not None and mr.assignee.id == workload.user.id else "Reviewer"
            table.add_row(
                workload.user.username if index == 0 else "",
                str(workload.mr_count) if index == 0 else "",
                role,
                _title_cell(mr, issuer),
                mr.web_url,
            )
        table.add_section()

    return table


def my_merge_requests_table(
    mrs: Sequence[MergeRequestWithStatus], base_url: str, issuer: Issuer | None = None
) -> Table:
    table = Table(title="My Merge Requests")
    table.add_column("Status")
    table.add_column("Project", style="cyan")
    table.add_column("Title")
    table.add_column("Approvals")
    table.add_column("Updated")
    table.add_column("URL", style="dim")

    for mr in mrs:
        marker = "[bold]*[/bold] " if mr.is_current_branch else ""
        table.add_row(
            _status_cell(mr),
            project_name(base_url, mr.web_url),
            marker + _title_cell(mr, issuer),
            f"{mr.approval_count} ({usernames(mr.approvals)})",
            mr.updated_at.strftime("%Y-%m-%d %H:%M"),
            mr.web_url,
        )

    return table


def my_review_table(mrs: Sequence[MergeRequestWithStatus], base_url: str, issuer: Issuer | None = None) -> Table:
    table = Table(title="Waiting For My Review")
    table.add_column("Status")
    table.add_column("Project", style="cyan")
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("Approvals", justify="right")
    table.add_column("Updated")
    table.add_column("URL", style="dim")

    for mr in mrs:
        table.add_row(
            _status_cell(mr),
            project_name(base_url, mr.web_url),
            _title_cell(mr, issuer),
            mr.author.username if mr.author else "",
            str(mr.approval_count),
            mr.updated_at.strftime("%Y-%m-%d %H:%M"),
            mr.web_url,
        )

    return table


def roulette_table(
    mr: MergeRequest,
    workloads: Sequence[UserWorkload],
    assignee: User | None,
    reviewer: User | None,
) -> Table:
    table = Table(title=f"Roulette: {mr.title}")
    table.add_column("User", style="cyan")
    table.add_column("Commits", justify="right")
    table.add_column("Open MRs", justify="right")
    table.add_column("Suggested")

    for workload in workloads:
        role = ""
        if assignee is not None and workload.user.id == assignee.id:
            role = "[green]assignee[/green]"
        elif reviewer is not None and workload.user.id == reviewer.id:
            role = "[green]reviewer[/green]"
        table.add_row(workload.user.username, str(workload.commits), str(workload.mr_count), role)

    return table


def merge_request_status_table(mr: MergeRequestWithStatus, issuer: Issuer | None = None) -> Table:
    table = Table(title=f"!{mr.iid}: {mr.title}")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Status", _status_cell(mr))
    table.add_row("Author", mr.author.username if mr.author else "None")
    table.add_row("Assignee", mr.assignee.username if mr.assignee else "None")
    table.add_row("Reviewers", usernames(mr.reviewers))
    table.add_row("Approvals", f"{mr.approval_count} ({usernames(mr.approvals)})")
    table.add_row("Branch", mr.source_branch or "None")
    table.add_row("Created", mr.created_at.strftime("%Y-%m-%d %H:%M"))
    table.add_row("Updated", mr.updated_at.strftime("%Y-%m-%d %H:%M"))
    if issuer is not None:
        issue_url = issuer.make_url(issuer.extract_number(mr.title))
        if issue_url:
            table.add_row("Issue", issue_url)
    table.add_row("URL", mr.web_url)
    table.add_row("Description", one_line(mr.description) or "_No description provided._")

    return table


def activity_table(events: Sequence[Event]) -> Table:
    table = Table(title="My Activity")
    table.add_column("Project", style="cyan")
    table.add_column("When")
    table.add_column("What")
    table.add_column("URL", style="dim")

    by_project: dict[str, list[Event]] = {}
    for event in events:
        by_project.setdefault(event.project_path or UNKNOWN_PROJECT, []).append(event)

    for project in sorted(by_project):
        for index, event in enumerate(sorted(by_project[project], key=lambda e: e.created_at)):
            table.add_row(
                project if index == 0 else "",
                event.created_at.strftime("%Y-%m-%d %H:%M"),
                describe_event(event),
                event.web_url,
            )
        table.add_section()

    return table
