"""MRW CLI — all commands."""

import logging
import webbrowser
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Annotated

import tomlkit
import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from mrw import render
from mrw.cache import UserCache
from mrw.engine import Engine
from mrw.errors import GitContextError, MrwError
from mrw.git import parse_mr_url
from mrw.issue import Issuer
from mrw.models import MergeRequest
from mrw.providers.cached import CachedProvider
from mrw.providers.gitlab import GitLabProvider
from mrw.settings import CONFIG_PATH, MrwSettings, _list_profiles, get_settings, load_settings
from mrw.workdays import parse_activity_dates

app = typer.Typer(help="merge-request-wrangler: GitLab review workload and reviewer roulette", no_args_is_help=True)
my_app = typer.Typer(help="Your merge requests, reviews and activity", no_args_is_help=True)
team_app = typer.Typer(help="Team-wide reports", no_args_is_help=True)
mr_app = typer.Typer(help="Merge requests", no_args_is_help=True)
issue_app = typer.Typer(help="Issues linked from merge request titles", no_args_is_help=True)
app.add_typer(my_app, name="my")
app.add_typer(team_app, name="team")
app.add_typer(mr_app, name="mr")
app.add_typer(issue_app, name="issue")

console = Console()

ProfileOpt = Annotated[
    str | None,
    typer.Option("--profile", "-p", help="Profile name from ~/.config/mrw/config.toml"),
]
UrlArg = Annotated[str | None, typer.Argument(help="Merge request URL (defaults to the current branch's MR)")]


# ---------------------------------------------------------------------------
# Engine factory
# ---------------------------------------------------------------------------


def get_engine(settings: MrwSettings) -> Engine:
    cache = UserCache()
    provider = CachedProvider(GitLabProvider(settings, cache), cache)
    engine = Engine(provider, settings.team, max_workers=settings.max_workers)
    engine.preload()
    return engine


def _profile(ctx: typer.Context) -> str | None:
    return (ctx.obj or {}).get("profile")


@contextmanager
def _errors() -> Iterator[None]:
    """Turn expected failures into a red message and exit code 1."""
    try:
        yield
    except (MrwError, ValueError) as exc:
        rprint(f"[red]error: {exc}[/red]")
        raise typer.Exit(1) from exc


def _resolve_mr(engine: Engine, settings: MrwSettings, url: str | None) -> MergeRequest:
    """The merge request at ``url``, or the newest open one for the current branch."""
    if url:
        project_path, iid = parse_mr_url(settings.base_url, url)
        with console.status("Fetching merge request..."):
            project = engine.get_project(project_path)
            return engine.get_merge_request(project.id, iid)
    with console.status("Looking up the merge request for this branch..."):
        project, branch = engine.current_project_info()
        return engine.get_merge_request_by_branch(project.id, branch)


@app.callback()
def main(
    ctx: typer.Context,
    profile: ProfileOpt = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
    ctx.obj = {"profile": profile}


# ---------------------------------------------------------------------------
# my
# ---------------------------------------------------------------------------


@my_app.command("mr")
def my_mr(ctx: typer.Context) -> None:
    """Show your open merge requests with approval and staleness status."""
    settings = get_settings(_profile(ctx))
    with _errors():
        engine = get_engine(settings)
        with console.status("Fetching your merge requests..."):
            mrs = engine.get_merge_requests_with_status()

        if mrs:
            rprint(render.my_merge_requests_table(mrs, settings.base_url, Issuer(settings.issue_url_template)))
        else:
            rprint("[dim]No open merge requests.[/dim]")

        if not any(mr.is_current_branch for mr in mrs):
            try:
                new_url = engine.new_merge_request_url()
            except GitContextError:
                return
            rprint(f"No merge request for this branch yet. Create one: {new_url}")


@my_app.command("review")
def my_review(ctx: typer.Context) -> None:
    """Show merge requests waiting for your review."""
    settings = get_settings(_profile(ctx))
    with _errors():
        engine = get_engine(settings)
        with console.status("Fetching your review queue..."):
            mrs = engine.get_my_review_workload_with_status()

    if not mrs:
        rprint("[green]✓[/green] Nothing waiting for your review.")
        return
    rprint(render.my_review_table(mrs, settings.base_url, Issuer(settings.issue_url_template)))


@my_app.command("activity")
def my_activity(
    ctx: typer.Context,
    after: Annotated[str | None, typer.Option("--after", help="Activities after this date (YYYY-MM-DD)")] = None,
    before: Annotated[str | None, typer.Option("--before", help="Activities before this date (YYYY-MM-DD)")] = None,
) -> None:
    """Show your activity, by default since the last working day."""
    settings = get_settings(_profile(ctx))
    with _errors():
        since, until = parse_activity_dates(after, before, datetime.now(timezone.utc))
        engine = get_engine(settings)
        with console.status("Fetching your activity..."):
            events = engine.get_my_activity(since, until)

    if not events:
        rprint("[dim]No activity in this period.[/dim]")
        return
    rprint(render.activity_table(events))


# ---------------------------------------------------------------------------
# team
# ---------------------------------------------------------------------------


@team_app.command("review")
def team_review(ctx: typer.Context) -> None:
    """Show unresolved merge requests per team member."""
    settings = get_settings(_profile(ctx))
    with _errors():
        engine = get_engine(settings)
        with console.status("Analyzing team workload..."):
            workloads = engine.analyze_active_mrs()

    rprint(render.team_workload_table(workloads, Issuer(settings.issue_url_template)))


# ---------------------------------------------------------------------------
# mr
# ---------------------------------------------------------------------------


@mr_app.command("roulette")
def mr_roulette(
    ctx: typer.Context,
    url: UrlArg = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Apply the suggestion without asking")] = False,
) -> None:
    """Suggest an assignee and a reviewer for a merge request."""
    settings = get_settings(_profile(ctx))
    with _errors():
        engine = get_engine(settings)
        mr = _resolve_mr(engine, settings, url)
        with console.status("Analyzing team workload..."):
            workloads = engine.analyze_workload(mr.project_id)
        assignee, reviewer = engine.suggest_assignee_and_reviewer(mr, workloads)

        rprint(render.roulette_table(mr, workloads, assignee, reviewer))
        rprint(f"Assignee: [bold]{assignee.username if assignee else 'None'}[/bold]")
        rprint(f"Reviewer: [bold]{reviewer.username if reviewer else 'None'}[/bold]")

        if assignee is None and reviewer is None:
            return
        if not yes and not typer.confirm("Apply these suggestions to the merge request?", default=False):
            return

        with console.status("Applying suggestions..."):
            engine.update_merge_request(
                mr.project_id,
                mr.iid,
                assignee.id if assignee else None,
                [reviewer.id] if reviewer else [],
            )
    rprint("[green]✓[/green] Merge request updated.")


@mr_app.command("status")
def mr_status(ctx: typer.Context, url: UrlArg = None) -> None:
    """Show approvals and staleness of a merge request."""
    settings = get_settings(_profile(ctx))
    with _errors():
        engine = get_engine(settings)
        mr = _resolve_mr(engine, settings, url)
        with console.status("Fetching approvals..."):
            status = engine.get_merge_request_status(mr.project_id, mr.iid)

    rprint(render.merge_request_status_table(status, Issuer(settings.issue_url_template)))


@mr_app.command("browse")
def mr_browse(ctx: typer.Context) -> None:
    """Open the current branch's merge request in the browser."""
    settings = get_settings(_profile(ctx))
    with _errors():
        mr = _resolve_mr(get_engine(settings), settings, None)
    webbrowser.open(mr.web_url)
    rprint(f"Opened {mr.web_url}")


# ---------------------------------------------------------------------------
# issue
# ---------------------------------------------------------------------------


@issue_app.command("browse")
def issue_browse(ctx: typer.Context) -> None:
    """Open the issue named in the current branch's merge request title."""
    settings = get_settings(_profile(ctx))
    issuer = Issuer(settings.issue_url_template)
    with _errors():
        mr = _resolve_mr(get_engine(settings), settings, None)
        number = issuer.extract_number(mr.title)
        if number is None:
            raise ValueError(f"no issue number found in merge request title: {mr.title}")
        issue_url = issuer.make_url(number)
        if issue_url is None:
            raise ValueError("issue URL template is not configured (MRW_ISSUE_URL_TEMPLATE)")
    webbrowser.open(issue_url)
    rprint(f"Opened {issue_url}")


# ---------------------------------------------------------------------------
# webhook
# ---------------------------------------------------------------------------


@app.command("hook")
def hook(
    ctx: typer.Context,
    host: Annotated[str | None, typer.Option("--host", help="Bind address (default: webhook_host)")] = None,
    port: Annotated[int | None, typer.Option("--port", help="Port (default: webhook_port)")] = None,
) -> None:
    """Serve the GitLab webhook that auto-assigns new merge requests."""
    import uvicorn

    from mrw.webhook import create_app

    settings = get_settings(_profile(ctx))
    with _errors():
        engine = get_engine(settings)
    uvicorn.run(create_app(engine), host=host or settings.webhook_host, port=port or settings.webhook_port)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@app.command("set-default")
def set_default(
    profile: Annotated[str, typer.Argument(help="Profile name to set as default")],
) -> None:
    """Set the default profile in ~/.config/mrw/config.toml."""
    if not CONFIG_PATH.exists():
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        doc = tomlkit.document()
        doc.add("default_profile", profile)
        CONFIG_PATH.write_text(tomlkit.dumps(doc))
        rprint(f'[green]✓[/green] Default profile set to "{profile}" in {CONFIG_PATH}')
        return

    doc = tomlkit.load(CONFIG_PATH.open())
    profiles = _list_profiles(doc)
    if profile not in profiles:
        rprint(f"[red]Profile '{profile}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}[/red]")
        raise typer.Exit(1)

    doc["default_profile"] = profile
    CONFIG_PATH.write_text(tomlkit.dumps(doc))
    rprint(f'[green]✓[/green] Default profile set to "{profile}" in {CONFIG_PATH}')


def _mask(val: str | None) -> str:
    if val is None:
        return "[dim](not set)[/dim]"
    if len(val) <= 5:
        return "***"
    return f"...{val[-5:]}"


@app.command("config-show")
def config_show(ctx: typer.Context, profile: ProfileOpt = None) -> None:
    """Show resolved configuration (masks the token)."""
    settings = load_settings(profile or _profile(ctx))

    table = Table(title="MRW Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("default_profile", settings.default_profile or "[dim](not set)[/dim]")
    table.add_row("base_url", settings.base_url)
    table.add_row("token", _mask(settings.token.get_secret_value() if settings.token else None))
    table.add_row("team", ", ".join(settings.team) or "[dim](not set)[/dim]")
    table.add_row("issue_url_template", settings.issue_url_template or "[dim](not set)[/dim]")
    table.add_row("webhook", f"{settings.webhook_host}:{settings.webhook_port}")
    table.add_row("max_workers", str(settings.max_workers))

    rprint(table)


@app.command("init")
def init_cmd() -> None:
    """Interactive first-time setup wizard."""
    rprint("[bold]MRW Setup Wizard[/bold]")
    rprint("")

    profile_name = typer.prompt("Profile name (e.g. work, personal)").strip()
    if not profile_name:
        rprint("[red]Profile name cannot be empty.[/red]")
        raise typer.Exit(1)

    base_url = typer.prompt("GitLab URL", default="https://gitlab.com").strip().rstrip("/")
    rprint(f"Create a Personal Access Token with the api scope at: {base_url}/-/user_settings/personal_access_tokens")
    token = typer.prompt("Paste token", hide_input=True).strip()

    team_input = typer.prompt("Team usernames (comma-separated)").strip()
    team = [name.strip() for name in team_input.split(",") if name.strip()]
    if not team:
        rprint("[red]Team cannot be empty.[/red]")
        raise typer.Exit(1)

    profile_config: dict = {"base_url": base_url, "token": token, "team": team}

    issue_template = typer.prompt("Issue URL template with {issue} (or leave blank)", default="").strip()
    if issue_template:
        profile_config["issue_url_template"] = issue_template

    verify = typer.confirm("Fetch your user to confirm the token works?", default=True)
    if verify:
        try:
            settings = MrwSettings(base_url=base_url, token=token, team=team)  # type: ignore[arg-type]
            user = GitLabProvider(settings).get_current_user()
            rprint(f"[green]✓[/green] Connected as {user.username}.")
        except MrwError as exc:
            rprint(f"[yellow]Warning:[/yellow] Could not fetch current user: {exc}")

    set_as_default = typer.confirm(f"Set '{profile_name}' as default profile?", default=True)

    # round-trip preserves any existing comments
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    doc = tomlkit.load(CONFIG_PATH.open()) if CONFIG_PATH.exists() else tomlkit.document()

    doc[profile_name] = profile_config
    if set_as_default:
        doc["default_profile"] = profile_name

    CONFIG_PATH.write_text(tomlkit.dumps(doc))
    rprint(f"[green]✓[/green] Profile '{profile_name}' written to {CONFIG_PATH}")
