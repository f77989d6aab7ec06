"""Working-copy context: origin remote, current branch and GitLab URL helpers."""

import subprocess

from mrw.errors import GitContextError


def _git(*args: str) -> str:
    try:
        result = subprocess.run(["git", *args], capture_output=True, text=True)
    except OSError as exc:
        raise GitContextError(f"git is not available: {exc}") from exc
    if result.returncode != 0:
        raise GitContextError(f"git {' '.join(args)} failed: {result.stderr.strip() or 'not a git repository'}")
    return result.stdout.strip()


def remote_url() -> str:
    return _git("remote", "get-url", "origin")


def current_branch() -> str:
    branch = _git("branch", "--show-current")
    if not branch:
        raise GitContextError("no current branch (detached HEAD?)")
    return branch


def remote_and_branch() -> tuple[str, str]:
    return remote_url(), current_branch()


def project_path_from_remote(url: str) -> str:
    """Return ``namespace/project`` for an SSH or HTTPS remote.

    git@gitlab.com:group/app.git      → group/app
    https://gitlab.com/group/app.git  → group/app
    """
    cleaned = url.strip().removesuffix(".git")
    if cleaned.startswith("git@"):
        parts = cleaned.split(":")
        if len(parts) != 2 or not parts[1]:
            raise GitContextError(f"invalid SSH remote URL: {url}")
        return parts[1]
    parts = [part for part in cleaned.split("/") if part]
    if len(parts) < 2:
        raise GitContextError(f"invalid HTTPS remote URL: {url}")
    return "/".join(parts[-2:])


def new_merge_request_url(remote: str, branch: str) -> str:
    """Link to GitLab's "new merge request" form prefilled with ``branch``."""
    web_url = remote.strip()
    if web_url.startswith("git@"):
        host, _, path = web_url[4:].partition(":")
        web_url = f"https://{host}/{path}"
    web_url = web_url.removesuffix(".git")
    return f"{web_url}/-/merge_requests/new?merge_request[source_branch]={branch}"


def parse_mr_url(base_url: str, url: str) -> tuple[str, int]:
    """Split a merge request URL into ``(project_path, iid)``.

    Raises ValueError when the URL is not a merge request link.
    """
    parts = url.strip().split("/-/merge_requests/")
    if len(parts) != 2:
        raise ValueError(f"invalid merge request URL: {url}")
    project_path = parts[0].removeprefix(base_url.rstrip("/") + "/")
    iid_part = parts[1].split("/", 1)[0].split("#", 1)[0].split("?", 1)[0]
    try:
        iid = int(iid_part)
    except ValueError as exc:
        raise ValueError(f"invalid merge request ID in URL: {url}") from exc
    return project_path, iid
