"""GitLab REST API v4 provider."""

import logging
from collections.abc import Sequence
from datetime import date
from urllib.parse import quote

import httpx

from mrw.cache import UserCache
from mrw.errors import AuthError, GatewayError, NotFoundError
from mrw.fanout import FetchPolicy, fetch_all
from mrw.models import Commit, Event, MergeRequest, Project, User, UserStatus
from mrw.providers.base import GitProvider
from mrw.settings import MrwSettings

logger = logging.getLogger(__name__)

PER_PAGE = 100
MAX_PAGES = 20

_MR_TARGETS = ("merge_request", "mergerequest")
_ISSUE_TARGET = "issue"
_NOTE_TARGETS = ("note", "diffnote", "discussionnote")


class GitLabProvider(GitProvider):
    def __init__(self, settings: MrwSettings, cache: UserCache | None = None) -> None:
        if settings.token is None:
            raise RuntimeError("No GitLab token. Set MRW_TOKEN or run: mrw init")
        self._base_url = settings.base_url.rstrip("/")
        self._api_url = f"{self._base_url}/api/v4"
        self._headers = {"PRIVATE-TOKEN": settings.token.get_secret_value()}
        self._cache = cache
        self._max_workers = settings.max_workers

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, params: dict | None = None, body: dict | None = None) -> httpx.Response:
        try:
            response = httpx.request(
                method,
                f"{self._api_url}{path}",
                headers=self._headers,
                params=params or {},
                json=body,
                timeout=30,
            )
        except httpx.TransportError as exc:
            raise GatewayError(f"GitLab API {method} {path} failed: {exc}") from exc
        if response.status_code in (401, 403):
            raise AuthError(
                f"GitLab API returned {response.status_code}. Check MRW_TOKEN or the token in your config profile."
            )
        if response.status_code == 404:
            raise NotFoundError(f"GitLab API {method} {path}: not found")
        if response.is_error:
            raise GatewayError(f"GitLab API {method} {path} returned {response.status_code}")
        return response

    def _get(self, path: str, params: dict | None = None) -> dict | list:
        return self._request("GET", path, params).json()

    def _get_pages(self, path: str, params: dict | None = None) -> list:
        """Follow ``x-next-page`` up to MAX_PAGES pages."""
        items: list = []
        page = "1"
        for _ in range(MAX_PAGES):
            response = self._request("GET", path, {**(params or {}), "per_page": PER_PAGE, "page": page})
            items.extend(response.json())
            page = response.headers.get("x-next-page", "")
            if not page:
                break
        return items

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def _get_user_status(self, user_id: int) -> UserStatus:
        node = self._get(f"/users/{user_id}/status")
        return UserStatus(
            message=node.get("message") or "",  # type: ignore[union-attr]
            availability=node.get("availability") or "",  # type: ignore[union-attr]
        )

    def _user_from_node(self, node: dict, status: UserStatus | None = None) -> User:
        return User(
            id=node["id"],
            username=node["username"],
            email=node.get("email") or node.get("public_email") or "",
            status=status or UserStatus(),
        )

    def _hydrate(self, node: dict) -> User:
        user = self._user_from_node(node, self._get_user_status(node["id"]))
        if self._cache is not None:
            self._cache.put(user)
        return user

    def get_user(self, user_id: int) -> User:
        """Fetch one user with status, consulting the cache first."""
        if self._cache is not None:
            cached = self._cache.get_by_id(user_id)
            if cached is not None:
                return cached
        return self._hydrate(self._get(f"/users/{user_id}"))  # type: ignore[arg-type]

    def _get_users(self, user_ids: Sequence[int]) -> dict[int, User]:
        return fetch_all(user_ids, self.get_user, policy=FetchPolicy.STRICT, max_workers=self._max_workers)

    def get_user_by_username(self, username: str) -> User:
        nodes = self._get("/users", params={"username": username})
        if not nodes:
            raise NotFoundError(f"user not found: {username}")
        return self._hydrate(nodes[0])  # type: ignore[index]

    def get_current_user(self) -> User:
        return self._hydrate(self._get("/user"))  # type: ignore[arg-type]

    def get_all_users(self) -> list[User]:
        nodes = self._get_pages("/users", params={"active": "true", "humans": "true"})
        return [self._user_from_node(node) for node in nodes]

    def preload_users_by_usernames(self, usernames: Sequence[str]) -> list[User]:
        wanted = set(usernames)
        nodes = self._get_pages("/users", params={"active": "true", "humans": "true"})
        matching = {node["id"]: node for node in nodes if node["username"] in wanted}
        loaded = fetch_all(
            matching,
            lambda user_id: self._hydrate(matching[user_id]),
            policy=FetchPolicy.LENIENT,
            max_workers=self._max_workers,
        )
        return list(loaded.values())

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def get_project(self, path: str) -> Project:
        node = self._get(f"/projects/{quote(str(path), safe='')}")
        return Project(
            id=node["id"],  # type: ignore[index]
            path=node.get("path_with_namespace") or node.get("path", ""),  # type: ignore[union-attr]
        )

    def _get_project_paths(self, project_ids: Sequence[int]) -> dict[int, str]:
        # one missing project must not hide the rest of the events
        projects = fetch_all(
            project_ids,
            lambda project_id: self.get_project(str(project_id)),
            policy=FetchPolicy.LENIENT,
            max_workers=self._max_workers,
        )
        return {project_id: project.path for project_id, project in projects.items()}

    # ------------------------------------------------------------------
    # Merge requests
    # ------------------------------------------------------------------

    @staticmethod
    def _participant_ids(node: dict) -> list[int]:
        ids = [node["author"]["id"]] if node.get("author") else []
        if node.get("assignee"):
            ids.append(node["assignee"]["id"])
        ids.extend(reviewer["id"] for reviewer in node.get("reviewers") or [])
        return ids

    @staticmethod
    def _mr_from_node(node: dict, users: dict[int, User]) -> MergeRequest:
        author = node.get("author")
        assignee = node.get("assignee")
        return MergeRequest(
            id=node["id"],
            iid=node["iid"],
            title=node.get("title") or "",
            description=node.get("description"),
            web_url=node.get("web_url") or "",
            author=users.get(author["id"]) if author else None,
            assignee=users.get(assignee["id"]) if assignee else None,
            reviewers=[users[r["id"]] for r in node.get("reviewers") or [] if r["id"] in users],
            created_at=node["created_at"],
            updated_at=node["updated_at"],
            project_id=node["project_id"],
            draft=bool(node.get("draft") or node.get("work_in_progress")),
            source_branch=node.get("source_branch") or "",
        )

    def list_merge_requests(self, state: str, *scope: str) -> list[MergeRequest]:
        params = {"state": state}
        if scope:
            params["scope"] = scope[0]
        nodes = self._get_pages("/merge_requests", params=params)
        users = self._get_users([uid for node in nodes for uid in self._participant_ids(node)])
        return [self._mr_from_node(node, users) for node in nodes]

    def get_merge_request(self, project_id: int, iid: int) -> MergeRequest:
        node = self._get(f"/projects/{project_id}/merge_requests/{iid}")
        users = self._get_users(self._participant_ids(node))  # type: ignore[arg-type]
        return self._mr_from_node(node, users)  # type: ignore[arg-type]

    def get_merge_request_approvals(self, project_id: int, iid: int) -> list[User]:
        node = self._get(f"/projects/{project_id}/merge_requests/{iid}/approvals")
        approver_ids = [entry["user"]["id"] for entry in node.get("approved_by") or []]  # type: ignore[union-attr]
        users = self._get_users(approver_ids)
        return [users[user_id] for user_id in approver_ids]

    def update_merge_request(
        self,
        project_id: int,
        iid: int,
        assignee_id: int | None,
        reviewer_ids: Sequence[int],
    ) -> None:
        body: dict = {}
        if assignee_id is not None:
            body["assignee_id"] = assignee_id
        if reviewer_ids:
            body["reviewer_ids"] = list(reviewer_ids)
        self._request("PUT", f"/projects/{project_id}/merge_requests/{iid}", body=body)

    # ------------------------------------------------------------------
    # Commits and events
    # ------------------------------------------------------------------

    def list_commits(self, project_id: int) -> list[Commit]:
        # NOTE: first page only (up to 100 most recent commits).
        nodes = self._get(f"/projects/{project_id}/repository/commits", params={"per_page": PER_PAGE})
        return [
            Commit(
                id=node["id"],
                author_name=node.get("author_name") or "",
                author_email=node.get("author_email") or "",
                created_at=node.get("created_at"),
                message=node.get("message") or "",
                web_url=node.get("web_url") or "",
            )
            for node in nodes  # type: ignore[union-attr]
        ]

    def get_user_events(self, user_id: int, since: date, until: date | None = None) -> list[Event]:
        # GitLab filters events by date only; after/before are exclusive
        params = {"after": since.strftime("%Y-%m-%d"), "per_page": PER_PAGE}
        if until is not None:
            params["before"] = until.strftime("%Y-%m-%d")
        nodes = self._get(f"/users/{user_id}/events", params=params)
        project_ids = [node["project_id"] for node in nodes if node.get("project_id")]  # type: ignore[union-attr]
        paths = self._get_project_paths(project_ids) if project_ids else {}
        return [self._event_from_node(node, paths.get(node.get("project_id"), "")) for node in nodes]  # type: ignore[union-attr]

    def _event_from_node(self, node: dict, project_path: str) -> Event:
        push = node.get("push_data") or {}
        note = node.get("note") or {}
        return Event(
            id=node["id"],
            action=node.get("action_name") or "",
            target_type=node.get("target_type"),
            target_title=node.get("target_title"),
            target_id=node.get("target_id"),
            project_id=node.get("project_id"),
            project_path=project_path,
            created_at=node["created_at"],
            web_url=self.event_url(node, project_path),
            push_ref=push.get("ref") or "",
            push_action=push.get("action") or "",
            commit_count=push.get("commit_count") or 0,
            commit_title=push.get("commit_title") or "",
            note_body=note.get("body") or "",
            noteable_type=note.get("noteable_type") or "",
        )

    def event_url(self, node: dict, project_path: str) -> str:
        """Best-effort link to an event's target, or "" when it cannot be determined."""
        if not project_path:
            return ""
        target_type = (node.get("target_type") or "").lower()
        action = (node.get("action_name") or "").lower()
        target_iid = node.get("target_iid") or 0
        note = node.get("note") or {}
        project_url = f"{self._base_url}/{project_path}"

        if target_type in _NOTE_TARGETS or "comment" in action:
            noteable_type = (note.get("noteable_type") or "").lower()
            noteable_iid = note.get("noteable_iid") or target_iid
            if noteable_type in _MR_TARGETS and noteable_iid:
                return f"{project_url}/-/merge_requests/{noteable_iid}#note_{note.get('id')}"
            if noteable_type == _ISSUE_TARGET and noteable_iid:
                return f"{project_url}/-/issues/{noteable_iid}#note_{note.get('id')}"
            if target_iid and any(t in target_type for t in _MR_TARGETS):
                return f"{project_url}/-/merge_requests/{target_iid}"
            if target_iid and _ISSUE_TARGET in target_type:
                return f"{project_url}/-/issues/{target_iid}"
            return ""

        if target_type in _MR_TARGETS and target_iid:
            return f"{project_url}/-/merge_requests/{target_iid}"
        if target_type == _ISSUE_TARGET and target_iid:
            return f"{project_url}/-/issues/{target_iid}"
        return ""
