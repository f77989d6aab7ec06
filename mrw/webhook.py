"""GitLab merge request webhook: auto-assign new merge requests."""

import logging

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from mrw.engine import Engine
from mrw.errors import GatewayError, SuggestionError

logger = logging.getLogger(__name__)


class HookProject(BaseModel):
    id: int


class HookAttributes(BaseModel):
    iid: int
    state: str = ""
    title: str = ""
    description: str | None = None
    work_in_progress: bool = False
    draft: bool = False
    assignee_id: int | None = None
    author_id: int | None = None


class HookPayload(BaseModel):
    object_kind: str
    project: HookProject | None = None
    object_attributes: HookAttributes | None = None


def create_app(engine: Engine) -> FastAPI:
    app = FastAPI(title="mrw webhook", description="Assigns reviewers to new GitLab merge requests")

    @app.get("/healthz")
    def healthz() -> dict:
        return {"status": "ok"}

    @app.post("/gitlab/hook")
    def gitlab_hook(payload: HookPayload) -> dict:
        if payload.object_kind != "merge_request" or payload.project is None or payload.object_attributes is None:
            return {"status": "ignored"}

        attrs = payload.object_attributes
        if attrs.work_in_progress or attrs.draft or attrs.assignee_id:
            return {"status": "ignored"}

        project_id = payload.project.id
        try:
            mr = engine.get_merge_request(project_id, attrs.iid)
            workloads = engine.analyze_workload(project_id)
            assignee, reviewer = engine.suggest_assignee_and_reviewer(mr, workloads)
        except SuggestionError as exc:
            logger.warning("no suggestion for %s!%d: %s", project_id, attrs.iid, exc)
            return {"status": "skipped", "reason": str(exc)}
        except GatewayError as exc:
            logger.error("webhook for %s!%d failed: %s", project_id, attrs.iid, exc)
            raise HTTPException(status_code=500, detail="Internal server error") from exc

        if assignee is None and reviewer is None:
            return {"status": "skipped", "reason": "no candidates"}

        try:
            engine.update_merge_request(
                mr.project_id,
                mr.iid,
                assignee.id if assignee is not None else None,
                [reviewer.id] if reviewer is not None else [],
            )
        except GatewayError as exc:
            logger.error("could not update %s!%d: %s", project_id, attrs.iid, exc)
            raise HTTPException(status_code=500, detail="Internal server error") from exc

        logger.info(
            "assigned %s!%d to %s, reviewer %s",
            project_id,
            attrs.iid,
            assignee.username if assignee else None,
            reviewer.username if reviewer else None,
        )
        return {
            "status": "assigned",
            "assignee": assignee.username if assignee else None,
            "reviewer": reviewer.username if reviewer else None,
        }

    return app
