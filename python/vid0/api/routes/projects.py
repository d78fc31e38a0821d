"""Project routes.

The original unversioned collection endpoints (GET/POST /api/projects) are
retired and answer 410 with a hint; the collection now lives under
/api/v2/projects. Single-project endpoints are unchanged.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from vid0.api.deps import get_db, get_storage
from vid0.auth.middleware import Viewer, get_viewer
from vid0.errors import GoneError
from vid0.responses import success_response
from vid0.schemas.project import ProjectNameRequest
from vid0.services import chats as chats_service
from vid0.services import projects as projects_service
from vid0.storage import StorageClientBase

router = APIRouter(tags=["projects"])

LEGACY_PROJECTS_MESSAGE = "This endpoint has been removed."
LEGACY_PROJECTS_HINT = "Use /api/v2/projects instead."


@router.get("/api/projects")
def legacy_list_projects() -> dict:
    raise GoneError(LEGACY_PROJECTS_MESSAGE, LEGACY_PROJECTS_HINT)


@router.post("/api/projects")
def legacy_create_project() -> dict:
    raise GoneError(LEGACY_PROJECTS_MESSAGE, LEGACY_PROJECTS_HINT)


@router.get("/api/v2/projects")
def list_projects(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    projects = projects_service.list_projects(db, viewer.user_id)
    return success_response([p.model_dump(mode="json") for p in projects])


@router.post("/api/v2/projects", status_code=201)
def create_project(
    body: ProjectNameRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a project.

    Errors:
        E_NAME_INVALID (400): Name missing or blank after trimming.
    """
    project = projects_service.create_project(db, viewer.user_id, body.name)
    return success_response(project.model_dump(mode="json"))


@router.get("/api/projects/{project_id}")
def get_project(
    project_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    project = projects_service.get_project(db, viewer.user_id, project_id)
    return success_response(project.model_dump(mode="json"))


@router.put("/api/projects/{project_id}")
def rename_project(
    project_id: UUID,
    body: ProjectNameRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    project = projects_service.rename_project(db, viewer.user_id, project_id, body.name)
    return success_response(project.model_dump(mode="json"))


@router.delete("/api/projects/{project_id}", status_code=204)
def delete_project(
    project_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> Response:
    """Delete a project and all of its chats, messages and attachments."""
    projects_service.delete_project(db, viewer.user_id, project_id, storage=storage)
    return Response(status_code=204)


@router.get("/api/projects/{project_id}/chats")
def list_project_chats(
    project_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    chats = chats_service.list_chats_for_project(db, viewer.user_id, project_id)
    return success_response([c.model_dump(mode="json") for c in chats])
