"""Project service layer.

Projects group a user's chats. They are private: other users get
E_PROJECT_NOT_FOUND on reads and E_FORBIDDEN on writes. Deleting a project
deletes its chats, their messages and attachments.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from vid0.db.models import Chat, Project
from vid0.db.session import transaction
from vid0.errors import ApiErrorCode, ForbiddenError, InvalidRequestError, NotFoundError
from vid0.logging import get_logger
from vid0.schemas.project import ProjectOut
from vid0.services.chats import delete_chat_rows, purge_blobs
from vid0.storage import StorageClientBase

logger = get_logger(__name__)

MAX_PROJECT_NAME_LENGTH = 200


def project_to_out(project: Project) -> ProjectOut:
    return ProjectOut.model_validate(project)


def validate_project_name(name: str | None) -> str:
    """Trim and validate a project name.

    Raises:
        InvalidRequestError(E_NAME_INVALID): Empty after trimming, or too long.
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise InvalidRequestError(ApiErrorCode.E_NAME_INVALID, "Project name is required")
    if len(trimmed) > MAX_PROJECT_NAME_LENGTH:
        raise InvalidRequestError(
            ApiErrorCode.E_NAME_INVALID,
            f"Project name must be at most {MAX_PROJECT_NAME_LENGTH} characters",
        )
    return trimmed


def _get_owned_project(db: Session, viewer_id: UUID, project_id: UUID) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFoundError(ApiErrorCode.E_PROJECT_NOT_FOUND, "Project not found")
    if project.user_id != viewer_id:
        logger.warning("project_mutation_forbidden", project_id=str(project_id))
        raise ForbiddenError()
    return project


def list_projects(db: Session, viewer_id: UUID) -> list[ProjectOut]:
    projects = db.scalars(
        select(Project)
        .where(Project.user_id == viewer_id)
        .order_by(Project.created_at.desc(), Project.id.desc())
    ).all()
    return [project_to_out(p) for p in projects]


def get_project(db: Session, viewer_id: UUID, project_id: UUID) -> ProjectOut:
    """Owner-only read; anyone else sees E_PROJECT_NOT_FOUND."""
    project = db.get(Project, project_id)
    if project is None or project.user_id != viewer_id:
        raise NotFoundError(ApiErrorCode.E_PROJECT_NOT_FOUND, "Project not found")
    return project_to_out(project)


def create_project(db: Session, viewer_id: UUID, name: str | None) -> ProjectOut:
    project = Project(user_id=viewer_id, name=validate_project_name(name))
    db.add(project)
    db.flush()
    db.commit()

    logger.info("project_created", project_id=str(project.id))
    return project_to_out(project)


def rename_project(db: Session, viewer_id: UUID, project_id: UUID, name: str | None) -> ProjectOut:
    trimmed = validate_project_name(name)
    project = _get_owned_project(db, viewer_id, project_id)
    project.name = trimmed
    project.updated_at = datetime.now(UTC)
    db.flush()
    db.commit()
    return project_to_out(project)


def delete_project(
    db: Session, viewer_id: UUID, project_id: UUID, storage: StorageClientBase | None = None
) -> None:
    """Delete a project and every chat in it, children first."""
    project = _get_owned_project(db, viewer_id, project_id)

    chat_ids = list(db.scalars(select(Chat.id).where(Chat.project_id == project_id)))
    with transaction(db):
        paths = delete_chat_rows(db, chat_ids)
        db.delete(project)
    purge_blobs(storage, paths)

    logger.info("project_deleted", project_id=str(project_id), chats=len(chat_ids))
