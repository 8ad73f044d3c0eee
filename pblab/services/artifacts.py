from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pblab.errors import DatabaseError, NotFoundError, ValidationError
from pblab.models import Artifact, ArtifactType, Comment
from pblab.services.access import (
    validate_project_not_closed,
    verify_artifact_permissions,
    verify_project_access,
)
from pblab.services.file_validation import validate_file_type
from pblab.services.identity import Actor
from pblab.utils import is_valid_url
from pblab.validation import required_id, required_string, validate_enum

log = logging.getLogger(__name__)


def create_artifact(
    session: Session,
    actor: Actor,
    project_id: str,
    title: str,
    url: str,
    type: str,
    mime_type: Optional[str] = None,
    file_name: Optional[str] = None,
) -> str:
    project_id = required_id(project_id, "Project ID")
    title = required_string(title, "Artifact title", 255)
    url = required_string(url, "Artifact URL", 2048)
    artifact_type = validate_enum(type, "Artifact type", ArtifactType)

    if artifact_type is ArtifactType.LINK:
        if not is_valid_url(url):
            raise ValidationError("URL format", "is invalid for external link", url)
    elif not validate_file_type(mime_type, file_name or url):
        raise ValidationError("File type", "not allowed. Please upload a supported file format", mime_type or file_name)

    project = verify_project_access(session, project_id, actor)
    validate_project_not_closed(project.phase, "add artifacts to")

    artifact = Artifact(
        project_id=project.id,
        uploader_id=actor.id,
        title=title,
        url=url,
        type=artifact_type.value,
    )
    session.add(artifact)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        log.exception("Failed to create artifact on project %s", project_id)
        raise DatabaseError("create_artifact", str(exc), exc, {"project_id": project_id}) from exc
    return artifact.id


def load_artifact(session: Session, artifact_id: str) -> Artifact:
    artifact = session.get(Artifact, artifact_id)
    if artifact is None:
        raise NotFoundError("Artifact", artifact_id)
    return artifact


def delete_artifact(session: Session, actor: Actor, artifact_id: str) -> None:
    artifact = load_artifact(session, artifact_id)
    project = artifact.project
    validate_project_not_closed(project.phase, "delete artifacts from")
    verify_artifact_permissions(session, actor, artifact.uploader_id, project.team, require_ownership=True)

    session.delete(artifact)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        log.exception("Failed to delete artifact %s", artifact_id)
        raise DatabaseError("delete_artifact", str(exc), exc, {"artifact_id": artifact_id}) from exc
    log.info("User %s deleted artifact %s (%s)", actor.id, artifact_id, artifact.title)


def list_project_artifacts(session: Session, actor: Actor, project_id: str) -> list[dict[str, Any]]:
    project = verify_project_access(session, project_id, actor)
    artifacts = (
        session.query(Artifact)
        .filter(Artifact.project_id == project.id)
        .order_by(Artifact.created_at.desc())
        .all()
    )
    return [
        {
            "id": a.id,
            "title": a.title,
            "url": a.url,
            "type": a.type,
            "uploader_id": a.uploader_id,
            "uploader_name": a.uploader.display_name if a.uploader else None,
            "comment_count": len(a.comments),
            "created_at": a.created_at,
        }
        for a in artifacts
    ]


def list_artifact_comments(session: Session, actor: Actor, artifact_id: str) -> list[dict[str, Any]]:
    artifact = load_artifact(session, artifact_id)
    verify_project_access(session, artifact.project_id, actor)
    comments = (
        session.query(Comment)
        .filter(Comment.artifact_id == artifact.id)
        .order_by(Comment.created_at.asc())
        .all()
    )
    return [
        {
            "id": c.id,
            "body": c.body,
            "author_id": c.author_id,
            "author_name": c.author.display_name if c.author else None,
            "created_at": c.created_at,
        }
        for c in comments
    ]
