"""
Comments with @mentions and the notifications they produce.

The comment is the primary write and is committed on its own. Mention
notifications are delivered afterwards, one at a time; a failure for one
recipient is logged and skipped and never touches the comment.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pblab.config import settings
from pblab.errors import AuthorizationError, DatabaseError, NotFoundError, PBLabError
from pblab.models import Comment, Notification, NotificationType, Project, TeamMembership, User, UserRole
from pblab.services.access import load_project, validate_project_not_closed, verify_artifact_permissions
from pblab.services.artifacts import load_artifact
from pblab.services.identity import Actor
from pblab.utils import dedupe
from pblab.validation import id_list, optional_string, required_id, required_string, validate_enum, validate_range

log = logging.getLogger(__name__)

SKIPPED = {"skipped": True, "reason": "self_notification"}


def project_link(project_id: str) -> str:
    return f"/p/{project_id}"


def _mentionable_users(session: Session, project: Project) -> list[User]:
    students = (
        session.query(User)
        .join(TeamMembership, TeamMembership.user_id == User.id)
        .filter(TeamMembership.team_id == project.team_id, User.role == UserRole.STUDENT.value)
        .order_by(User.name, User.email)
        .all()
    )
    users = list(students)
    course_admin = project.team.course.admin
    if course_admin is not None:
        users.append(course_admin)

    by_id = {}
    for user in users:
        by_id.setdefault(user.id, user)
    return list(by_id.values())


def get_project_mentionable_users(session: Session, actor: Actor, project_id: str) -> list[dict[str, Any]]:
    """Student members of the project's team plus the course's educator. Only authentication is required."""
    project = load_project(session, required_id(project_id, "Project ID"))
    return [{"id": u.id, "name": u.name, "email": u.email} for u in _mentionable_users(session, project)]


def create_notification(
    session: Session,
    actor: Actor,
    recipient_id: str,
    type: str,
    reference_id: str,
    reference_url: Optional[str] = None,
) -> dict[str, Any]:
    """
    Insert one notification from ``actor``. The actor id always comes from the
    authenticated caller. Notifying yourself is a no-op returning ``SKIPPED``.
    """
    recipient_id = required_id(recipient_id, "Recipient ID")
    notification_type = validate_enum(type, "Notification type", NotificationType)
    reference_id = required_id(reference_id, "Reference ID")
    reference_url = optional_string(reference_url, "Reference URL", 2048)

    if recipient_id == actor.id:
        return dict(SKIPPED)

    if session.get(User, recipient_id) is None:
        raise NotFoundError("User", recipient_id)

    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor.id,
        type=notification_type.value,
        reference_id=reference_id,
        reference_url=reference_url,
    )
    session.add(notification)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError(
            "create_notification", str(exc), exc, {"recipient_id": recipient_id, "actor_id": actor.id}
        ) from exc
    return {"skipped": False, "id": notification.id}


def create_comment(
    session: Session,
    actor: Actor,
    artifact_id: str,
    body: str,
    mentioned_user_ids: Optional[Iterable[str]] = None,
) -> str:
    artifact_id = required_id(artifact_id, "Artifact ID")
    body = required_string(body, "Comment body", settings.COMMENT_MAX_LENGTH)
    mentioned = id_list(mentioned_user_ids, "Mentioned user ID")

    artifact = load_artifact(session, artifact_id)
    project = artifact.project
    validate_project_not_closed(project.phase, "add comments to")
    verify_artifact_permissions(session, actor, artifact.uploader_id, project.team, require_ownership=False)

    comment = Comment(artifact_id=artifact.id, author_id=actor.id, body=body)
    session.add(comment)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        log.exception("Failed to create comment on artifact %s", artifact_id)
        raise DatabaseError("create_comment", str(exc), exc, {"artifact_id": artifact_id}) from exc

    if mentioned:
        _notify_mentions(session, actor, project, comment.id, mentioned)
    return comment.id


def _notify_mentions(session: Session, actor: Actor, project: Project, comment_id: str, mentioned: list[str]) -> int:
    allowed = {u.id for u in _mentionable_users(session, project)}
    recipients = [uid for uid in dedupe(mentioned, exclude=actor.id) if uid in allowed]
    dropped = len(set(mentioned) - {actor.id}) - len(recipients)
    if dropped:
        log.info("Dropped %d out-of-scope mention(s) on comment %s", dropped, comment_id)

    sent = 0
    for recipient_id in recipients:
        try:
            create_notification(
                session,
                actor,
                recipient_id,
                NotificationType.MENTION_IN_COMMENT.value,
                comment_id,
                project_link(project.id),
            )
            sent += 1
        except PBLabError:
            log.warning("Mention notification to %s for comment %s failed", recipient_id, comment_id, exc_info=True)
    return sent


def mark_notification_as_read(session: Session, actor: Actor, notification_id: str) -> str:
    notification_id = required_id(notification_id, "Notification ID")
    notification = session.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError("Notification", notification_id)
    if notification.recipient_id != actor.id:
        raise AuthorizationError("mark_notification_read", "not the recipient", actor.role)

    if notification.is_read:
        return "Notification already marked as read"

    notification.is_read = True
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError("mark_notification_as_read", str(exc), exc, {"notification_id": notification_id}) from exc
    return "Notification marked as read"


def get_notifications(
    session: Session,
    actor: Actor,
    unread_only: bool = False,
    limit: int = settings.NOTIFICATIONS_DEFAULT_LIMIT,
) -> list[dict[str, Any]]:
    limit = validate_range(limit, "Limit", 1, 100)
    query = session.query(Notification).filter(Notification.recipient_id == actor.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    rows = query.order_by(Notification.created_at.desc()).limit(limit).all()
    return [
        {
            "id": n.id,
            "recipient_id": n.recipient_id,
            "actor_id": n.actor_id,
            "type": n.type,
            "reference_id": n.reference_id,
            "reference_url": n.reference_url,
            "is_read": n.is_read,
            "created_at": n.created_at,
            "actor": {"id": n.actor.id, "name": n.actor.name, "email": n.actor.email},
        }
        for n in rows
    ]
