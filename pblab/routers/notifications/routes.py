from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pblab.config import settings
from pblab.dependencies import get_db, require_user
from pblab.schemas.notification import NotificationCreate
from pblab.services.identity import Actor
from pblab.services.notifications import (
    create_notification,
    get_notifications,
    get_project_mentionable_users,
    mark_notification_as_read,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", name="notifications.list")
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(default=settings.NOTIFICATIONS_DEFAULT_LIMIT),
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
):
    return {"success": True, "data": get_notifications(session, actor, unread_only=unread_only, limit=limit)}


@router.post("", name="notifications.create")
def create(body: NotificationCreate, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    result = create_notification(session, actor, body.recipient_id, body.type, body.reference_id, body.reference_url)
    if result["skipped"]:
        return {"success": True, "data": result}
    return {"success": True, "id": result["id"]}


@router.post("/{notification_id}/read", name="notifications.mark_read")
def mark_read(notification_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "message": mark_notification_as_read(session, actor, notification_id)}


@router.get("/mentionable/{project_id}", name="notifications.mentionable")
def mentionable(project_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": get_project_mentionable_users(session, actor, project_id)}
