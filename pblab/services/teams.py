from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pblab.errors import BusinessLogicError, DatabaseError, NotFoundError
from pblab.models import Team, TeamMembership
from pblab.security import InviteTokenExpired, InviteTokenInvalid, create_team_invite_token, decode_team_invite_token
from pblab.services.access import is_team_member, require_project_creation_permissions, verify_course_access
from pblab.services.identity import Actor
from pblab.validation import required_id, required_string

log = logging.getLogger(__name__)


def generate_team_invite(session: Session, actor: Actor, team_id: str) -> str:
    """Signed 24h invite token for ``team_id``. Educators may only invite to their own courses."""
    require_project_creation_permissions(actor.role)
    team = session.get(Team, required_id(team_id, "Team ID"))
    if team is None:
        raise NotFoundError("Team", team_id)
    verify_course_access(session, team.course_id, actor)
    return create_team_invite_token(team.id)


def verify_team_invite(session: Session, token: str) -> dict[str, Any]:
    token = required_string(token, "Token")
    try:
        payload = decode_team_invite_token(token)
    except InviteTokenExpired:
        raise BusinessLogicError(
            "invite_expired", "This invite link has expired. Please request a new invitation."
        ) from None
    except InviteTokenInvalid as exc:
        log.info("Rejected team invite token: %s", exc)
        raise BusinessLogicError(
            "invite_invalid", "This invite link is invalid or has been tampered with."
        ) from None

    team = session.get(Team, payload["team_id"])
    if team is None:
        raise BusinessLogicError(
            "invite_team_missing", "This invite link is no longer valid - the team may have been deleted"
        )
    return {
        "team_id": team.id,
        "team_name": team.name,
        "course_id": team.course_id,
        "course_name": team.course.name,
        "expires_at": datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    }


def join_team(session: Session, actor: Actor, team_id: str) -> str:
    team = session.get(Team, required_id(team_id, "Team ID"))
    if team is None:
        raise NotFoundError("Team", team_id)
    if is_team_member(session, team.id, actor.id):
        raise BusinessLogicError("already_member", "You are already a member of this team")

    session.add(TeamMembership(team_id=team.id, user_id=actor.id))
    try:
        session.commit()
    except IntegrityError:
        # lost a race against a concurrent join for the same pair
        session.rollback()
        raise BusinessLogicError("already_member", "You are already a member of this team") from None
    except SQLAlchemyError as exc:
        session.rollback()
        log.exception("Failed to add user %s to team %s", actor.id, team.id)
        raise DatabaseError("join_team", str(exc), exc, {"team_id": team.id}) from exc

    log.info("User %s joined team %s", actor.id, team.id)
    return f"Successfully joined {team.name}"


def join_team_with_invite(session: Session, actor: Actor, token: str) -> dict[str, Any]:
    invite = verify_team_invite(session, token)
    message = join_team(session, actor, invite["team_id"])
    return {"team_id": invite["team_id"], "team_name": invite["team_name"], "message": message}
