from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pblab.dependencies import get_db, require_user
from pblab.schemas.team import InviteToken
from pblab.services.identity import Actor
from pblab.services.teams import generate_team_invite, join_team, join_team_with_invite, verify_team_invite

router = APIRouter(prefix="/teams", tags=["teams"])


@router.post("/{team_id}/invite", name="teams.invite")
def invite(team_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "token": generate_team_invite(session, actor, team_id)}


@router.post("/invites/verify", name="teams.verify_invite")
def verify_invite(body: InviteToken, session: Session = Depends(get_db)):
    return {"success": True, "data": verify_team_invite(session, body.token)}


@router.post("/join", name="teams.join_with_invite")
def join_with_invite(body: InviteToken, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": join_team_with_invite(session, actor, body.token)}


@router.post("/{team_id}/join", name="teams.join")
def join(team_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "message": join_team(session, actor, team_id)}
