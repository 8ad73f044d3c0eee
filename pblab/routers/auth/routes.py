from dataclasses import asdict

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from pblab.config import settings
from pblab.dependencies import get_db, require_user
from pblab.schemas.auth import AcceptInviteRequest, LoginForm
from pblab.services.auth import accept_user_invite, authenticate, verify_user_invite
from pblab.services.identity import Actor

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", name="auth.login")
def login_action(
    response: Response,
    form: LoginForm = Depends(LoginForm.as_form),
    session: Session = Depends(get_db),
):
    """Checks credentials and issues a JWT, both in the body and as an http-only cookie."""
    user, token = authenticate(session, form.email, form.password)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite=settings.SESSION_COOKIE_SAMESITE.lower(),
        secure=settings.SESSION_COOKIE_SECURE,
    )
    return {
        "success": True,
        "token": token,
        "data": {"id": user.id, "email": user.email, "name": user.name, "role": user.role},
    }


@router.post("/logout", name="auth.logout")
def logout(response: Response):
    """Logs out the user by clearing the JWT cookie."""
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return {"success": True, "message": "Signed out"}


@router.get("/me", name="auth.me")
def me(actor: Actor = Depends(require_user)):
    return {"success": True, "data": asdict(actor)}


@router.get("/invite", name="auth.verify_invite")
def verify_invite(token: str):
    return {"success": True, "data": verify_user_invite(token)}


@router.post("/accept-invite", name="auth.accept_invite")
def accept_invite(body: AcceptInviteRequest, session: Session = Depends(get_db)):
    user_id = accept_user_invite(session, body.token, body.password)
    return {"success": True, "id": user_id}
