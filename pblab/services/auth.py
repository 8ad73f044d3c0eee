from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pblab.errors import AuthenticationError, BusinessLogicError, DatabaseError, ValidationError
from pblab.models import User
from pblab.security import (
    InviteTokenExpired,
    InviteTokenInvalid,
    create_access_token,
    decode_user_invite_token,
    verify_and_update_password,
)
from pblab.services.admin import MIN_PASSWORD_LENGTH
from pblab.validation import required_string

log = logging.getLogger(__name__)


def authenticate(session: Session, email: str, password: str) -> tuple[User, str]:
    """Check credentials and issue an access token. Rehashes legacy password hashes on the way."""
    email = (email or "").lower().strip()
    user = session.query(User).filter(func.lower(User.email) == email).first()
    if not user or not user.password_hash or not password:
        raise AuthenticationError("invalid credentials", {"email": email})

    verified, new_hash = verify_and_update_password(password, user.password_hash)
    if not verified:
        raise AuthenticationError("invalid credentials", {"email": email})
    if new_hash:
        user.password_hash = new_hash
        session.commit()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


def verify_user_invite(token: str) -> dict[str, Any]:
    token = required_string(token, "Token")
    try:
        payload = decode_user_invite_token(token)
    except InviteTokenExpired:
        raise BusinessLogicError(
            "invite_expired", "This invite link has expired. Please request a new invitation."
        ) from None
    except InviteTokenInvalid as exc:
        log.info("Rejected user invite token: %s", exc)
        raise BusinessLogicError(
            "invite_invalid", "This invite link is invalid or has been tampered with."
        ) from None
    return {"email": payload["email"], "name": payload["name"], "role": payload["role"]}


def accept_user_invite(session: Session, token: str, password: str) -> str:
    """Create the invited account with the role the admin chose. Returns the new user id."""
    invite = verify_user_invite(token)
    password = required_string(password, "Password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password", f"must be at least {MIN_PASSWORD_LENGTH} characters long")

    email = invite["email"].lower()
    if session.query(User.id).filter(func.lower(User.email) == email).first() is not None:
        raise BusinessLogicError("email_taken", "An account with this email already exists")

    user = User(email=email, name=invite["name"], role=invite["role"])
    user.set_password(password)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError("email_taken", "An account with this email already exists") from None
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError("accept_user_invite", str(exc), exc, {"email": email}) from exc

    log.info("Invite accepted: created %s user %s", user.role, user.id)
    return user.id
