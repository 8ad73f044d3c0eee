from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from pblab.errors import AuthenticationError
from pblab.models import User
from pblab.security import decode_access_token


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, passed explicitly into every service function."""

    id: str
    role: str
    email: str
    name: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=user.role, email=user.email, name=user.name)


def get_authenticated_user(session: Session, token: Optional[str]) -> Actor:
    """
    Resolve the caller from an access token. The role is always read from the
    database row, never from the token, so role changes apply immediately.
    """
    if not token:
        raise AuthenticationError("no access token supplied")

    payload = decode_access_token(token)
    if not payload:
        raise AuthenticationError("access token is invalid or expired")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("access token has no subject")

    user = session.get(User, str(user_id))
    if not user:
        raise AuthenticationError("access token subject no longer exists", {"user_id": user_id})

    return Actor.from_user(user)
