from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from pblab.config import settings

pwd_context = CryptContext(schemes=["argon2", "bcrypt"], deprecated="auto")

TEAM_INVITE_AUDIENCE = "team-invite"
USER_INVITE_AUDIENCE = "user-invite"


class InviteTokenExpired(Exception):
    """The invite token signature is valid but its expiry has passed."""


class InviteTokenInvalid(Exception):
    """The invite token is malformed, tampered with or meant for another audience."""


def hash_password(password: str) -> str:
    """Hashes a plain-text password."""
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    """Verifies a plain-text password against a hash."""
    return pwd_context.verify(password, hashed_password)


def verify_and_update_password(password: str, hashed_password: str) -> tuple[bool, str | None]:
    """
    Verifies a plain-text password against a hash and returns whether it's valid
    and a new hash if it needs to be updated (e.g., migration from bcrypt to argon2).
    """
    return pwd_context.verify_and_update(password, hashed_password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Creates a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decodes a JWT access token. Invite tokens are rejected because they carry an audience."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if "aud" in payload:
        return None
    return payload


def _create_invite_token(claims: dict[str, Any], audience: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        **claims,
        "iss": settings.INVITE_ISSUER,
        "aud": audience,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _decode_invite_token(token: str, audience: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=audience,
            issuer=settings.INVITE_ISSUER,
        )
    except ExpiredSignatureError as exc:
        raise InviteTokenExpired(str(exc)) from exc
    except JWTError as exc:
        raise InviteTokenInvalid(str(exc)) from exc


def create_team_invite_token(team_id: str, expires_delta: timedelta | None = None) -> str:
    """Signed token that lets its bearer join ``team_id`` (24h by default)."""
    delta = expires_delta or timedelta(hours=settings.TEAM_INVITE_EXPIRE_HOURS)
    return _create_invite_token({"team_id": team_id}, TEAM_INVITE_AUDIENCE, delta)


def decode_team_invite_token(token: str) -> dict[str, Any]:
    payload = _decode_invite_token(token, TEAM_INVITE_AUDIENCE)
    if not isinstance(payload.get("team_id"), str) or not payload["team_id"]:
        raise InviteTokenInvalid("missing team_id claim")
    return payload


def create_user_invite_token(email: str, name: str, role: str, expires_delta: timedelta | None = None) -> str:
    """Signed token provisioning a new account with the given role (7 days by default)."""
    delta = expires_delta or timedelta(days=settings.USER_INVITE_EXPIRE_DAYS)
    return _create_invite_token({"email": email, "name": name, "role": role}, USER_INVITE_AUDIENCE, delta)


def decode_user_invite_token(token: str) -> dict[str, Any]:
    payload = _decode_invite_token(token, USER_INVITE_AUDIENCE)
    for claim in ("email", "name", "role"):
        if not isinstance(payload.get(claim), str) or not payload[claim]:
            raise InviteTokenInvalid(f"missing {claim} claim")
    return payload
