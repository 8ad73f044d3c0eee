from typing import Any, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .config import settings
from .extensions import db
from .services.ai import CompletionClient, get_completion_client
from .services.identity import Actor, get_authenticated_user


def get_db() -> Any:
    """Dependency to provide a database session."""
    try:
        yield db.session
    finally:
        db.remove_session()


def get_token(request: Request) -> Optional[str]:
    """Access token from the ``Authorization: Bearer`` header, falling back to the auth cookie."""
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


def require_user(token: Optional[str] = Depends(get_token), session: Session = Depends(get_db)) -> Actor:
    """Dependency that resolves the authenticated actor or raises AuthenticationError (401)."""
    return get_authenticated_user(session, token)


def get_ai_client() -> CompletionClient:
    return get_completion_client()
