"""Bearer-token authentication.

Access tokens are HS256 JWTs minted by the external auth server.  The
same :func:`decode_access_token` backs the HTTP dependency here and the
MCP token verifier in ``mcp_tools``.
"""

import logging
from dataclasses import dataclass, field

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models import User
from services.user_service import UserService

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


class TokenVerificationError(Exception):
    """The bearer token is missing, malformed, expired or not ours."""


@dataclass(frozen=True)
class Principal:
    """Identity carried by a verified access token."""

    user_id: str
    email: str | None = None
    name: str | None = None
    scopes: list[str] = field(default_factory=list)
    client_id: str | None = None
    expires_at: int | None = None


def decode_access_token(token: str) -> Principal:
    """Verify an access token and return its principal.

    Raises:
        TokenVerificationError: On any verification failure.
    """
    if not settings.AUTH_JWT_SECRET:
        raise TokenVerificationError("AUTH_JWT_SECRET is not configured")
    try:
        claims = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.AUTH_JWT_AUDIENCE,
            issuer=settings.AUTH_JWT_ISSUER,
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as e:
        raise TokenVerificationError(str(e)) from e

    scope = claims.get("scope") or ""
    return Principal(
        user_id=claims["sub"],
        email=claims.get("email"),
        name=claims.get("name"),
        scopes=scope.split() if isinstance(scope, str) else list(scope),
        client_id=claims.get("client_id") or claims.get("azp"),
        expires_at=claims.get("exp"),
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: Session = Depends(get_db),
) -> User:
    """Dependency resolving the bearer token to a :class:`models.User`."""
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        principal = decode_access_token(credentials.credentials)
    except TokenVerificationError as e:
        logger.info("Rejected bearer token: %s", e)
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return UserService.get_or_create_user(db, principal.user_id, principal.email, principal.name)
