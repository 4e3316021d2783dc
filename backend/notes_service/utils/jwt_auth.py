from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from notes_service.config import Settings
from notes_service.errors import UnauthorizedError

bearer = HTTPBearer(auto_error=False)


def create_access_token(subject: str, settings: Settings) -> str:
    """Mint a token for local runs and tests; production tokens come from the identity provider."""
    issued = datetime.now(timezone.utc)
    expires = issued + timedelta(minutes=settings.jwt_exp_minutes)
    claims = {"sub": subject, "iat": int(issued.timestamp()), "exp": int(expires.timestamp())}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def get_owner_id(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> str:
    """Owner identity is the ``sub`` claim of a verified bearer token, nothing else."""
    if creds is None or creds.scheme.lower() != "bearer":
        raise UnauthorizedError("Missing credentials")
    try:
        claims = decode_token(creds.credentials, request.app.state.settings)
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")
    sub = claims.get("sub")
    if not sub or not isinstance(sub, str):
        raise UnauthorizedError("Invalid token")
    return sub
