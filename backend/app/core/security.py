"""
security.py — Session Tokens (JWT Encoding)

Purpose:
- Issue and validate the JWT that identifies a signed-in session.
- Pull that token out of a request: `Authorization: Bearer <token>` first,
  then the `session` cookie set by the login endpoint.

Token payload:
    {"sub": <user id>, "sid": <session id>, "exp": <expiry>}

Key Constraints:
- Login is demo-grade (one shared password, see services/inventory/session.py);
  there are no stored password hashes to verify.
- Logout drops the server-side session; a token for a closed session is
  rejected even before it expires.

This module does NOT:
- Look sessions up → app/api/deps.py does that through the SessionRegistry.
"""

import datetime
from typing import Any, Dict, Optional

from fastapi import Request
from jose import JWTError, jwt

from app.core.config import settings

SESSION_COOKIE = "session"


# -----------------------------------------------------------------------------
# JWT Token Handling
# -----------------------------------------------------------------------------

def create_access_token(data: Dict[str, Any], expires_at: Optional[datetime.datetime] = None) -> str:
    """
    Create a JWT access token with expiration.

    Expected payload format:
        data = {"sub": user_id, "sid": session_id}

    `expires_at` defaults to now + JWT_EXPIRE_MINUTES; pass the session's
    own expiry so token and server-side session lapse together.
    """
    to_encode = data.copy()
    expire_at = expires_at or datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
        minutes=settings.JWT_EXPIRE_MINUTES
    )
    to_encode.update({"exp": expire_at})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT token.
    Returns the payload dict if valid, None if invalid or expired.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


# -----------------------------------------------------------------------------
# Request helpers
# -----------------------------------------------------------------------------

def token_from_request(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(SESSION_COOKIE) or None


def session_claims(request: Request) -> Optional[Dict[str, Any]]:
    """Claims of the request's token when it carries both `sub` and `sid`."""
    token = token_from_request(request)
    if not token:
        return None
    payload = decode_token(token)
    if not payload or not payload.get("sub") or not payload.get("sid"):
        return None
    return payload
