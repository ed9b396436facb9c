"""
Explicit auth session passed from the auth dependency to the endpoints.
"""
import hashlib
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


ADMIN_ROLE = "admin"


class AuthSession(BaseModel):
    """Who is calling, derived from a verified Supabase access token"""
    user_id: str
    email: Optional[str] = None
    role: str = "user"
    session_id: str
    expires_at: Optional[datetime] = None
    access_token: str = Field(..., exclude=True, repr=False)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class AuthSessionPublic(BaseModel):
    """Session as returned to the caller (no token)"""
    user_id: str
    email: Optional[str] = None
    role: str
    session_id: str
    expires_at: Optional[datetime] = None
    is_admin: bool


def session_from_claims(claims: dict, access_token: str) -> AuthSession:
    """
    Build an AuthSession from verified token claims.

    The role comes from app_metadata (set server-side in Supabase), never
    from user_metadata, which the user can edit. Tokens without a
    session_id claim are identified by a hash of the token itself.

    Raises:
        ValueError: If the token has no subject
    """
    user_id = claims.get("sub")
    if not user_id:
        raise ValueError("Token has no subject")

    app_metadata = claims.get("app_metadata") or {}
    role = app_metadata.get("role") if isinstance(app_metadata, dict) else None

    session_id = claims.get("session_id") or claims.get("jti")
    if not session_id:
        session_id = "tok_" + hashlib.sha256(access_token.encode()).hexdigest()[:32]

    exp = claims.get("exp")
    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) if isinstance(exp, (int, float)) else None

    return AuthSession(
        user_id=str(user_id),
        email=claims.get("email"),
        role=role or "user",
        session_id=str(session_id),
        expires_at=expires_at,
        access_token=access_token,
    )


def to_public(session: AuthSession) -> AuthSessionPublic:
    return AuthSessionPublic(
        user_id=session.user_id,
        email=session.email,
        role=session.role,
        session_id=session.session_id,
        expires_at=session.expires_at,
        is_admin=session.is_admin,
    )
