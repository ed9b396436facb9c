"""
Session endpoints.

Sign-in happens against Supabase directly; this API only inspects and
invalidates the session carried by the access token.
"""
from fastapi import APIRouter, Depends

from storefront.core.dependencies import get_current_session, get_store
from storefront.core.session import AuthSession, AuthSessionPublic, to_public
from storefront.repositories.base import StorefrontStore

router = APIRouter()


@router.get("/session", response_model=AuthSessionPublic)
async def get_session(session: AuthSession = Depends(get_current_session)):
    """Return the current session (user, role, expiry)."""
    return to_public(session)


@router.post("/logout")
async def logout(
    session: AuthSession = Depends(get_current_session),
    store: StorefrontStore = Depends(get_store),
):
    """
    Invalidate the current session.

    Any later request carrying a token of this session gets 401, even if
    the token itself has not expired yet.
    """
    await store.revoke_session(session.session_id, session.expires_at)
    print(f"[AUTH] Session revoked for user {session.user_id}")
    return {"status": "logged_out", "session_id": session.session_id}
