"""
FastAPI dependencies for storage access, authentication and authorization.

Endpoints receive the store and an explicit AuthSession through these
dependencies; nothing reads global auth state.
"""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from storefront.core.session import AuthSession, session_from_claims
from storefront.core.supabase_auth import decode_supabase_jwt
from storefront.repositories.base import StorefrontStore

# Security scheme for FastAPI
security = HTTPBearer(auto_error=False)


def get_store(request: Request) -> StorefrontStore:
    """The store built at startup (see main.lifespan)."""
    return request.app.state.store


async def get_current_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    store: StorefrontStore = Depends(get_store),
) -> AuthSession:
    """
    Authentication dependency used by every user endpoint.

    Flow:
    1. Extract the bearer token from the Authorization header
    2. Verify it against Supabase (HS256 secret or JWKS)
    3. Build the AuthSession from its claims
    4. Reject sessions revoked by logout

    Raises:
        HTTPException 401: If the token is missing, invalid, expired or revoked
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication credentials. Provide a Supabase JWT (Authorization: Bearer)",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = decode_supabase_jwt(credentials.credentials)

    try:
        session = session_from_claims(claims, credentials.credentials)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token payload: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if await store.is_session_revoked(session.session_id):
        print(f"[AUTH] Rejected revoked session for user {session.user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has been logged out",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Read by the rate limiter key function
    request.state.user_id = session.user_id
    return session


async def require_admin(
    session: AuthSession = Depends(get_current_session)
) -> AuthSession:
    """
    Authorization dependency that requires admin privileges.

    Raises:
        HTTPException 403: If the session does not carry the admin role
    """
    if not session.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This endpoint requires admin privileges"
        )
    return session
