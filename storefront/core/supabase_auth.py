"""
Utilities for validating Supabase JWT tokens.
"""
import requests
from jose import jwt, JWTError
from fastapi import HTTPException, status

from storefront.core import config

# Cache for JWKS (public keys)
_jwks_cache = None


def get_jwks():
    """
    Fetch public keys (JWKS) from Supabase for validating ES256 tokens.

    Caches the keys to avoid repeated network calls.
    """
    global _jwks_cache

    if _jwks_cache is not None:
        return _jwks_cache

    if not config.SUPABASE_URL:
        print("[WARNING] SUPABASE_URL not configured, cannot fetch JWKS")
        return None

    try:
        jwks_url = f"{config.SUPABASE_URL}/auth/v1/.well-known/jwks.json"
        response = requests.get(jwks_url, timeout=5)
        response.raise_for_status()
        _jwks_cache = response.json()
        return _jwks_cache
    except (requests.RequestException, ValueError) as e:
        print(f"[WARNING] Failed to fetch JWKS from Supabase: {e}")
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_supabase_jwt(token: str) -> dict:
    """
    Decode and validate a JWT issued by Supabase Auth.

    Supports both HS256 (legacy) and ES256 (current) algorithms.

    Args:
        token: JWT token string

    Returns:
        dict: Token payload with fields like 'sub', 'email', 'session_id', etc.

    Raises:
        HTTPException 401: If token is invalid or expired
        HTTPException 500: If the signing keys cannot be fetched
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise _unauthorized(f"Invalid authentication token: {str(e)}")

    algorithm = unverified_header.get("alg", "ES256")
    kid = unverified_header.get("kid")

    # HS256 (legacy shared secret)
    if algorithm == "HS256":
        if not config.SUPABASE_JWT_SECRET:
            raise _unauthorized("HS256 tokens are not accepted")
        try:
            return jwt.decode(
                token,
                config.SUPABASE_JWT_SECRET,
                algorithms=["HS256"],
                options={"verify_aud": False}
            )
        except JWTError as e:
            raise _unauthorized(f"Invalid authentication token: {str(e)}")

    # ES256 / RS256 with JWKS
    jwks = get_jwks()
    if not jwks:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not fetch JWKS from Supabase"
        )

    public_key = None
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            public_key = key
            break

    if not public_key:
        raise _unauthorized(f"Could not find public key for kid: {kid}")

    try:
        return jwt.decode(
            token,
            public_key,
            algorithms=[algorithm],
            options={"verify_aud": False}
        )
    except JWTError as e:
        raise _unauthorized(f"Invalid authentication token: {str(e)}")
