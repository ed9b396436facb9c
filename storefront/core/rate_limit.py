"""
Rate limiting configuration and utilities.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from storefront.core import config

# Per-endpoint limits
CHECKOUT_RATE_LIMIT = "10/minute"
PREVIEW_RATE_LIMIT = "30/minute"


def get_rate_limit_key(request: Request) -> str:
    """
    Custom key function for rate limiting.

    Priority:
    1. User ID from the verified session (if authenticated)
    2. IP address (fallback)

    Returns:
        str: Unique identifier for rate limiting
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"

    return f"ip:{get_remote_address(request)}"


# If Redis URL is not configured, use in-memory storage (for local dev)
if config.REDIS_URL == "memory://":
    print("\n" + "=" * 60)
    print("WARNING: Redis URL not configured")
    print("   Using in-memory storage (limits are per process)")
    print("   Set REDIS_URL environment variable to use Redis")
    print("=" * 60 + "\n")

# Initialize limiter
limiter = Limiter(
    key_func=get_rate_limit_key,
    storage_uri=config.REDIS_URL,
    strategy="fixed-window",
    headers_enabled=True,
)
