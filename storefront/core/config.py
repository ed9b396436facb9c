"""
Runtime configuration for the storefront service.

All settings come from environment variables (optionally loaded from a
.env file) and are exposed as module-level constants.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ============================================
# PERSISTENCE BACKEND
# ============================================
# 'supabase' (Postgres via SQLAlchemy), 'sheets' (Google Apps Script) or 'memory'
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory").strip().lower()

DATABASE_URL = os.getenv("DATABASE_URL")
DB_COMMAND_TIMEOUT = float(os.getenv("DB_COMMAND_TIMEOUT", "10"))

GOOGLE_SHEETS_SCRIPT_URL = os.getenv("GOOGLE_SHEETS_SCRIPT_URL", "")
SHEETS_TIMEOUT = float(os.getenv("SHEETS_TIMEOUT", "15"))


# ============================================
# AUTHENTICATION
# ============================================
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")

# Shared secret the payment provider sends as "Authorization: Bearer <secret>"
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET")


# ============================================
# CHECKOUT
# ============================================
CHECKOUT_RETURN_URL = os.getenv("CHECKOUT_RETURN_URL", "http://localhost:5173/payment-success")
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "ILS")

# Reject the whole checkout when a coupon code does not apply
STRICT_COUPONS = _as_bool(os.getenv("STRICT_COUPONS"), default=False)


# ============================================
# HTTP
# ============================================
REDIS_URL = os.getenv("REDIS_URL", "memory://")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]


def validate_config() -> dict:
    """
    Validate that all required configuration is present.

    Returns:
        dict: Configuration status with warnings and errors
    """
    status = {
        "valid": True,
        "errors": [],
        "warnings": []
    }

    if STORE_BACKEND not in ("supabase", "sheets", "memory"):
        status["errors"].append(f"Unknown STORE_BACKEND '{STORE_BACKEND}'")
        status["valid"] = False

    if STORE_BACKEND == "supabase" and not DATABASE_URL:
        status["errors"].append("DATABASE_URL is required for the supabase backend")
        status["valid"] = False

    if STORE_BACKEND == "sheets" and not GOOGLE_SHEETS_SCRIPT_URL:
        status["errors"].append("GOOGLE_SHEETS_SCRIPT_URL is required for the sheets backend")
        status["valid"] = False

    if STORE_BACKEND == "memory":
        status["warnings"].append("Using in-memory store - data is lost on restart")

    if not SUPABASE_JWT_SECRET and not SUPABASE_URL:
        status["warnings"].append("Neither SUPABASE_JWT_SECRET nor SUPABASE_URL set - JWT validation will fail")

    if not WEBHOOK_SECRET:
        status["warnings"].append("WEBHOOK_SECRET not configured - payment webhooks will be rejected")

    if REDIS_URL == "memory://":
        status["warnings"].append("REDIS_URL not configured - rate limits are per-process")

    return status


def print_config():
    """Print the current configuration (with sensitive values masked)."""
    print("\n" + "=" * 60)
    print(" >> STOREFRONT CONFIGURATION")
    print("-" * 60)
    print(f"Store backend:       {STORE_BACKEND}")
    print(f"Database:            {'configured' if DATABASE_URL else 'not configured'}")
    print(f"Sheets script:       {'configured' if GOOGLE_SHEETS_SCRIPT_URL else 'not configured'}")
    print(f"Webhook secret:      {'configured' if WEBHOOK_SECRET else 'not configured'}")
    print(f"Currency:            {DEFAULT_CURRENCY}")
    print(f"Strict coupons:      {STRICT_COUPONS}")

    status = validate_config()
    for error in status["errors"]:
        print(f" [!] ERROR: {error}")
    for warning in status["warnings"]:
        print(f" [-] WARNING: {warning}")
    print("=" * 60 + "\n")
