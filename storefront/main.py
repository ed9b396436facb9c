from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from storefront.core import config
from storefront.core.exceptions import StorageUnavailableError
from storefront.core.rate_limit import limiter, CHECKOUT_RATE_LIMIT, PREVIEW_RATE_LIMIT
from storefront.api.v1.router import api_v1_router
from storefront.repositories.factory import build_store


# --- Lifespan events (startup / shutdown) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context.

    On startup:
      - Log startup banner and configuration.
      - Build the configured store (create tables for the supabase backend).

    On shutdown:
      - Close the store and log shutdown banner.
    """
    print("\n" + "-" * 50)
    print("      STARTING UP STOREFRONT API      ")
    print("-" * 50)
    config.print_config()

    # Tests install their own store before the app starts
    if getattr(app.state, "store", None) is None:
        store = build_store()
        if hasattr(store, "create_tables"):
            await store.create_tables()
        app.state.store = store

    yield

    await app.state.store.close()

    print("\n" + "-" * 50)
    print("      SHUTTING DOWN API      ")
    print("-" * 50 + "\n")


# --- FastAPI application instance ---
app = FastAPI(
    title="Storefront API",
    version="1.0.0",
    lifespan=lifespan,
    description="""
    Subscription storefront: plans, coupons, checkout and payment webhooks.

    ## Authentication

    Sign in through Supabase and send the access token:
    `Authorization: Bearer <token>`

    Catalog browsing (`/plans`) is public. Admin routes require the `admin`
    role in the user's app_metadata.

    ----------- Rate Limiting -----------

    **Checkout:** 10 requests/minute per user
    **Price preview:** 30 requests/minute per user
    """
)

app.state.store = None
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    """Storage outages are transient: tell the client it may retry."""
    print(f"[ERROR] Storage unavailable on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "storage_unavailable"},
        headers={"Retry-After": "5"},
    )


# --- CORS configuration ---
# Allowed origins for the browser storefront, from CORS_ORIGINS.
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Root health / welcome endpoint ---
@app.get("/")
async def root():
    """
    Simple health/welcome endpoint.

    Can be used by uptime checks or to verify that the API is running.
    """
    return {
        "message": "Welcome to the Storefront API",
        "status": "OK",
        "docs": "/docs",
        "store_backend": config.STORE_BACKEND,
        "authentication": {
            "jwt": "Authorization: Bearer <token>"
        },
        "rate_limiting": {
            "checkout": CHECKOUT_RATE_LIMIT,
            "preview": PREVIEW_RATE_LIMIT
        }
    }


# --- Mount versioned API routers ---
# All versioned routes are exposed under /api/v1.
app.include_router(api_v1_router, prefix="/api/v1")
