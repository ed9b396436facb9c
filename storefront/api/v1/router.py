# storefront/api/v1/router.py
from fastapi import APIRouter

from storefront.api.v1.endpoints import plans, checkout, webhooks, subscriptions, orders, auth, admin

api_v1_router = APIRouter()
api_v1_router.include_router(plans.router, prefix="/plans", tags=["plans"])
api_v1_router.include_router(checkout.router, prefix="/checkout", tags=["checkout"])
api_v1_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_v1_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_v1_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_v1_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_v1_router.include_router(admin.router, prefix="/admin", tags=["admin"])
