"""
Admin endpoints for the catalog (plans, coupons) and the order ledger.

All routes require an admin session.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, status

from storefront.core.catalog_service import CatalogService
from storefront.core.dependencies import get_store, require_admin
from storefront.core.session import AuthSession
from storefront.repositories.base import StorefrontStore
from storefront.schemas.coupon import Coupon, CouponCreate, CouponUpdate
from storefront.schemas.order import OrderResponse
from storefront.schemas.plan import Plan, PlanCreate, PlanUpdate

router = APIRouter()


# --- Plans ---

@router.get("/plans", response_model=List[Plan])
async def list_plans(
    include_inactive: bool = True,
    admin: AuthSession = Depends(require_admin),
    store: StorefrontStore = Depends(get_store),
):
    """All plans, including inactive and superseded versions."""
    return await CatalogService.list_plans(store, include_inactive=include_inactive)


@router.post("/plans", response_model=Plan, status_code=status.HTTP_201_CREATED)
async def create_plan(
    body: PlanCreate,
    admin: AuthSession = Depends(require_admin),
    store: StorefrontStore = Depends(get_store),
):
    return await CatalogService.create_plan(store, body)


@router.get("/plans/{plan_id}", response_model=Plan)
async def get_plan(
    plan_id: str,
    admin: AuthSession = Depends(require_admin),
    store: StorefrontStore = Depends(get_store),
):
    return await CatalogService.get_plan(store, plan_id)


@router.patch("/plans/{plan_id}", response_model=Plan)
async def update_plan(
    plan_id: str,
    body: PlanUpdate,
    admin: AuthSession = Depends(require_admin),
    store: StorefrontStore = Depends(get_store),
):
    """
    Update a plan.

    Changing price or duration of a plan that already has orders returns a
    new plan version (different id); the old plan is deactivated.
    """
    return await CatalogService.update_plan(store, plan_id, body)


# --- Coupons ---

@router.get("/coupons", response_model=List[Coupon])
async def list_coupons(
    admin: AuthSession = Depends(require_admin),
    store: StorefrontStore = Depends(get_store),
):
    return await CatalogService.list_coupons(store)


@router.post("/coupons", response_model=Coupon, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    body: CouponCreate,
    admin: AuthSession = Depends(require_admin),
    store: StorefrontStore = Depends(get_store),
):
    """
    Create a coupon. Codes are stored upper-case.

    Raises:
        HTTPException 409: coupon_code_taken
    """
    return await CatalogService.create_coupon(store, body)


@router.patch("/coupons/{coupon_id}", response_model=Coupon)
async def update_coupon(
    coupon_id: str,
    body: CouponUpdate,
    admin: AuthSession = Depends(require_admin),
    store: StorefrontStore = Depends(get_store),
):
    return await CatalogService.update_coupon(store, coupon_id, body)


# --- Orders ---

@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(
    user_id: Optional[str] = None,
    admin: AuthSession = Depends(require_admin),
    store: StorefrontStore = Depends(get_store),
):
    """All orders, newest first, optionally for one user."""
    return await CatalogService.list_orders(store, user_id=user_id)
