"""
Public catalog endpoints.

No authentication: visitors browse plans before signing in.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status

from storefront.core.dependencies import get_store
from storefront.repositories.base import StorefrontStore
from storefront.schemas.plan import PlanPublic

router = APIRouter()


@router.get("", response_model=List[PlanPublic])
async def list_plans(store: StorefrontStore = Depends(get_store)):
    """
    Get all active plans, ordered by display order.

    Returns:
        List[PlanPublic]: Active plans with pricing and features
    """
    return await store.list_plans(active_only=True)


@router.get("/{plan_id}", response_model=PlanPublic)
async def get_plan(plan_id: str, store: StorefrontStore = Depends(get_store)):
    """
    Get one active plan.

    Raises:
        HTTPException 404: If the plan does not exist or is inactive
    """
    plan = await store.get_plan(plan_id)
    if plan is None or not plan.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="plan_not_found"
        )
    return plan
