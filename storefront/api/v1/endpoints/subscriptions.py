"""
API endpoints for the caller's subscriptions.

Subscriptions are created by the payment webhook and cancelled by the
provider; these endpoints are read-only.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status

from storefront.core.dependencies import get_current_session, get_store
from storefront.core.session import AuthSession
from storefront.core.subscription_service import SubscriptionService
from storefront.repositories.base import StorefrontStore
from storefront.schemas.plan import PlanPublic
from storefront.schemas.subscription import Subscription, SubscriptionWithPlan

router = APIRouter()


async def _with_plan(store: StorefrontStore, subscription: Subscription) -> SubscriptionWithPlan:
    plan = await store.get_plan(subscription.plan_id)
    return SubscriptionWithPlan(
        **subscription.model_dump(),
        plan=PlanPublic.model_validate(plan) if plan else None,
    )


@router.get("/me", response_model=SubscriptionWithPlan)
async def get_my_subscription(
    session: AuthSession = Depends(get_current_session),
    store: StorefrontStore = Depends(get_store),
):
    """
    Get the authenticated user's current active subscription.

    Returns the subscription along with the plan details.

    Raises:
        HTTPException 404: If user has no active subscription
    """
    subscription = await SubscriptionService.get_active_subscription(store, session.user_id)

    if not subscription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active subscription found"
        )

    return await _with_plan(store, subscription)


@router.get("/me/history", response_model=List[SubscriptionWithPlan])
async def get_my_subscription_history(
    session: AuthSession = Depends(get_current_session),
    store: StorefrontStore = Depends(get_store),
):
    """
    Get the authenticated user's subscription history.

    Returns all subscriptions (active, cancelled, lapsed), newest first.
    """
    subscriptions = await SubscriptionService.get_subscription_history(store, session.user_id)
    return [await _with_plan(store, s) for s in subscriptions]
