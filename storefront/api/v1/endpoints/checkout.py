"""
Checkout endpoints.

The storefront previews the price while the buyer types a coupon, then
starts checkout and sends the buyer to the returned redirect handle.
"""
from fastapi import APIRouter, Depends, Request, Response, status

from storefront.core.checkout_service import CheckoutService
from storefront.core.dependencies import get_current_session, get_store
from storefront.core.rate_limit import CHECKOUT_RATE_LIMIT, PREVIEW_RATE_LIMIT, limiter
from storefront.core.session import AuthSession
from storefront.repositories.base import StorefrontStore
from storefront.schemas.checkout import CheckoutRequest, CheckoutResponse, PricePreview

router = APIRouter()


@router.post("/preview", response_model=PricePreview)
@limiter.limit(PREVIEW_RATE_LIMIT)
async def preview_checkout(
    request: Request,
    response: Response,
    body: CheckoutRequest,
    session: AuthSession = Depends(get_current_session),
    store: StorefrontStore = Depends(get_store),
):
    """
    Price a plan with an optional coupon. Nothing is written and no coupon
    use is consumed.

    Raises:
        HTTPException 404: plan_not_found
    """
    return await CheckoutService.preview_price(store, body.plan_id, body.coupon_code)


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def start_checkout(
    request: Request,
    response: Response,
    body: CheckoutRequest,
    session: AuthSession = Depends(get_current_session),
    store: StorefrontStore = Depends(get_store),
):
    """
    Create a pending order for the authenticated user.

    A coupon that does not apply does not fail the call unless
    STRICT_COUPONS is on: the order is created at full price and
    coupon_rejection says why.

    Raises:
        HTTPException 404: plan_not_found
        HTTPException 400: coupon_rejected (strict mode)
        HTTPException 503: storage_unavailable (safe to retry)
    """
    result = await CheckoutService.start_checkout(
        store,
        user_id=session.user_id,
        plan_id=body.plan_id,
        coupon_code=body.coupon_code,
    )
    return result.to_response()
