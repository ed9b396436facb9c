from typing import List
from fastapi import APIRouter, Depends

from storefront.core.dependencies import get_current_session, get_store
from storefront.core.session import AuthSession
from storefront.repositories.base import StorefrontStore
from storefront.schemas.order import OrderResponse

router = APIRouter()


@router.get("/me", response_model=List[OrderResponse])
async def list_my_orders(
    session: AuthSession = Depends(get_current_session),
    store: StorefrontStore = Depends(get_store),
):
    """The authenticated user's orders, newest first."""
    return await store.list_orders(user_id=session.user_id)
