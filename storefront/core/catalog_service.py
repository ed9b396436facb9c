"""
Service layer for catalog administration.

Admin-only writes to plans and coupons. Input rules live on the pydantic
create/update schemas; this module adds the rules that need the store:
unique coupon codes and plan versioning.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from pydantic import ValidationError

from storefront.core.exceptions import DuplicateRecordError
from storefront.repositories.base import StorefrontStore
from storefront.schemas.coupon import Coupon, CouponBase, CouponCreate, CouponUpdate
from storefront.schemas.order import Order
from storefront.schemas.plan import Plan, PlanCreate, PlanUpdate


# The only field a sold plan may change in place
MUTABLE_SOLD_PLAN_FIELDS = ("is_active",)

# Fields a PATCH may explicitly clear
NULLABLE_PLAN_FIELDS = ("description",)
NULLABLE_COUPON_FIELDS = ("max_uses", "valid_until")


def _validation_detail(error: ValidationError) -> List[Dict[str, Any]]:
    return [{"loc": list(err["loc"]), "msg": err["msg"]} for err in error.errors()]


def _set_fields(changes: Dict[str, Any], nullable: tuple) -> Dict[str, Any]:
    return {k: v for k, v in changes.items() if v is not None or k in nullable}


class CatalogService:
    """Plan and coupon administration."""

    # --- Plans ---

    @staticmethod
    async def list_plans(store: StorefrontStore, include_inactive: bool = True) -> List[Plan]:
        return await store.list_plans(active_only=not include_inactive)

    @staticmethod
    async def get_plan(store: StorefrontStore, plan_id: str) -> Plan:
        plan = await store.get_plan(plan_id)
        if plan is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="plan_not_found"
            )
        return plan

    @staticmethod
    async def create_plan(
        store: StorefrontStore,
        data: PlanCreate,
        now: Optional[datetime] = None,
    ) -> Plan:
        plan = Plan(
            id=str(uuid.uuid4()),
            created_at=now or datetime.now(timezone.utc),
            **data.model_dump(),
        )
        created = await store.create_plan(plan)
        print(f"[SUCCESS] Plan created: {created.name} ({created.id})")
        return created

    @staticmethod
    async def update_plan(
        store: StorefrontStore,
        plan_id: str,
        data: PlanUpdate,
        now: Optional[datetime] = None,
    ) -> Plan:
        """
        Update a plan.

        Orders keep pointing at the plan they bought, so once a plan has
        orders only its active flag changes in place. Any other change
        creates a new plan with the merged fields and deactivates the old
        one.

        Returns:
            Plan: The updated plan, or the new version when one was created

        Raises:
            HTTPException 404: If the plan does not exist
            HTTPException 422: If the merged plan breaks the admin input rules
        """
        current = await CatalogService.get_plan(store, plan_id)
        changes = _set_fields(data.model_dump(exclude_unset=True), NULLABLE_PLAN_FIELDS)
        if not changes:
            return current

        merged = current.model_dump(include=set(PlanCreate.model_fields))
        merged.update(changes)
        try:
            PlanCreate.model_validate(merged)
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=_validation_detail(e)
            )

        versioned = any(
            value != getattr(current, field)
            for field, value in changes.items()
            if field not in MUTABLE_SOLD_PLAN_FIELDS
        )
        if versioned and await store.plan_has_orders(plan_id):
            new_plan = Plan(
                id=str(uuid.uuid4()),
                created_at=now or datetime.now(timezone.utc),
                **merged,
            )
            created = await store.create_plan(new_plan)
            await store.update_plan(plan_id, {"is_active": False})
            print(f"[SUCCESS] Plan {plan_id} superseded by new version {created.id}")
            return created

        updated = await store.update_plan(plan_id, changes)
        if updated is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="plan_not_found"
            )
        print(f"[SUCCESS] Plan updated: {updated.id}")
        return updated

    # --- Coupons ---

    @staticmethod
    async def list_coupons(store: StorefrontStore) -> List[Coupon]:
        return await store.list_coupons()

    @staticmethod
    async def create_coupon(
        store: StorefrontStore,
        data: CouponCreate,
        now: Optional[datetime] = None,
    ) -> Coupon:
        """
        Create a coupon.

        Raises:
            HTTPException 409: coupon_code_taken, if the code exists in any case
        """
        if await store.get_coupon_by_code(data.code) is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="coupon_code_taken"
            )

        coupon = Coupon(
            id=str(uuid.uuid4()),
            used_count=0,
            created_at=now or datetime.now(timezone.utc),
            **data.model_dump(),
        )
        try:
            created = await store.create_coupon(coupon)
        except DuplicateRecordError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="coupon_code_taken"
            )

        print(f"[SUCCESS] Coupon created: {created.code} ({created.id})")
        return created

    @staticmethod
    async def update_coupon(
        store: StorefrontStore,
        coupon_id: str,
        data: CouponUpdate,
    ) -> Coupon:
        """
        Partially update a coupon. The code and usage count are not editable,
        and max_uses may not drop below the uses already consumed.

        Raises:
            HTTPException 404: coupon_not_found
            HTTPException 422: If the merged coupon breaks the admin input rules
        """
        current = await store.get_coupon(coupon_id)
        if current is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="coupon_not_found"
            )

        changes = _set_fields(data.model_dump(exclude_unset=True), NULLABLE_COUPON_FIELDS)
        if not changes:
            return current

        merged = current.model_dump(include=set(CouponBase.model_fields))
        merged.update(changes)
        try:
            CouponBase.model_validate(merged)
        except ValidationError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=_validation_detail(e)
            )

        max_uses = merged.get("max_uses")
        if max_uses is not None and max_uses < current.used_count:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=[{
                    "loc": ["max_uses"],
                    "msg": f"max_uses cannot be below used_count ({current.used_count})",
                }]
            )

        updated = await store.update_coupon(coupon_id, changes)
        if updated is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="coupon_not_found"
            )
        print(f"[SUCCESS] Coupon updated: {updated.code}")
        return updated

    # --- Orders ---

    @staticmethod
    async def list_orders(store: StorefrontStore, user_id: Optional[str] = None) -> List[Order]:
        return await store.list_orders(user_id=user_id)
