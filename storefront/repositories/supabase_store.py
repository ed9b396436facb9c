"""
Store backed by the Supabase Postgres database through SQLAlchemy (asyncpg).

Each operation runs in its own session. Conditional state changes are
single UPDATE ... WHERE statements so that concurrent requests cannot both
win the same transition.
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, or_, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from storefront.core.database import Base, create_engine, create_session_factory
from storefront.core.exceptions import (
    CouponExhaustedError,
    DuplicateRecordError,
    StorageUnavailableError,
)
from storefront.models.coupon import CouponModel
from storefront.models.order import OrderModel
from storefront.models.plan import PlanModel
from storefront.models.revoked_session import RevokedSessionModel
from storefront.models.subscription import SubscriptionModel
from storefront.repositories.base import StorefrontStore
from storefront.schemas.coupon import Coupon
from storefront.schemas.order import Order, PaymentStatus
from storefront.schemas.plan import Plan
from storefront.schemas.subscription import Subscription, SubscriptionStatus


def _column_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Unwrap enums and drop unset timestamps so server defaults apply."""
    plain = {}
    for key, value in values.items():
        if key in ("created_at", "updated_at") and value is None:
            continue
        plain[key] = value.value if isinstance(value, Enum) else value
    return plain


class SupabaseStore(StorefrontStore):
    """SQLAlchemy implementation of the storefront store."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessionmaker = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str, command_timeout: float = 10.0) -> "SupabaseStore":
        return cls(create_engine(database_url, command_timeout=command_timeout))

    async def create_tables(self) -> None:
        """Create all tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self):
        try:
            async with self._sessionmaker() as session:
                yield session
        except IntegrityError as e:
            raise DuplicateRecordError(str(e.orig)) from e
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            print(f"[ERROR] Database operation failed: {type(e).__name__}: {e}")
            raise StorageUnavailableError(str(e)) from e

    # --- Plans ---

    async def get_plan(self, plan_id: str) -> Optional[Plan]:
        async with self._session() as session:
            row = await session.get(PlanModel, plan_id)
            return Plan.model_validate(row) if row else None

    async def list_plans(self, active_only: bool = True) -> List[Plan]:
        stmt = select(PlanModel).order_by(PlanModel.display_order)
        if active_only:
            stmt = stmt.where(PlanModel.is_active.is_(True))
        async with self._session() as session:
            result = await session.execute(stmt)
            return [Plan.model_validate(row) for row in result.scalars().all()]

    async def create_plan(self, plan: Plan) -> Plan:
        async with self._session() as session:
            row = PlanModel(**_column_values(plan.model_dump()))
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return Plan.model_validate(row)

    async def update_plan(self, plan_id: str, changes: Dict[str, Any]) -> Optional[Plan]:
        async with self._session() as session:
            row = await session.get(PlanModel, plan_id)
            if row is None:
                return None
            for key, value in _column_values(changes).items():
                setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return Plan.model_validate(row)

    async def plan_has_orders(self, plan_id: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(OrderModel.id).where(OrderModel.plan_id == plan_id).limit(1)
            )
            return result.scalar_one_or_none() is not None

    # --- Coupons ---

    async def get_coupon_by_code(self, code: str) -> Optional[Coupon]:
        async with self._session() as session:
            result = await session.execute(
                select(CouponModel).where(func.upper(CouponModel.code) == code.strip().upper())
            )
            row = result.scalar_one_or_none()
            return Coupon.model_validate(row) if row else None

    async def get_coupon(self, coupon_id: str) -> Optional[Coupon]:
        async with self._session() as session:
            row = await session.get(CouponModel, coupon_id)
            return Coupon.model_validate(row) if row else None

    async def list_coupons(self) -> List[Coupon]:
        async with self._session() as session:
            result = await session.execute(
                select(CouponModel).order_by(CouponModel.created_at.desc())
            )
            return [Coupon.model_validate(row) for row in result.scalars().all()]

    async def create_coupon(self, coupon: Coupon) -> Coupon:
        async with self._session() as session:
            row = CouponModel(**_column_values(coupon.model_dump()))
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return Coupon.model_validate(row)

    async def update_coupon(self, coupon_id: str, changes: Dict[str, Any]) -> Optional[Coupon]:
        async with self._session() as session:
            row = await session.get(CouponModel, coupon_id)
            if row is None:
                return None
            for key, value in _column_values(changes).items():
                setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return Coupon.model_validate(row)

    # --- Orders ---

    async def create_order(self, order: Order, redeem_coupon_id: Optional[str] = None) -> Order:
        async with self._session() as session:
            async with session.begin():
                if redeem_coupon_id is not None:
                    # Row lock serialises concurrent redemptions of the same coupon
                    result = await session.execute(
                        update(CouponModel)
                        .where(CouponModel.id == redeem_coupon_id)
                        .where(CouponModel.is_active.is_(True))
                        .where(
                            or_(
                                CouponModel.max_uses.is_(None),
                                CouponModel.used_count < CouponModel.max_uses,
                            )
                        )
                        .values(used_count=CouponModel.used_count + 1)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise CouponExhaustedError(redeem_coupon_id)

                row = OrderModel(**_column_values(order.model_dump()))
                session.add(row)
            await session.refresh(row)
            return Order.model_validate(row)

    async def _get_order_where(self, *criteria) -> Optional[Order]:
        async with self._session() as session:
            result = await session.execute(select(OrderModel).where(*criteria).limit(1))
            row = result.scalar_one_or_none()
            return Order.model_validate(row) if row else None

    async def get_order(self, order_id: str) -> Optional[Order]:
        return await self._get_order_where(OrderModel.id == order_id)

    async def get_order_by_session(self, session_ref: str) -> Optional[Order]:
        return await self._get_order_where(OrderModel.payment_session_ref == session_ref)

    async def get_order_by_payment(self, payment_ref: str) -> Optional[Order]:
        return await self._get_order_where(OrderModel.payment_intent_ref == payment_ref)

    async def list_orders(self, user_id: Optional[str] = None) -> List[Order]:
        stmt = select(OrderModel).order_by(OrderModel.created_at.desc())
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        async with self._session() as session:
            result = await session.execute(stmt)
            return [Order.model_validate(row) for row in result.scalars().all()]

    async def transition_order(
        self,
        order_id: str,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        payment_intent_ref: Optional[str] = None,
    ) -> Optional[Order]:
        values = {"payment_status": to_status.value, "updated_at": func.now()}
        if payment_intent_ref is not None:
            values["payment_intent_ref"] = payment_intent_ref

        async with self._session() as session:
            result = await session.execute(
                update(OrderModel)
                .where(OrderModel.id == order_id)
                .where(OrderModel.payment_status == from_status.value)
                .values(**values)
                .returning(OrderModel)
                .execution_options(synchronize_session=False)
            )
            row = result.scalar_one_or_none()
            await session.commit()
            return Order.model_validate(row) if row else None

    # --- Subscriptions ---

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        async with self._session() as session:
            row = SubscriptionModel(**_column_values(subscription.model_dump()))
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return Subscription.model_validate(row)

    async def _get_subscription_where(self, *criteria) -> Optional[Subscription]:
        async with self._session() as session:
            result = await session.execute(select(SubscriptionModel).where(*criteria).limit(1))
            row = result.scalar_one_or_none()
            return Subscription.model_validate(row) if row else None

    async def get_subscription_by_order(self, order_id: str) -> Optional[Subscription]:
        return await self._get_subscription_where(SubscriptionModel.order_id == order_id)

    async def get_subscription_by_ref(self, external_ref: str) -> Optional[Subscription]:
        return await self._get_subscription_where(
            SubscriptionModel.external_subscription_ref == external_ref
        )

    async def list_subscriptions(self, user_id: str) -> List[Subscription]:
        async with self._session() as session:
            result = await session.execute(
                select(SubscriptionModel)
                .where(SubscriptionModel.user_id == user_id)
                .order_by(SubscriptionModel.created_at.desc())
            )
            return [Subscription.model_validate(row) for row in result.scalars().all()]

    async def cancel_subscription(
        self,
        subscription_id: str,
        cancelled_at: datetime,
    ) -> Optional[Subscription]:
        async with self._session() as session:
            result = await session.execute(
                update(SubscriptionModel)
                .where(SubscriptionModel.id == subscription_id)
                .where(SubscriptionModel.status == SubscriptionStatus.ACTIVE.value)
                .values(status=SubscriptionStatus.CANCELLED.value, cancelled_at=cancelled_at)
                .returning(SubscriptionModel)
                .execution_options(synchronize_session=False)
            )
            row = result.scalar_one_or_none()
            await session.commit()
            return Subscription.model_validate(row) if row else None

    # --- Sessions ---

    async def revoke_session(self, session_id: str, expires_at: Optional[datetime]) -> None:
        async with self._session() as session:
            await session.execute(
                pg_insert(RevokedSessionModel)
                .values(session_id=session_id, expires_at=expires_at)
                .on_conflict_do_nothing(index_elements=["session_id"])
            )
            await session.commit()

    async def is_session_revoked(self, session_id: str) -> bool:
        async with self._session() as session:
            row = await session.get(RevokedSessionModel, session_id)
            return row is not None
