"""
订单仓储实现 - 只覆盖支付流程需要的查询与更新
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.order.entity import Order
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        return Order(
            id=model.id,
            order_number=model.order_number,
            total_amount=Decimal(str(model.total_amount)),
            currency=model.currency,
            tenant_id=model.tenant_id,
            shop_id=model.shop_id,
            customer_email=model.customer_email,
            customer_name=model.customer_name,
            customer_phone=model.customer_phone,
            payment_gateway=model.payment_gateway,
            payment_reference=model.payment_reference,
        )

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        result = await self.session.execute(select(OrderModel).where(OrderModel.id == order_id))
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_by_payment_reference(self, reference: str) -> Optional[Order]:
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.payment_reference == reference).order_by(OrderModel.id).limit(1)
        )
        db_order = result.scalars().first()
        return self._to_entity(db_order) if db_order else None

    async def get_by_order_number(self, order_number: str) -> Optional[Order]:
        result = await self.session.execute(select(OrderModel).where(OrderModel.order_number == order_number))
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def attach_payment(self, order_id: int, gateway: str, reference: str) -> None:
        await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id)
            .values(payment_gateway=gateway, payment_reference=reference)
            .execution_options(synchronize_session=False)
        )
