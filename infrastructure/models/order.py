"""
订单数据库模型（支付流程使用的最小列集合）
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(64), unique=True, index=True, nullable=False)
    tenant_id = Column(Integer, nullable=True, index=True)
    shop_id = Column(Integer, nullable=True)

    total_amount = Column(Numeric(precision=15, scale=2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")

    customer_email = Column(String(255), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    payment_gateway = Column(String(50), nullable=True)
    payment_reference = Column(String(191), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return f"<OrderModel(id={self.id}, order_number='{self.order_number}')>"
