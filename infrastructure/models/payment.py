"""
支付数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, JSON,
    Index, ForeignKey, UniqueConstraint
)
from datetime import datetime, timezone

from .base import Base


class PaymentModel(Base):
    """
    订单支付记录

    reference 上的唯一约束是并发 webhook 投递下"至多一条记录"的唯一保证。
    """
    __tablename__ = "order_payments"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True, comment="订单ID")
    tenant_id = Column(Integer, nullable=True, index=True)
    shop_id = Column(Integer, nullable=True)

    reference = Column(String(191), nullable=False, comment="支付 reference（关联发起、校验与回调）")
    gateway = Column(String(50), nullable=False, index=True, comment="支付网关: paystack/opay/flutterwave/crypto")
    gateway_reference = Column(String(191), nullable=True, comment="网关侧交易ID")
    gateway_status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="pending/success/failed",
    )
    payment_method = Column(String(50), nullable=True)

    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="支付金额")
    currency = Column(String(3), nullable=False, default="NGN", comment="货币代码 ISO-4217")
    gateway_fee = Column(Numeric(precision=15, scale=2), nullable=False, default=0)

    gateway_response = Column(JSON, nullable=True, comment="网关原始响应（审计用）")
    notes = Column(Text, nullable=True)

    verified_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("reference", name="uq_order_payments_reference"),
        Index("ix_order_payments_gateway_ref", "gateway", "gateway_reference"),
    )

    def __repr__(self):
        return (
            f"<PaymentModel(id={self.id}, reference='{self.reference}', "
            f"gateway='{self.gateway}', status='{self.gateway_status}')>"
        )
