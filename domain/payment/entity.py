"""
支付领域实体 - 订单支付记录
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException


class PaymentStatus(str, Enum):
    """支付状态枚举（gateway_status）"""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Payment:
    """
    订单支付记录

    业务规则：
    1. 一个 reference 至多对应一条支付记录
    2. 状态只能向前流转：pending -> success / pending -> failed
    3. success 是粘性的：之后到达的 failed/pending 通知不会覆盖它
    4. 本子系统从不删除支付记录
    """

    id: Optional[int]
    order_id: int
    reference: str
    gateway: str
    amount: Decimal
    currency: str
    gateway_status: PaymentStatus = PaymentStatus.PENDING
    gateway_reference: Optional[str] = None
    gateway_fee: Decimal = field(default_factory=lambda: Decimal("0"))
    payment_method: Optional[str] = None
    gateway_response: Optional[dict[str, Any]] = None
    tenant_id: Optional[int] = None
    shop_id: Optional[int] = None
    notes: Optional[str] = None

    verified_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.reference:
            raise DomainValidationException("Payment reference is required", field="reference")
        if self.amount is None or self.amount < 0:
            raise DomainValidationException(f"Invalid payment amount: {self.amount}", field="amount")
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(f"Invalid currency code: {self.currency}", field="currency")
        self.currency = self.currency.upper()
        self.verified_at = _ensure_utc(self.verified_at)
        self.paid_at = _ensure_utc(self.paid_at)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @property
    def is_successful(self) -> bool:
        return self.gateway_status == PaymentStatus.SUCCESS

    def can_transition_to(self, status: PaymentStatus) -> bool:
        """success 为终态且不可被覆盖；其余状态允许向 success/failed 更新"""
        if self.gateway_status == PaymentStatus.SUCCESS:
            return False
        return status in (PaymentStatus.SUCCESS, PaymentStatus.FAILED)
