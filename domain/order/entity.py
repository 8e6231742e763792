"""
订单实体 - 支付对账所需的订单视图

订单本身由外部系统维护，这里只保留支付流程读写的字段。
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass
class Order:
    id: Optional[int]
    order_number: str
    total_amount: Decimal
    currency: str = "NGN"
    tenant_id: Optional[int] = None
    shop_id: Optional[int] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_gateway: Optional[str] = None
    payment_reference: Optional[str] = None
