"""
支付仓储接口 - 定义支付数据访问的抽象接口

对账依赖的写操作都是原子的"检查并设置"，由持久层的唯一约束和条件更新保证，
不允许实现为先读后写。
"""
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from .entity import Payment


class PaymentRepository(ABC):
    """支付仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def get_by_reference(self, reference: str) -> Optional[Payment]:
        """根据支付 reference 获取支付记录"""
        pass

    @abstractmethod
    async def create_if_absent(self, payment: Payment) -> tuple[Payment, bool]:
        """
        按 reference 幂等创建

        返回 (记录, 是否新建)。reference 已存在时返回已有记录且不做修改。
        """
        pass

    @abstractmethod
    async def mark_success(
        self,
        reference: str,
        *,
        gateway_response: Optional[dict[str, Any]],
        verified_at: datetime,
        gateway_reference: Optional[str] = None,
        gateway_fee: Optional[Decimal] = None,
        paid_at: Optional[datetime] = None,
    ) -> bool:
        """仅当记录存在且状态不是 success 时更新为 success，返回是否更新"""
        pass

    @abstractmethod
    async def mark_failed(self, reference: str, *, gateway_response: Optional[dict[str, Any]]) -> bool:
        """仅当记录存在且状态不是 success 时更新为 failed，返回是否更新"""
        pass
