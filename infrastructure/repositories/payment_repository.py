"""
支付仓储实现 - 使用SQLAlchemy实现数据访问

所有写操作都是单条语句的条件写入（INSERT ... ON CONFLICT DO NOTHING /
UPDATE ... WHERE gateway_status <> 'success'），并发的重复 webhook
由数据库而不是应用代码来串行化。
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select, update, insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.payment.entity import Payment, PaymentStatus
from domain.payment.repository import PaymentRepository
from infrastructure.models.payment import PaymentModel
from core.logging_config import get_logger


logger = get_logger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SQLAlchemyPaymentRepository(PaymentRepository):
    """支付仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentModel) -> Payment:
        """将数据库模型转换为领域实体"""
        return Payment(
            id=model.id,
            order_id=model.order_id,
            reference=model.reference,
            gateway=model.gateway,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            gateway_status=PaymentStatus(model.gateway_status),
            gateway_reference=model.gateway_reference,
            gateway_fee=Decimal(str(model.gateway_fee or 0)),
            payment_method=model.payment_method,
            gateway_response=model.gateway_response,
            tenant_id=model.tenant_id,
            shop_id=model.shop_id,
            notes=model.notes,
            verified_at=model.verified_at,
            paid_at=model.paid_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_values(self, entity: Payment) -> dict[str, Any]:
        """将领域实体转换为插入列值"""
        now = datetime.now(timezone.utc)
        return {
            "order_id": entity.order_id,
            "tenant_id": entity.tenant_id,
            "shop_id": entity.shop_id,
            "reference": entity.reference,
            "gateway": entity.gateway,
            "gateway_reference": entity.gateway_reference,
            "gateway_status": entity.gateway_status.value,
            "payment_method": entity.payment_method,
            "amount": entity.amount,
            "currency": entity.currency,
            "gateway_fee": entity.gateway_fee or Decimal("0"),
            "gateway_response": entity.gateway_response,
            "notes": entity.notes,
            "verified_at": entity.verified_at,
            "paid_at": entity.paid_at,
            "created_at": entity.created_at or now,
            "updated_at": entity.updated_at or now,
        }

    async def get_by_reference(self, reference: str) -> Optional[Payment]:
        """根据支付 reference 获取支付记录"""
        result = await self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.reference == reference)
            .execution_options(populate_existing=True)
        )
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def create_if_absent(self, payment: Payment) -> tuple[Payment, bool]:
        """按 reference 幂等创建，冲突时返回已有记录"""
        values = self._to_values(payment)
        dialect = self.session.get_bind().dialect.name
        upsert = _UPSERT_DIALECTS.get(dialect)

        if upsert is not None:
            stmt = upsert(PaymentModel).values(**values).on_conflict_do_nothing(
                index_elements=[PaymentModel.reference]
            )
            result = await self.session.execute(stmt)
            created = result.rowcount == 1
        else:
            # 其他方言：在 SAVEPOINT 中插入，唯一约束冲突只回滚这一步
            try:
                async with self.session.begin_nested():
                    await self.session.execute(insert(PaymentModel).values(**values))
                created = True
            except IntegrityError:
                created = False

        stored = await self.get_by_reference(payment.reference)
        if stored is None:
            raise RuntimeError(f"payment {payment.reference} vanished after insert")
        if created:
            logger.info(
                "payment_created",
                payment_id=stored.id,
                reference=stored.reference,
                gateway=stored.gateway,
                status=stored.gateway_status.value,
            )
        else:
            logger.info("payment_create_skipped_existing", reference=payment.reference)
        return stored, created

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
        """条件更新为 success：已是 success 的记录不受影响"""
        values: dict[str, Any] = {
            "gateway_status": PaymentStatus.SUCCESS.value,
            "gateway_response": gateway_response,
            "verified_at": verified_at,
            "updated_at": datetime.now(timezone.utc),
        }
        if gateway_reference:
            values["gateway_reference"] = gateway_reference
        if gateway_fee is not None:
            values["gateway_fee"] = gateway_fee
        if paid_at is not None:
            values["paid_at"] = paid_at
        result = await self.session.execute(
            update(PaymentModel)
            .where(
                PaymentModel.reference == reference,
                PaymentModel.gateway_status != PaymentStatus.SUCCESS.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount > 0
        if updated:
            logger.info("payment_marked_success", reference=reference)
        return updated

    async def mark_failed(self, reference: str, *, gateway_response: Optional[dict[str, Any]]) -> bool:
        """条件更新为 failed：success 为粘性终态，不会被降级"""
        result = await self.session.execute(
            update(PaymentModel)
            .where(
                PaymentModel.reference == reference,
                PaymentModel.gateway_status != PaymentStatus.SUCCESS.value,
            )
            .values(
                gateway_status=PaymentStatus.FAILED.value,
                gateway_response=gateway_response,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount > 0
        if updated:
            logger.info("payment_marked_failed", reference=reference)
        return updated
