"""
Payment ledger: the reference-keyed state rules shared by the callback and
webhook paths.

Per reference: unknown -> pending -> {success, failed}. Success is sticky.
Every write goes through the repository's conditional primitives so two
concurrent deliveries for the same reference cannot both "win".
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal, Optional

from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order
from domain.order.repository import OrderRepository
from domain.payment.entity import Payment, PaymentStatus


logger = get_logger(__name__)

LedgerAction = Literal["created", "updated", "noop", "ignored"]


async def find_order_by_reference(orders: OrderRepository, reference: str) -> Optional[Order]:
    """Exact `payment_reference` match first, then the order number embedded in the reference.

    References are synthesized as `{GATEWAY}_{order_number}_{suffix}`, so the
    fallback takes the second `_`-separated segment. Order numbers that
    themselves contain `_` cannot be recovered this way.
    """
    order = await orders.get_by_payment_reference(reference)
    if order is not None:
        return order

    parts = reference.split("_")
    if len(parts) >= 2 and parts[1]:
        return await orders.get_by_order_number(parts[1])
    return None


class PaymentLedger:
    def __init__(self, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    async def open_pending(
        self,
        order: Order,
        *,
        gateway: str,
        reference: str,
        amount: Decimal,
        currency: str,
        gateway_response: Optional[dict[str, Any]] = None,
    ) -> Payment:
        """Create the pending record for a fresh initiation (no-op if it already exists)."""
        payment, _ = await self.uow.payment_repository.create_if_absent(
            Payment(
                id=None,
                order_id=order.id,
                reference=reference,
                gateway=gateway,
                amount=amount,
                currency=currency,
                gateway_status=PaymentStatus.PENDING,
                gateway_response=gateway_response,
                tenant_id=order.tenant_id,
                shop_id=order.shop_id,
            )
        )
        return payment

    async def record_success(
        self,
        order: Optional[Order],
        *,
        gateway: str,
        reference: str,
        amount: Optional[Decimal],
        currency: Optional[str],
        gateway_reference: Optional[str] = None,
        gateway_fee: Optional[Decimal] = None,
        payment_method: Optional[str] = None,
        paid_at: Optional[datetime] = None,
        gateway_response: Optional[dict[str, Any]] = None,
    ) -> LedgerAction:
        repo = self.uow.payment_repository
        verified_at = datetime.now(timezone.utc)
        success_fields = dict(
            gateway_response=gateway_response,
            verified_at=verified_at,
            gateway_reference=gateway_reference,
            gateway_fee=gateway_fee,
            paid_at=paid_at,
        )

        if await repo.mark_success(reference, **success_fields):
            return "updated"
        if await repo.get_by_reference(reference) is not None:
            # already success: replayed delivery
            return "noop"
        if order is None:
            logger.warning("payment_order_not_found", reference=reference, gateway=gateway)
            return "ignored"

        _, created = await repo.create_if_absent(
            Payment(
                id=None,
                order_id=order.id,
                reference=reference,
                gateway=gateway,
                amount=amount if amount is not None else order.total_amount,
                currency=currency or order.currency,
                gateway_status=PaymentStatus.SUCCESS,
                gateway_reference=gateway_reference,
                gateway_fee=gateway_fee or Decimal("0"),
                payment_method=payment_method or gateway,
                gateway_response=gateway_response,
                tenant_id=order.tenant_id,
                shop_id=order.shop_id,
                verified_at=verified_at,
                paid_at=paid_at or verified_at,
            )
        )
        if created:
            return "created"
        # lost the insert race; the winner may still be pending
        return "updated" if await repo.mark_success(reference, **success_fields) else "noop"

    async def record_failure(
        self,
        reference: str,
        *,
        gateway_response: Optional[dict[str, Any]] = None,
    ) -> LedgerAction:
        repo = self.uow.payment_repository
        if await repo.mark_failed(reference, gateway_response=gateway_response):
            return "updated"
        if await repo.get_by_reference(reference) is not None:
            logger.info("payment_failure_ignored_for_success", reference=reference)
            return "noop"
        return "ignored"
