"""
Customer return (callback) flow.

When the customer comes back from the provider checkout the order is
verified synchronously (if enabled) and a confirmed payment is recorded
through the same ledger the webhook path uses, so whichever arrives
first wins and the other becomes a no-op.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.payments import CallbackOutcome, PaymentVerificationResult
from application.services.payment_ledger import PaymentLedger
from application.services.payment_service import PaymentOrchestrator
from core.logging_config import get_logger
from core.settings import PaymentSettings
from domain.common.exceptions import BusinessException, OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order
from shared.codes import BusinessCode


logger = get_logger(__name__)


class PaymentCallbackService:
    def __init__(
        self,
        orchestrator: PaymentOrchestrator,
        uow_factory: Callable[[], AbstractUnitOfWork],
        settings: PaymentSettings,
    ) -> None:
        self.orchestrator = orchestrator
        self.uow_factory = uow_factory
        self.settings = settings

    async def handle_callback(self, order_id: int, gateway: str, reference: Optional[str]) -> CallbackOutcome:
        order = await self._load_order(order_id)
        reference = reference or order.payment_reference
        if not reference:
            return CallbackOutcome(
                order_id=order_id, gateway=gateway, status="failed", message="Payment reference not found"
            )

        if not self.settings.verify_on_callback:
            logger.info("payment_callback_deferred", order_id=order_id, gateway=gateway, reference=reference)
            return CallbackOutcome(
                order_id=order_id,
                gateway=gateway,
                reference=reference,
                status="pending",
                message="Awaiting payment confirmation",
            )
        return await self._verify_and_record(order, gateway, reference)

    async def verify_order(self, order_id: int) -> CallbackOutcome:
        """Re-check the payment attached to an order, regardless of the callback switch."""
        order = await self._load_order(order_id)
        if not order.payment_reference or not order.payment_gateway:
            raise BusinessException(
                code=BusinessCode.BUSINESS_ERROR,
                message="No payment to verify",
                error_type="PaymentNotInitiated",
                details={"order_id": order_id},
            )
        return await self._verify_and_record(order, order.payment_gateway, order.payment_reference)

    async def _load_order(self, order_id: int) -> Order:
        async with self.uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        return order

    async def _verify_and_record(self, order: Order, gateway: str, reference: str) -> CallbackOutcome:
        result: PaymentVerificationResult = await self.orchestrator.verify(gateway, reference)

        if result.is_successful():
            async with self.uow_factory() as uow:
                action = await PaymentLedger(uow).record_success(
                    order,
                    gateway=gateway,
                    reference=reference,
                    amount=result.amount,
                    currency=result.currency,
                    gateway_reference=result.gateway_reference,
                    gateway_fee=result.gateway_fee,
                    payment_method=result.payment_method,
                    paid_at=result.paid_at,
                    gateway_response=result.raw_response,
                )
            logger.info("payment_callback_confirmed", order_id=order.id, reference=reference, action=action)
            return CallbackOutcome(
                order_id=order.id,
                gateway=gateway,
                reference=reference,
                status="success",
                message="Payment successful",
                amount=result.amount,
                currency=result.currency,
            )

        if result.is_pending():
            message = "Payment is being processed. You will be notified once confirmed."
        else:
            message = result.message or "Payment verification failed"
        logger.info("payment_callback_unconfirmed", order_id=order.id, reference=reference, status=result.status)
        return CallbackOutcome(
            order_id=order.id, gateway=gateway, reference=reference, status=result.status, message=message
        )
