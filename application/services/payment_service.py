"""
Application service orchestrating payment use-cases.

This class depends only on the application gateway ports and DTOs.
Adapters come from a resolver injected by the composition root (API
lifespan), keeping dependencies one-way. It persists nothing: callers
decide the transaction boundaries around initiate/verify.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.dtos.payments import (
    GatewayInfo,
    OrderContext,
    PaymentInitiationResult,
    PaymentVerificationResult,
    RefundResult,
)
from application.ports.payment_gateway import GatewayResolver
from core.logging_config import get_logger
from core.settings import PaymentSettings
from domain.payment.entity import Payment
from domain.payment.exceptions import PaymentTransientError


logger = get_logger(__name__)


class PaymentOrchestrator:
    def __init__(self, gateways: GatewayResolver, settings: PaymentSettings) -> None:
        self.gateways = gateways
        self.settings = settings

    async def initiate(
        self,
        order: OrderContext,
        gateway_name: Optional[str],
        amount: Decimal,
        currency: str,
    ) -> PaymentInitiationResult:
        gateway = self.gateways.resolve(gateway_name or self.settings.default_gateway)
        currency = currency.upper()
        logger.info(
            "payment_initiate_request",
            order_id=order.order_id,
            gateway=gateway.provider,
            amount=str(amount),
            currency=currency,
        )

        if currency not in self.settings.supported_currencies:
            return PaymentInitiationResult.failed(f"Currency {currency} is not supported")
        if currency not in gateway.supported_currencies:
            return PaymentInitiationResult.failed(f"{gateway.display_name} does not support {currency}")
        minimum = gateway.minimum_amount(currency)
        if amount < minimum:
            return PaymentInitiationResult.failed(f"Minimum amount for {currency} is {minimum}")

        result = await gateway.initiate(order, amount, currency)
        logger.info(
            "payment_initiate_response",
            order_id=order.order_id,
            gateway=gateway.provider,
            success=result.success,
            reference=result.reference,
            message=result.message,
        )
        return result

    async def verify(self, gateway_name: Optional[str], reference: str) -> PaymentVerificationResult:
        """Verify with the provider, retrying transient failures only."""
        gateway = self.gateways.resolve(gateway_name or self.settings.default_gateway)
        retry_cfg = self.settings.verification

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(retry_cfg.max_retries) + 1),
            wait=wait_exponential(multiplier=retry_cfg.base_backoff, min=0, max=2.0),
            retry=retry_if_exception_type(PaymentTransientError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "payment_verify_retry",
                        gateway=gateway.provider,
                        reference=reference,
                        attempt=attempt.retry_state.attempt_number,
                    )
                result = await gateway.verify(reference)
                logger.info(
                    "payment_verify_response",
                    gateway=gateway.provider,
                    reference=reference,
                    status=result.status,
                )
                return result

    async def refund(
        self,
        payment: Payment,
        amount: Optional[Decimal] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        gateway = self.gateways.resolve(payment.gateway)
        logger.info("payment_refund_request", gateway=gateway.provider, reference=payment.reference, amount=str(amount))

        if not payment.is_successful:
            return RefundResult.failed(payment.reference, "Only successful payments can be refunded")
        if amount is not None and amount > payment.amount:
            return RefundResult.failed(payment.reference, "Refund amount exceeds the amount paid")

        result = await gateway.refund(
            payment.reference,
            amount,
            gateway_reference=payment.gateway_reference,
            currency=payment.currency,
            reason=reason,
        )
        logger.info(
            "payment_refund_response",
            gateway=gateway.provider,
            reference=payment.reference,
            status=result.status,
            refund_reference=result.refund_reference,
        )
        return result

    def available_gateways(self) -> list[GatewayInfo]:
        return [
            GatewayInfo(
                id=gateway.provider,
                name=gateway.display_name,
                supports_inline=gateway.supports_inline,
                supports_refunds=gateway.supports_refunds,
                currencies=list(gateway.supported_currencies),
                public_key=gateway.public_key,
            )
            for gateway in self.gateways.available()
        ]
