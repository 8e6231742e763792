"""
Inbound webhook reconciliation.

resolve gateway -> validate signature -> parse -> apply to the ledger.
Nothing is written before the signature check passes. Unknown gateways and
bad signatures are answered, not raised, so the endpoint never 500s on
hostile input.
"""
from __future__ import annotations

from typing import Callable

from application.dtos.payments import WebhookEvent, WebhookOutcome, WebhookRequest
from application.ports.payment_gateway import GatewayResolver
from application.services.payment_ledger import PaymentLedger, find_order_by_reference
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.exceptions import GatewayConfigurationError


logger = get_logger(__name__)


class WebhookReconciler:
    def __init__(
        self,
        gateways: GatewayResolver,
        uow_factory: Callable[[], AbstractUnitOfWork],
        *,
        log_payloads: bool = False,
    ) -> None:
        self.gateways = gateways
        self.uow_factory = uow_factory
        self.log_payloads = log_payloads

    async def handle(self, gateway_name: str, request: WebhookRequest) -> WebhookOutcome:
        try:
            gateway = self.gateways.resolve(gateway_name)
        except GatewayConfigurationError as exc:
            logger.warning("payment_webhook_unknown_gateway", gateway=gateway_name, reason=exc.message)
            return WebhookOutcome(status_code=400, message="Unknown gateway", action="rejected")

        if not gateway.validate_webhook(request):
            logger.warning(
                "payment_webhook_signature_invalid",
                gateway=gateway.provider,
                body_bytes=len(request.body),
            )
            return WebhookOutcome(status_code=401, message="Invalid signature", action="rejected")

        event = gateway.parse_webhook(request)
        logger.info(
            "payment_webhook_received",
            gateway=gateway.provider,
            type=event.type,
            reference=event.reference,
            status=event.status,
        )
        if self.log_payloads:
            logger.info("payment_webhook_payload", gateway=gateway.provider, payload=event.raw_payload)

        action = await self._apply(gateway.provider, event)
        logger.info(
            "payment_webhook_handled",
            gateway=gateway.provider,
            type=event.type,
            reference=event.reference,
            status=event.status,
            action=action,
        )
        return WebhookOutcome(status_code=200, message="OK", action=action, reference=event.reference or None)

    async def _apply(self, gateway: str, event: WebhookEvent) -> str:
        if not event.reference:
            return "ignored"

        if event.is_successful_charge():
            async with self.uow_factory() as uow:
                order = await find_order_by_reference(uow.order_repository, event.reference)
                return await PaymentLedger(uow).record_success(
                    order,
                    gateway=gateway,
                    reference=event.reference,
                    amount=event.amount,
                    currency=event.currency,
                    gateway_reference=event.gateway_reference,
                    gateway_fee=event.gateway_fee,
                    paid_at=event.paid_at,
                    gateway_response=event.raw_payload,
                )

        if event.is_failed_charge():
            async with self.uow_factory() as uow:
                action = await PaymentLedger(uow).record_failure(
                    event.reference, gateway_response=event.raw_payload
                )
            if action == "ignored":
                logger.info("payment_webhook_failure_without_record", gateway=gateway, reference=event.reference)
            return action

        # pending, refund, transfer and unrecognised events are acknowledged only
        return "ignored"
