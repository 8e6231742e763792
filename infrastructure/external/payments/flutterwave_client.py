"""
Flutterwave adapter (inline checkout).

Flutterwave's inline widget needs the public key plus the order details;
the hosted payment link is kept in the result metadata for clients that
prefer a redirect. Webhooks carry the dashboard "secret hash" verbatim in
the `verif-hash` header.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from application.dtos.payments import (
    OrderContext,
    PaymentInitiationResult,
    PaymentVerificationResult,
    RefundResult,
    WebhookEvent,
    WebhookRequest,
)
from infrastructure.external.payments.base import (
    BaseGatewayClient,
    _decimal,
    _parse_datetime,
    _secure_equals,
)


class FlutterwaveClient(BaseGatewayClient):
    provider = "flutterwave"
    display_name = "Flutterwave"
    supported_currencies = ("NGN", "GHS", "KES", "ZAR", "TZS", "UGX", "USD", "EUR", "GBP")
    supports_inline = True

    async def initiate(self, order: OrderContext, amount: Decimal, currency: str) -> PaymentInitiationResult:
        if not self.is_available():
            return PaymentInitiationResult.failed("Flutterwave is not configured")

        reference = self.generate_reference(order.order_number)
        customer = {
            "email": order.customer_email or "customer@example.com",
            "name": order.customer_name or "Customer",
            "phonenumber": order.customer_phone or "",
        }
        payload = {
            "tx_ref": reference,
            "amount": float(amount),
            "currency": currency,
            "redirect_url": self.callback_url(order),
            "customer": customer,
            "customizations": {
                "title": order.metadata.get("shop_name", "Storefront"),
                "description": f"Payment for Order #{order.order_number}",
            },
            "meta": {
                "order_id": order.order_id,
                "order_number": order.order_number,
                "tenant_id": order.tenant_id,
                **order.metadata,
            },
        }
        response = await self._request("POST", "/payments", json=payload)
        if not response.ok or response.data.get("status") != "success":
            return PaymentInitiationResult.failed(response.message("Failed to initialize payment"), reference)

        data = response.data.get("data") or {}
        self._log("payment_initialized", order_id=order.order_id, reference=reference, amount=str(amount), currency=currency)
        return PaymentInitiationResult.inline(
            reference,
            {
                "public_key": self.public_key,
                "tx_ref": reference,
                "amount": float(amount),
                "currency": currency,
                "customer": customer,
                "redirect_url": payload["redirect_url"],
            },
            metadata={"payment_link": data.get("link"), "public_key": self.public_key},
        )

    async def verify(self, reference: str) -> PaymentVerificationResult:
        if not self.is_available():
            return PaymentVerificationResult.failed(reference, "Flutterwave is not configured")

        response = await self._request("GET", "/transactions/verify_by_reference", params={"tx_ref": reference})
        if not response.ok or response.data.get("status") != "success":
            return PaymentVerificationResult.failed(reference, response.message("Verification failed"), response.data)

        data = response.data.get("data") or {}
        status = self._map_status(data.get("status", "failed"))
        if status == "success":
            card = data.get("card") or {}
            return PaymentVerificationResult.succeeded(
                reference,
                _decimal(data.get("amount")) or Decimal("0"),
                data.get("currency") or "NGN",
                gateway_reference=str(data.get("id") or ""),
                payment_method=data.get("payment_type") or "card",
                channel=data.get("payment_type"),
                card_type=card.get("type"),
                gateway_fee=_decimal(data.get("app_fee")) or Decimal("0"),
                paid_at=_parse_datetime(data.get("created_at")),
                raw_response=data,
            )
        if status == "pending":
            return PaymentVerificationResult.pending(reference, "Payment is pending", data)
        return PaymentVerificationResult.failed(reference, data.get("processor_response") or "Payment failed", data)

    async def refund(
        self,
        reference: str,
        amount: Optional[Decimal],
        *,
        gateway_reference: Optional[str] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        if not self.is_available():
            return RefundResult.failed(reference, "Flutterwave is not configured")
        if not gateway_reference:
            return RefundResult.failed(reference, "Transaction ID not found for this payment")

        payload: dict = {}
        if amount is not None:
            payload["amount"] = float(amount)
        if reason:
            payload["comments"] = reason

        response = await self._request("POST", f"/transactions/{gateway_reference}/refund", json=payload)
        if not response.ok or response.data.get("status") != "success":
            return RefundResult.failed(reference, response.message("Refund failed"), response.data)

        data = response.data.get("data") or {}
        refund_reference = str(data.get("id") or "")
        refunded = _decimal(data.get("amount_refunded")) or amount
        refund_currency = data.get("currency") or currency or "NGN"
        self._log("payment_refund_requested", reference=reference, refund_reference=refund_reference)
        if self._map_status(data.get("status"), default="pending") == "success":
            return RefundResult.succeeded(reference, refund_reference, refunded, refund_currency, data)
        return RefundResult.pending(
            reference, refund_reference or None, refunded, refund_currency, "Refund is being processed", data
        )

    def validate_webhook(self, request: WebhookRequest) -> bool:
        signature = request.header("verif-hash")
        secret = self.config.webhook_secret
        if not signature or not secret:
            return False
        return _secure_equals(secret, signature)

    def parse_webhook(self, request: WebhookRequest) -> WebhookEvent:
        payload = request.json_payload()
        event = str(payload.get("event") or "")
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}

        if event == "charge.completed":
            status = "success" if data.get("status") == "successful" else "failed"
        else:
            status = str(data.get("status") or "unknown")

        meta = data.get("meta")
        return WebhookEvent(
            type=event,
            reference=str(data.get("tx_ref") or ""),
            status=status,
            amount=_decimal(data.get("amount")),
            currency=data.get("currency") or "NGN",
            gateway_reference=str(data.get("id") or "") or None,
            paid_at=_parse_datetime(data.get("created_at")),
            gateway_fee=_decimal(data.get("app_fee")),
            metadata=meta if isinstance(meta, dict) else {},
            raw_payload=payload,
        )
