"""
Paystack adapter (redirect checkout).

Amounts travel in the currency's minor unit (kobo for NGN). Webhooks are
signed with HMAC-SHA512 of the raw body, sent in `x-paystack-signature`.
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
    _hmac_sha512,
    _parse_datetime,
    _secure_equals,
)


class PaystackClient(BaseGatewayClient):
    provider = "paystack"
    display_name = "Paystack"
    supported_currencies = ("NGN", "GHS", "ZAR", "USD")
    supports_inline = True

    async def initiate(self, order: OrderContext, amount: Decimal, currency: str) -> PaymentInitiationResult:
        if not self.is_available():
            return PaymentInitiationResult.failed("Paystack is not configured")

        reference = self.generate_reference(order.order_number)
        amount_minor = self._to_minor(amount, currency)
        email = order.customer_email or "customer@example.com"
        payload = {
            "email": email,
            "amount": amount_minor,
            "currency": currency,
            "reference": reference,
            "callback_url": self.callback_url(order),
            "metadata": {
                "order_id": order.order_id,
                "order_number": order.order_number,
                "tenant_id": order.tenant_id,
                "shop_id": order.shop_id,
                "custom_fields": [
                    {
                        "display_name": "Order Number",
                        "variable_name": "order_number",
                        "value": order.order_number,
                    }
                ],
                **order.metadata,
            },
        }
        response = await self._request("POST", "/transaction/initialize", json=payload)
        if not response.ok or not response.data.get("status"):
            return PaymentInitiationResult.failed(response.message("Failed to initialize payment"), reference)

        data = response.data.get("data") or {}
        authorization_url = data.get("authorization_url")
        if not authorization_url:
            return PaymentInitiationResult.failed("Paystack did not return an authorization URL", reference)

        self._log("payment_initialized", order_id=order.order_id, reference=reference, amount=str(amount), currency=currency)
        return PaymentInitiationResult.redirect(
            reference,
            authorization_url,
            metadata={
                "access_code": data.get("access_code"),
                "public_key": self.public_key,
                "inline_data": {
                    "key": self.public_key,
                    "email": email,
                    "amount": amount_minor,
                    "currency": currency,
                    "ref": reference,
                },
            },
        )

    async def verify(self, reference: str) -> PaymentVerificationResult:
        if not self.is_available():
            return PaymentVerificationResult.failed(reference, "Paystack is not configured")

        response = await self._request("GET", f"/transaction/verify/{reference}")
        if not response.ok:
            return PaymentVerificationResult.failed(
                reference, response.message("Verification request failed"), response.data
            )

        data = response.data.get("data") or {}
        status = self._map_status(data.get("status", "failed"))
        if status == "success":
            currency = data.get("currency") or "NGN"
            authorization = data.get("authorization") or {}
            return PaymentVerificationResult.succeeded(
                reference,
                self._from_minor(data.get("amount"), currency) or Decimal("0"),
                currency,
                gateway_reference=str(data.get("id") or reference),
                payment_method=data.get("channel") or "card",
                channel=data.get("channel"),
                card_type=authorization.get("card_type"),
                bank=authorization.get("bank"),
                gateway_fee=self._from_minor(data.get("fees"), currency),
                paid_at=_parse_datetime(data.get("paid_at")),
                raw_response=data,
            )
        if status == "pending":
            return PaymentVerificationResult.pending(reference, "Payment is still being processed", data)
        return PaymentVerificationResult.failed(reference, data.get("gateway_response") or "Payment failed", data)

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
            return RefundResult.failed(reference, "Paystack is not configured")
        if not gateway_reference:
            return RefundResult.failed(reference, "Gateway reference not found for this payment")

        payload: dict = {"transaction": gateway_reference}
        if amount is not None:
            payload["amount"] = self._to_minor(amount, currency or "NGN")
        if reason:
            payload["merchant_note"] = reason

        response = await self._request("POST", "/refund", json=payload)
        if not response.ok or not response.data.get("status"):
            return RefundResult.failed(reference, response.message("Refund request failed"), response.data)

        data = response.data.get("data") or {}
        refund_currency = data.get("currency") or currency or "NGN"
        refund_reference = str(data.get("id") or "")
        refunded = self._from_minor(data.get("amount"), refund_currency)
        self._log("payment_refund_requested", reference=reference, refund_reference=refund_reference)
        # Paystack refunds settle asynchronously; only "processed" is final
        status = self._map_status(data.get("status"), default="pending")
        if status == "success":
            return RefundResult.succeeded(reference, refund_reference, refunded, refund_currency, data)
        if status == "failed":
            return RefundResult.failed(reference, "Refund was rejected by Paystack", data)
        return RefundResult.pending(
            reference, refund_reference or None, refunded, refund_currency, "Refund is being processed", data
        )

    def validate_webhook(self, request: WebhookRequest) -> bool:
        signature = request.header("x-paystack-signature")
        secret = self.config.webhook_secret
        if not signature or not secret:
            return False
        return _secure_equals(_hmac_sha512(secret, request.body), signature)

    def parse_webhook(self, request: WebhookRequest) -> WebhookEvent:
        payload = request.json_payload()
        event = str(payload.get("event") or "")
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}

        if event == "charge.success":
            status = "success"
        elif event == "charge.failed":
            status = "failed"
        else:
            status = str(data.get("status") or "unknown")

        currency = data.get("currency") or "NGN"
        metadata = data.get("metadata")
        return WebhookEvent(
            type=event,
            reference=str(data.get("reference") or ""),
            status=status,
            amount=self._from_minor(data.get("amount"), currency),
            currency=currency,
            gateway_reference=str(data.get("id") or "") or None,
            paid_at=_parse_datetime(data.get("paid_at")),
            gateway_fee=self._from_minor(data.get("fees"), currency),
            metadata=metadata if isinstance(metadata, dict) else {},
            raw_payload=payload,
        )
