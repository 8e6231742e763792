"""
OPay cashier adapter (redirect checkout, NGN only).

The cashier API answers HTTP 200 for most outcomes and carries the real
result in `code`; `00000` means accepted. Refunds are dashboard-only.
"""
from __future__ import annotations

import time
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
    _secure_equals,
)

OPAY_OK = "00000"
CHECKOUT_TTL_SECONDS = 1800


class OpayClient(BaseGatewayClient):
    provider = "opay"
    display_name = "OPay"
    supported_currencies = ("NGN",)
    supports_refunds = False

    def _default_headers(self) -> dict[str, str]:
        headers = super()._default_headers()
        merchant_id = getattr(self.config, "merchant_id", None)
        if merchant_id:
            headers["MerchantId"] = merchant_id
        return headers

    async def initiate(self, order: OrderContext, amount: Decimal, currency: str) -> PaymentInitiationResult:
        if not self.is_available():
            return PaymentInitiationResult.failed("OPay is not configured")

        reference = self.generate_reference(order.order_number)
        callback_url = self.callback_url(order)
        payload = {
            "reference": reference,
            "mchShortName": getattr(self.config, "merchant_name", "Storefront"),
            "productName": f"Order #{order.order_number}",
            "productDesc": f"Payment for order {order.order_number}",
            "userPhone": order.customer_phone or "",
            "userRequestIp": order.client_ip or "",
            "amount": str(self._to_minor(amount, "NGN")),
            "currency": "NGN",
            "callbackUrl": callback_url,
            "returnUrl": order.return_url or callback_url,
            "expireAt": str(int(time.time()) + CHECKOUT_TTL_SECONDS),
        }
        response = await self._request("POST", "/api/v3/cashier/initialize", json=payload)
        if not response.ok or response.data.get("code") != OPAY_OK:
            return PaymentInitiationResult.failed(response.message("Failed to initialize OPay payment"), reference)

        data = response.data.get("data") or {}
        cashier_url = data.get("cashierUrl")
        if not cashier_url:
            return PaymentInitiationResult.failed("OPay did not return a cashier URL", reference)

        self._log("payment_initialized", order_id=order.order_id, reference=reference, amount=str(amount))
        return PaymentInitiationResult.redirect(reference, cashier_url, metadata={"order_no": data.get("orderNo", "")})

    async def verify(self, reference: str) -> PaymentVerificationResult:
        if not self.is_available():
            return PaymentVerificationResult.failed(reference, "OPay is not configured")

        response = await self._request("POST", "/api/v3/cashier/status", json={"reference": reference})
        if not response.ok:
            return PaymentVerificationResult.failed(
                reference, response.message("Verification request failed"), response.data
            )

        data = response.data.get("data") or {}
        status = self._map_status(data.get("status", "FAIL"))
        if status == "success":
            return PaymentVerificationResult.succeeded(
                reference,
                self._from_minor(data.get("amount") or 0, "NGN"),
                "NGN",
                gateway_reference=data.get("orderNo") or reference,
                payment_method="opay",
                raw_response=data,
            )
        if status == "pending":
            return PaymentVerificationResult.pending(reference, "Payment is being processed", data)
        return PaymentVerificationResult.failed(reference, data.get("failureReason") or "Payment failed", data)

    async def refund(
        self,
        reference: str,
        amount: Optional[Decimal],
        *,
        gateway_reference: Optional[str] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        return RefundResult.failed(reference, "OPay refunds must be processed through the OPay merchant dashboard")

    def validate_webhook(self, request: WebhookRequest) -> bool:
        signature = request.header("authorization")
        secret = self.config.webhook_secret
        if not signature or not secret:
            return False
        return _secure_equals(f"Bearer {_hmac_sha512(secret, request.body)}", signature)

    def parse_webhook(self, request: WebhookRequest) -> WebhookEvent:
        payload = request.json_payload()
        data = payload.get("payload") if isinstance(payload.get("payload"), dict) else payload

        provider_status = data.get("status") or ""
        if provider_status == "SUCCESS":
            status = "success"
        elif provider_status == "FAIL":
            status = "failed"
        else:
            status = "pending"

        amount = data.get("amount")
        return WebhookEvent(
            type=f"payment.{status}",
            reference=str(data.get("reference") or ""),
            status=status,
            amount=self._from_minor(amount, "NGN") if amount is not None else None,
            currency="NGN",
            gateway_reference=data.get("orderNo") or None,
            raw_payload=payload,
        )
