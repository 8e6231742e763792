"""
Crypto adapter (NOWPayments-style API).

Authenticates with `x-api-key` instead of a bearer secret. IPN callbacks
are signed with HMAC-SHA512 over the key-sorted, compact JSON payload.
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
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
    _hmac_sha512,
    _parse_datetime,
    _secure_equals,
)

DEFAULT_PAY_CURRENCY = "btc"
INVOICE_TTL = timedelta(minutes=30)


class CryptoClient(BaseGatewayClient):
    provider = "crypto"
    display_name = "Cryptocurrency"
    supported_currencies = ("USD", "EUR", "NGN", "GBP")
    supports_refunds = False

    def is_available(self) -> bool:
        return bool(getattr(self.config, "api_key", None))

    def _default_headers(self) -> dict[str, str]:
        return {
            "x-api-key": getattr(self.config, "api_key", None) or "",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _ipn_secret(self) -> Optional[str]:
        return getattr(self.config, "ipn_secret", None) or self.config.webhook_secret

    async def initiate(self, order: OrderContext, amount: Decimal, currency: str) -> PaymentInitiationResult:
        if not self.is_available():
            return PaymentInitiationResult.failed("Crypto payments are not configured")

        reference = self.generate_reference(order.order_number)
        pay_currency = (order.pay_currency or DEFAULT_PAY_CURRENCY).lower()
        payload = {
            "price_amount": float(amount),
            "price_currency": currency.lower(),
            "pay_currency": pay_currency,
            "ipn_callback_url": self.webhook_url(),
            "order_id": reference,
            "order_description": f"Order #{order.order_number}",
        }
        response = await self._request("POST", "/payment", json=payload)
        if not response.ok:
            return PaymentInitiationResult.failed(response.message("Failed to create crypto payment"), reference)

        data = response.data
        wallet_address = data.get("pay_address")
        if not wallet_address:
            return PaymentInitiationResult.failed("Crypto provider did not return a wallet address", reference)

        expires_at = _parse_datetime(data.get("expiration_estimate_date")) or datetime.now(timezone.utc) + INVOICE_TTL
        self._log("payment_initialized", order_id=order.order_id, reference=reference, pay_currency=pay_currency)
        return PaymentInitiationResult.crypto(
            reference,
            wallet_address,
            _decimal(data.get("pay_amount")) or Decimal("0"),
            pay_currency.upper(),
            qr_payload=data.get("qr_code"),
            expires_at=expires_at,
            metadata={
                "payment_id": data.get("payment_id"),
                "payment_url": data.get("invoice_url"),
            },
        )

    async def verify(self, reference: str) -> PaymentVerificationResult:
        if not self.is_available():
            return PaymentVerificationResult.failed(reference, "Crypto payments are not configured")

        response = await self._request("GET", f"/payment/{reference}")
        if not response.ok:
            return PaymentVerificationResult.failed(
                reference, response.message("Verification request failed"), response.data
            )

        data = response.data
        provider_status = data.get("payment_status", "waiting")
        status = self._map_status(provider_status)
        if status == "success":
            return PaymentVerificationResult.succeeded(
                reference,
                _decimal(data.get("price_amount")) or Decimal("0"),
                str(data.get("price_currency") or "USD").upper(),
                gateway_reference=str(data.get("payment_id") or reference),
                payment_method=f"crypto_{data.get('pay_currency') or DEFAULT_PAY_CURRENCY}",
                raw_response=data,
            )
        if status == "pending":
            return PaymentVerificationResult.pending(reference, f"Payment status: {provider_status}", data)
        return PaymentVerificationResult.failed(reference, f"Payment {provider_status}", data)

    async def refund(
        self,
        reference: str,
        amount: Optional[Decimal],
        *,
        gateway_reference: Optional[str] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        return RefundResult.failed(
            reference, "Cryptocurrency payments cannot be refunded automatically. Please process manually."
        )

    def validate_webhook(self, request: WebhookRequest) -> bool:
        signature = request.header("x-nowpayments-sig")
        secret = self._ipn_secret()
        if not signature or not secret:
            return False
        canonical = json.dumps(request.json_payload(), sort_keys=True, separators=(",", ":"))
        return _secure_equals(_hmac_sha512(secret, canonical.encode("utf-8")), signature)

    def parse_webhook(self, request: WebhookRequest) -> WebhookEvent:
        payload = request.json_payload()
        status = self._map_status(payload.get("payment_status", ""), default="pending")
        return WebhookEvent(
            type=f"payment.{status}",
            reference=str(payload.get("order_id") or ""),
            status=status,
            amount=_decimal(payload.get("price_amount")),
            currency=str(payload.get("price_currency") or "USD").upper(),
            gateway_reference=str(payload.get("payment_id") or "") or None,
            metadata={
                "pay_amount": payload.get("pay_amount"),
                "pay_currency": payload.get("pay_currency"),
                "actually_paid": payload.get("actually_paid"),
            },
            raw_payload=payload,
        )
