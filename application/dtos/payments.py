"""
Payment DTOs (Pydantic v2) used at application boundaries.

Result objects are immutable. The named constructors (`redirect`, `inline`,
`crypto`, `failed`, ...) are the intended way to build them; the validators
reject any shape the constructors would never produce.
"""
from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


ResultStatus = Literal["success", "pending", "failed"]

# Provider event types that mean "money arrived" / "charge did not go through"
SUCCESS_EVENT_TYPES = frozenset({
    "charge.success",
    "charge.completed",
    "payment.success",
    "transaction.success",
})
FAILURE_EVENT_TYPES = frozenset({
    "charge.failed",
    "payment.failed",
    "transaction.failed",
})
# Completion events whose outcome is carried by status rather than by type
COMPLETION_EVENT_TYPES = frozenset({"charge.completed"})


class OrderContext(BaseModel):
    """What an adapter needs to know about the order being paid."""

    order_id: int
    order_number: str
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    tenant_id: Optional[int] = None
    shop_id: Optional[int] = None
    callback_url: Optional[str] = None
    return_url: Optional[str] = None
    client_ip: Optional[str] = None
    pay_currency: Optional[str] = None  # crypto only, e.g. "btc"
    metadata: dict[str, Any] = Field(default_factory=dict)


class PaymentInitiationResult(BaseModel):
    success: bool
    reference: Optional[str] = None
    redirect_url: Optional[str] = None
    inline_payload: Optional[dict[str, Any]] = None
    wallet_address: Optional[str] = None
    crypto_amount: Optional[Decimal] = None
    crypto_currency: Optional[str] = None
    qr_payload: Optional[str] = None
    expires_at: Optional[datetime] = None
    message: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _exactly_one_shape(self) -> "PaymentInitiationResult":
        shapes = [bool(self.redirect_url), self.inline_payload is not None, bool(self.wallet_address)]
        if self.success:
            if not self.reference:
                raise ValueError("successful initiation requires a reference")
            if sum(shapes) != 1:
                raise ValueError("successful initiation must carry exactly one of redirect_url, inline_payload, wallet_address")
        elif any(shapes):
            raise ValueError("failed initiation cannot carry a payment shape")
        return self

    @classmethod
    def redirect(cls, reference: str, redirect_url: str, *, message: str | None = None,
                 metadata: dict[str, Any] | None = None) -> "PaymentInitiationResult":
        return cls(success=True, reference=reference, redirect_url=redirect_url,
                   message=message, metadata=metadata or {})

    @classmethod
    def inline(cls, reference: str, payload: dict[str, Any], *, message: str | None = None,
               metadata: dict[str, Any] | None = None) -> "PaymentInitiationResult":
        return cls(success=True, reference=reference, inline_payload=payload,
                   message=message, metadata=metadata or {})

    @classmethod
    def crypto(
        cls,
        reference: str,
        wallet_address: str,
        amount: Decimal,
        currency: str,
        *,
        qr_payload: str | None = None,
        expires_at: datetime | None = None,
        message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "PaymentInitiationResult":
        return cls(
            success=True,
            reference=reference,
            wallet_address=wallet_address,
            crypto_amount=amount,
            crypto_currency=currency,
            qr_payload=qr_payload,
            expires_at=expires_at,
            message=message,
            metadata=metadata or {},
        )

    @classmethod
    def failed(cls, message: str, reference: str | None = None,
               metadata: dict[str, Any] | None = None) -> "PaymentInitiationResult":
        return cls(success=False, reference=reference, message=message, metadata=metadata or {})

    def requires_redirect(self) -> bool:
        return self.success and bool(self.redirect_url)

    def is_inline(self) -> bool:
        return self.success and self.inline_payload is not None

    def is_crypto(self) -> bool:
        return self.success and bool(self.wallet_address)


class PaymentVerificationResult(BaseModel):
    success: bool
    reference: str
    status: ResultStatus
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    gateway_reference: Optional[str] = None
    payment_method: Optional[str] = None
    channel: Optional[str] = None
    card_type: Optional[str] = None
    bank: Optional[str] = None
    gateway_fee: Optional[Decimal] = None
    paid_at: Optional[datetime] = None
    message: Optional[str] = None
    raw_response: Optional[dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _status_matches_flag(self) -> "PaymentVerificationResult":
        if self.success != (self.status == "success"):
            raise ValueError("success flag and status disagree")
        return self

    @classmethod
    def succeeded(cls, reference: str, amount: Decimal, currency: str, **fields: Any) -> "PaymentVerificationResult":
        return cls(success=True, status="success", reference=reference, amount=amount, currency=currency, **fields)

    @classmethod
    def pending(cls, reference: str, message: str | None = None,
                raw_response: dict[str, Any] | None = None) -> "PaymentVerificationResult":
        return cls(success=False, status="pending", reference=reference, message=message, raw_response=raw_response)

    @classmethod
    def failed(cls, reference: str, message: str,
               raw_response: dict[str, Any] | None = None) -> "PaymentVerificationResult":
        return cls(success=False, status="failed", reference=reference, message=message, raw_response=raw_response)

    def is_successful(self) -> bool:
        return self.success

    def is_pending(self) -> bool:
        return self.status == "pending"


class RefundResult(BaseModel):
    success: bool
    reference: str
    status: ResultStatus
    refund_reference: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    message: Optional[str] = None
    raw_response: Optional[dict[str, Any]] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _status_matches_flag(self) -> "RefundResult":
        if self.success != (self.status == "success"):
            raise ValueError("success flag and status disagree")
        if self.refund_reference and self.refund_reference == self.reference:
            raise ValueError("refund reference must differ from the payment reference")
        return self

    @classmethod
    def succeeded(cls, reference: str, refund_reference: str, amount: Decimal | None, currency: str | None,
                  raw_response: dict[str, Any] | None = None) -> "RefundResult":
        return cls(success=True, status="success", reference=reference, refund_reference=refund_reference,
                   amount=amount, currency=currency, raw_response=raw_response)

    @classmethod
    def pending(cls, reference: str, refund_reference: str | None, amount: Decimal | None = None,
                currency: str | None = None, message: str | None = None,
                raw_response: dict[str, Any] | None = None) -> "RefundResult":
        return cls(success=False, status="pending", reference=reference, refund_reference=refund_reference,
                   amount=amount, currency=currency, message=message, raw_response=raw_response)

    @classmethod
    def failed(cls, reference: str, message: str, raw_response: dict[str, Any] | None = None) -> "RefundResult":
        return cls(success=False, status="failed", reference=reference, message=message, raw_response=raw_response)


class WebhookEvent(BaseModel):
    """Canonical, gateway-agnostic form of an inbound provider notification."""

    type: str
    reference: str
    status: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    gateway_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    gateway_fee: Optional[Decimal] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    raw_payload: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def is_successful_charge(self) -> bool:
        return self.type in SUCCESS_EVENT_TYPES and self.status == "success"

    def is_failed_charge(self) -> bool:
        if self.type in FAILURE_EVENT_TYPES:
            return True
        return self.type in COMPLETION_EVENT_TYPES and self.status == "failed"

    def is_refund(self) -> bool:
        return "refund" in self.type

    def is_transfer(self) -> bool:
        return "transfer" in self.type


class WebhookRequest(BaseModel):
    """Raw inbound webhook: headers (lower-cased names) plus the untouched body."""

    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @field_validator("headers")
    @classmethod
    def _lower_header_names(cls, v: dict[str, str]) -> dict[str, str]:
        return {name.lower(): value for name, value in v.items()}

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    def json_payload(self) -> dict[str, Any]:
        """Decoded JSON body, or {} when the body is not a JSON object."""
        try:
            data = json.loads(self.body or b"{}")
        except (ValueError, UnicodeDecodeError):
            return {}
        return data if isinstance(data, dict) else {}


class WebhookOutcome(BaseModel):
    """What the webhook endpoint answers, plus what the reconciler did."""

    status_code: int
    message: str
    action: Literal["created", "updated", "noop", "ignored", "rejected"]
    reference: Optional[str] = None


class CallbackOutcome(BaseModel):
    """Result of the customer returning from the provider checkout."""

    order_id: int
    gateway: str
    reference: Optional[str] = None
    status: ResultStatus
    message: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None


# --- API payloads ---------------------------------------------------------

class InitiatePaymentRequest(BaseModel):
    gateway: Optional[str] = None
    callback_url: Optional[str] = None
    return_url: Optional[str] = None
    pay_currency: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class RefundPaymentRequest(BaseModel):
    reference: str
    amount: Optional[Decimal] = Field(default=None, gt=0)
    reason: Optional[str] = None


class GatewayInfo(BaseModel):
    id: str
    name: str
    supports_inline: bool
    supports_refunds: bool
    currencies: list[str]
    public_key: Optional[str] = None
