"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    OrderContext,
    PaymentInitiationResult,
    PaymentVerificationResult,
    RefundResult,
    WebhookEvent,
    WebhookRequest,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment providers.

    Ordinary business failures come back as failed results. Only
    configuration and connectivity faults are raised.
    """

    provider: str
    display_name: str
    supported_currencies: tuple[str, ...]
    supports_inline: bool
    supports_refunds: bool

    def is_available(self) -> bool: ...

    @property
    def public_key(self) -> Optional[str]: ...

    def minimum_amount(self, currency: str) -> Decimal: ...

    async def initiate(self, order: OrderContext, amount: Decimal, currency: str) -> PaymentInitiationResult: ...

    async def verify(self, reference: str) -> PaymentVerificationResult: ...

    async def refund(
        self,
        reference: str,
        amount: Optional[Decimal],
        *,
        gateway_reference: Optional[str] = None,
        currency: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RefundResult: ...

    def validate_webhook(self, request: WebhookRequest) -> bool: ...

    def parse_webhook(self, request: WebhookRequest) -> WebhookEvent: ...


class GatewayResolver(Protocol):
    """Name -> adapter lookup; raises configuration errors for unusable names."""

    default_gateway: Optional[str]

    def resolve(self, name: Optional[str]) -> PaymentGateway: ...

    def default(self) -> PaymentGateway: ...

    def available(self) -> list[PaymentGateway]: ...
