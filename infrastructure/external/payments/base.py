"""
Base gateway client implementing shared concerns: http, error mapping,
logging, money and reference helpers.

Concrete providers subclass and implement the five gateway operations.
Retrying is the caller's decision: this layer only translates timeouts,
transport failures and 5xx answers into `PaymentTransientError`.
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
import string
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

import httpx

from core.logging_config import get_logger
from core.settings import GatewayCredentials, PaymentTimeouts
from application.dtos.payments import OrderContext
from domain.payment.exceptions import PaymentProviderError, PaymentTransientError
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)

ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW"})

MINIMUM_AMOUNTS = {
    "NGN": Decimal("100"),
    "USD": Decimal("1"),
    "GHS": Decimal("1"),
    "KES": Decimal("100"),
    "ZAR": Decimal("10"),
}
DEFAULT_MINIMUM_AMOUNT = Decimal("1")

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class ProviderResponse:
    status_code: int
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def message(self, default: str) -> str:
        return str(self.data.get("message") or default)


class BaseGatewayClient:
    provider: str = "base"
    display_name: str = "Base"
    supported_currencies: tuple[str, ...] = ()
    supports_inline: bool = False
    supports_refunds: bool = True

    def __init__(
        self,
        config: GatewayCredentials,
        *,
        timeouts: Optional[PaymentTimeouts] = None,
        public_base_url: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._timeouts_cfg = (timeouts or PaymentTimeouts()).model_dump()
        self._public_base_url = public_base_url.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._timeouts_cfg["total"],
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
        )

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts, transport=self._transport)
        try:
            yield self._client
        finally:
            # Keep open for reuse; explicit aclose() will close.
            ...

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    # Capabilities
    def is_available(self) -> bool:
        return bool(self.config.secret_key)

    @property
    def public_key(self) -> Optional[str]:
        return self.config.public_key

    def minimum_amount(self, currency: str) -> Decimal:
        return MINIMUM_AMOUNTS.get(currency.upper(), DEFAULT_MINIMUM_AMOUNT)

    def generate_reference(self, order_number: str) -> str:
        """`{GATEWAY}_{order_number}_{RANDOM8}`; the webhook fallback lookup splits on `_`."""
        suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(8))
        return f"{self.provider.upper()}_{order_number}_{suffix}"

    def callback_url(self, order: OrderContext) -> str:
        if order.callback_url:
            return order.callback_url
        return f"{self._public_base_url}/api/v1/payments/callback/{self.provider}/{order.order_id}"

    def webhook_url(self) -> str:
        return f"{self._public_base_url}/webhooks/payment/{self.provider}"

    # HTTP
    def _default_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.secret_key or ''}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> ProviderResponse:
        url = f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"
        merged = {**self._default_headers(), **(headers or {})}
        try:
            async with self.client() as client:
                response = await client.request(method, url, json=json, params=params, headers=merged)
        except httpx.TimeoutException as exc:
            logger.warning("payment_provider_timeout", provider=self.provider, path=path)
            raise PaymentTransientError(
                f"{self.display_name} request timed out", provider=self.provider, details={"path": path}
            ) from exc
        except httpx.TransportError as exc:
            logger.warning("payment_provider_unreachable", provider=self.provider, path=path, error=str(exc))
            raise PaymentTransientError(
                f"{self.display_name} is unreachable: {exc}", provider=self.provider, details={"path": path}
            ) from exc

        if response.status_code >= 500 or response.status_code == 429:
            logger.warning(
                "payment_provider_unavailable",
                provider=self.provider,
                path=path,
                status_code=response.status_code,
            )
            raise PaymentTransientError(
                f"{self.display_name} answered HTTP {response.status_code}",
                provider=self.provider,
                status_code=response.status_code,
                details={"path": path},
            )

        try:
            data = response.json() if response.content else {}
        except ValueError as exc:
            raise PaymentProviderError(
                f"{self.display_name} returned a non-JSON response",
                provider=self.provider,
                details={"path": path, "status_code": response.status_code},
            ) from exc
        if not isinstance(data, dict):
            raise PaymentProviderError(
                f"{self.display_name} returned an unexpected JSON document",
                provider=self.provider,
                details={"path": path, "status_code": response.status_code},
            )

        if not response.is_success:
            logger.warning(
                "payment_provider_request_rejected",
                provider=self.provider,
                path=path,
                status_code=response.status_code,
                message=data.get("message"),
            )
        return ProviderResponse(status_code=response.status_code, data=data)

    # Helpers
    def _to_minor(self, amount: Decimal, currency: str) -> int:
        exponent = 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2
        return int((Decimal(amount) * (Decimal(10) ** exponent)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def _from_minor(self, value: Any, currency: str) -> Optional[Decimal]:
        minor = _decimal(value)
        if minor is None:
            return None
        exponent = 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2
        return minor / (Decimal(10) ** exponent)

    def _map_status(self, provider_status: Any, default: str = "failed") -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(str(provider_status), default)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Provider timestamps are ISO-8601 strings; anything else is dropped."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _hmac_sha512(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()


def _secure_equals(expected: str, received: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
