"""
Payment-related settings using pydantic-settings v2 with nested env keys.

This module is isolated so core.config.Settings stays focused on the app.
Keys use the PAYMENT__ prefix, e.g. PAYMENT__PAYSTACK__SECRET_KEY.
"""
from __future__ import annotations

from typing import Annotated, Optional
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator


class PaymentTimeouts(BaseModel):
    connect: float = 3.0
    read: float = 30.0
    write: float = 30.0
    total: float = 30.0


class VerificationRetry(BaseModel):
    max_retries: int = 2
    base_backoff: float = 0.2


class GatewayCredentials(BaseModel):
    secret_key: Optional[str] = None
    public_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    base_url: str = ""


class PaystackSettings(GatewayCredentials):
    base_url: str = "https://api.paystack.co"


class FlutterwaveSettings(GatewayCredentials):
    base_url: str = "https://api.flutterwave.com/v3"


class OpaySettings(GatewayCredentials):
    merchant_id: Optional[str] = None
    merchant_name: str = "Storefront"
    base_url: str = "https://liveapi.opaycheckout.com"


class CryptoSettings(GatewayCredentials):
    api_key: Optional[str] = None
    ipn_secret: Optional[str] = None
    base_url: str = "https://api.nowpayments.io/v1"


DEFAULT_GATEWAYS = {
    "paystack": "infrastructure.external.payments.paystack_client:PaystackClient",
    "opay": "infrastructure.external.payments.opay_client:OpayClient",
    "crypto": "infrastructure.external.payments.crypto_client:CryptoClient",
    "flutterwave": "infrastructure.external.payments.flutterwave_client:FlutterwaveClient",
}


class PaymentSettings(BaseSettings):
    default_gateway: str = "paystack"
    gateways: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_GATEWAYS))
    supported_currencies: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["NGN", "GHS", "KES", "ZAR", "TZS", "UGX", "USD", "EUR", "GBP"]
    )
    # Verify synchronously when the customer is redirected back
    verify_on_callback: bool = True
    log_webhook_payloads: bool = False
    # Used to build default callback and webhook URLs handed to providers
    public_base_url: str = "http://localhost:8000"
    verification: VerificationRetry = Field(default_factory=VerificationRetry)
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)

    paystack: PaystackSettings = Field(default_factory=PaystackSettings)
    flutterwave: FlutterwaveSettings = Field(default_factory=FlutterwaveSettings)
    opay: OpaySettings = Field(default_factory=OpaySettings)
    crypto: CryptoSettings = Field(default_factory=CryptoSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    @field_validator("supported_currencies", mode="before")
    @classmethod
    def _parse_currencies(cls, v):
        """允许逗号分隔字符串。"""
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                v = json.loads(s)
            else:
                v = [item for item in s.split(",") if item.strip()]
        return [c.strip().upper() for c in v]

    def credentials_for(self, gateway: str) -> GatewayCredentials:
        """Credential block named after the gateway, or an empty one."""
        value = getattr(self, gateway, None)
        return value if isinstance(value, GatewayCredentials) else GatewayCredentials()


payment_settings = PaymentSettings()
