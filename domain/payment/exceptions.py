"""
Payment error kinds.

Business failures (declined card, unsupported currency, ...) are never raised;
they travel as failed result objects. Only the kinds below cross the adapter
boundary as exceptions (signature mismatches are a boolean from
`validate_webhook`, never an exception):

- configuration: GatewayNotFoundError / GatewayNotConfiguredError
- transient: PaymentTransientError (safe to retry)
- protocol: PaymentProviderError (provider answered with something unusable)
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class GatewayConfigurationError(BusinessException):
    def __init__(self, message: str, *, gateway: str, code: int, error_type: str):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details={"gateway": gateway},
        )
        self.gateway = gateway


class GatewayNotFoundError(GatewayConfigurationError):
    def __init__(self, gateway: str):
        super().__init__(
            f"Payment gateway [{gateway}] is not registered.",
            gateway=gateway,
            code=PaymentCode.GATEWAY_NOT_FOUND,
            error_type="GatewayNotFound",
        )


class GatewayNotConfiguredError(GatewayConfigurationError):
    def __init__(self, gateway: str, reason: str = "credentials are not set"):
        super().__init__(
            f"Payment gateway [{gateway}] is not configured: {reason}",
            gateway=gateway,
            code=PaymentCode.GATEWAY_NOT_CONFIGURED,
            error_type="GatewayNotConfigured",
        )


class PaymentProviderError(BusinessException):
    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        full_details = {"provider": provider, "provider_code": provider_code}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="PaymentProviderError",
            details=full_details,
        )


class PaymentTransientError(BusinessException):
    def __init__(self, message: str, *, provider: str, status_code: int | None = None, details: Optional[dict] = None):
        full_details = {"provider": provider, "status_code": status_code}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.PROVIDER_RECOVERABLE,
            message=message,
            error_type="PaymentTransientError",
            details=full_details,
        )



class PaymentNotFoundException(BusinessException):
    """支付记录不存在"""
    def __init__(self, reference: str):
        super().__init__(
            code=PaymentCode.PAYMENT_NOT_FOUND,
            message=f"Payment not found: {reference}",
            error_type="PaymentNotFound",
            details={"reference": reference},
        )
