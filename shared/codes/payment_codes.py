"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Lookup (201xx)
    PAYMENT_NOT_FOUND = 20101

    # Configuration (600xx)
    GATEWAY_NOT_FOUND = 60010
    GATEWAY_NOT_CONFIGURED = 60011

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001


# Provider status -> canonical status (success | pending | failed)
PROVIDER_STATUS_TO_INTERNAL = {
    "paystack": {
        "success": "success",
        "pending": "pending",
        "ongoing": "pending",
        "processing": "pending",
        "queued": "pending",
        "failed": "failed",
        "abandoned": "failed",
        "reversed": "failed",
        # refund statuses
        "processed": "success",
    },
    "flutterwave": {
        "successful": "success",
        "completed": "success",
        "pending": "pending",
        "failed": "failed",
        "cancelled": "failed",
    },
    "opay": {
        "SUCCESS": "success",
        "INITIAL": "pending",
        "PENDING": "pending",
        "FAIL": "failed",
        "CLOSE": "failed",
    },
    "crypto": {
        "finished": "success",
        "confirmed": "success",
        "waiting": "pending",
        "confirming": "pending",
        "sending": "pending",
        "partially_paid": "pending",
        "failed": "failed",
        "expired": "failed",
        "refunded": "failed",
    },
}
