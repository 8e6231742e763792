from datetime import datetime
from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException
from domain.payment.entity import Payment, PaymentStatus


def _payment(**fields) -> Payment:
    values = dict(id=None, order_id=1, reference="PAYSTACK_ORD1_ABCDEFGH", gateway="paystack",
                  amount=Decimal("10"), currency="ngn")
    values.update(fields)
    return Payment(**values)


def test_payment_normalizes_currency_and_timestamps():
    payment = _payment(paid_at=datetime(2024, 5, 1, 12, 0))
    assert payment.currency == "NGN"
    assert payment.paid_at.tzinfo is not None
    assert payment.gateway_status == PaymentStatus.PENDING


@pytest.mark.parametrize("fields", [
    {"reference": ""},
    {"amount": Decimal("-1")},
    {"currency": "NAIRA"},
])
def test_payment_rejects_invalid_fields(fields):
    with pytest.raises(DomainValidationException):
        _payment(**fields)


def test_success_is_terminal():
    pending = _payment()
    assert pending.can_transition_to(PaymentStatus.SUCCESS)
    assert pending.can_transition_to(PaymentStatus.FAILED)
    assert not pending.can_transition_to(PaymentStatus.PENDING)

    paid = _payment(gateway_status=PaymentStatus.SUCCESS)
    assert paid.is_successful
    assert not paid.can_transition_to(PaymentStatus.FAILED)
