from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from application.dtos.payments import (
    PaymentInitiationResult,
    PaymentVerificationResult,
    RefundResult,
    WebhookEvent,
    WebhookRequest,
)


def _shapes(result: PaymentInitiationResult) -> tuple[bool, bool, bool]:
    return result.requires_redirect(), result.is_inline(), result.is_crypto()


def test_initiation_shapes_are_mutually_exclusive():
    redirect = PaymentInitiationResult.redirect("PAYSTACK_ORD1_ABCDEFGH", "https://checkout.paystack.com/x")
    inline = PaymentInitiationResult.inline("FLUTTERWAVE_ORD1_ABCDEFGH", {"public_key": "pk"})
    crypto = PaymentInitiationResult.crypto(
        "CRYPTO_ORD1_ABCDEFGH",
        "bc1qexample",
        Decimal("0.0012"),
        "BTC",
        expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )
    assert _shapes(redirect) == (True, False, False)
    assert _shapes(inline) == (False, True, False)
    assert _shapes(crypto) == (False, False, True)


def test_failed_initiation_has_no_shape():
    failed = PaymentInitiationResult.failed("Paystack is not configured", reference="PAYSTACK_ORD1_ABCDEFGH")
    assert not failed.success
    assert _shapes(failed) == (False, False, False)
    assert failed.message == "Paystack is not configured"


def test_initiation_rejects_two_shapes_or_missing_reference():
    with pytest.raises(ValidationError):
        PaymentInitiationResult(
            success=True,
            reference="R_1_X",
            redirect_url="https://pay.test",
            inline_payload={"k": "v"},
        )
    with pytest.raises(ValidationError):
        PaymentInitiationResult(success=True, redirect_url="https://pay.test")
    with pytest.raises(ValidationError):
        PaymentInitiationResult(success=False, redirect_url="https://pay.test")


def test_initiation_result_is_immutable():
    result = PaymentInitiationResult.redirect("R_1_X", "https://pay.test")
    with pytest.raises(ValidationError):
        result.reference = "other"


def test_verification_status_and_flag_agree():
    ok = PaymentVerificationResult.succeeded("R_1_X", Decimal("10.00"), "NGN", gateway_reference="42")
    assert ok.is_successful() and ok.status == "success"
    pending = PaymentVerificationResult.pending("R_1_X", "still processing")
    assert not pending.is_successful() and pending.is_pending()
    with pytest.raises(ValidationError):
        PaymentVerificationResult(success=True, reference="R_1_X", status="pending")
    with pytest.raises(ValidationError):
        PaymentVerificationResult(success=False, reference="R_1_X", status="success")


def test_refund_reference_must_differ_from_payment_reference():
    with pytest.raises(ValidationError):
        RefundResult.succeeded("R_1_X", "R_1_X", Decimal("1"), "NGN")
    refund = RefundResult.pending("R_1_X", "rf_9", message="queued")
    assert refund.status == "pending" and not refund.success


@pytest.mark.parametrize("event_type", ["charge.success", "charge.completed", "payment.success", "transaction.success"])
def test_successful_charge_requires_success_status(event_type):
    event = WebhookEvent(type=event_type, reference="R_1_X", status="success")
    assert event.is_successful_charge()
    assert not event.model_copy(update={"status": "pending"}).is_successful_charge()


def test_unknown_type_is_never_a_successful_charge():
    assert not WebhookEvent(type="subscription.create", reference="R", status="success").is_successful_charge()


def test_failed_charge_classification():
    assert WebhookEvent(type="charge.failed", reference="R", status="failed").is_failed_charge()
    assert WebhookEvent(type="payment.failed", reference="R", status="failed").is_failed_charge()
    assert WebhookEvent(type="charge.completed", reference="R", status="failed").is_failed_charge()
    assert not WebhookEvent(type="charge.completed", reference="R", status="success").is_failed_charge()
    assert not WebhookEvent(type="payment.pending", reference="R", status="pending").is_failed_charge()


def test_refund_and_transfer_predicates():
    assert WebhookEvent(type="refund.processed", reference="R", status="success").is_refund()
    assert WebhookEvent(type="transfer.success", reference="R", status="success").is_transfer()
    assert not WebhookEvent(type="charge.success", reference="R", status="success").is_refund()


def test_webhook_request_headers_and_payload():
    request = WebhookRequest(headers={"X-Paystack-Signature": "abc"}, body=b'{"event": "charge.success"}')
    assert request.header("x-paystack-signature") == "abc"
    assert request.header("X-PAYSTACK-SIGNATURE") == "abc"
    assert request.json_payload() == {"event": "charge.success"}
    assert WebhookRequest(body=b"not json").json_payload() == {}
    assert WebhookRequest(body=b"[1, 2]").json_payload() == {}
