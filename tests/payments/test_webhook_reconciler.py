import hashlib
import hmac
import json
from decimal import Decimal

import pytest

from application.dtos.payments import WebhookRequest
from application.services.payment_ledger import PaymentLedger
from application.services.webhook_reconciler import WebhookReconciler
from domain.payment.entity import PaymentStatus
from infrastructure.external.payments import GatewayRegistry


WEBHOOK_SECRET = "whsec_test"


def _paystack(event: str, reference: str, status: str = "success", amount: int = 500000) -> WebhookRequest:
    body = json.dumps({
        "event": event,
        "data": {
            "id": 4099260516,
            "reference": reference,
            "status": status,
            "amount": amount,
            "currency": "NGN",
            "fees": 7500,
            "paid_at": "2024-05-01T12:00:00.000Z",
        },
    }).encode()
    signature = hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha512).hexdigest()
    return WebhookRequest(headers={"X-Paystack-Signature": signature}, body=body)


@pytest.fixture
def reconciler(payment_settings, uow_factory):
    return WebhookReconciler(GatewayRegistry.from_settings(payment_settings), uow_factory)


async def _payment(uow_factory, reference):
    async with uow_factory() as uow:
        return await uow.payment_repository.get_by_reference(reference)


async def _open_pending(uow_factory, order_id, reference):
    async with uow_factory() as uow:
        order = await uow.order_repository.get_by_id(order_id)
        await uow.order_repository.attach_payment(order_id, "paystack", reference)
        await PaymentLedger(uow).open_pending(
            order, gateway="paystack", reference=reference, amount=order.total_amount, currency="NGN"
        )


@pytest.mark.asyncio
async def test_success_webhook_creates_record_once(reconciler, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_K3J9QX2M"
    first = await reconciler.handle("paystack", _paystack("charge.success", reference))
    second = await reconciler.handle("paystack", _paystack("charge.success", reference))

    assert (first.status_code, first.message, first.action) == (200, "OK", "created")
    assert (second.status_code, second.action) == (200, "noop")
    payment = await _payment(uow_factory, reference)
    assert payment.is_successful
    assert payment.order_id == order_id
    assert payment.amount == Decimal("5000")
    assert payment.gateway_reference == "4099260516"


@pytest.mark.asyncio
async def test_success_webhook_updates_pending_record(reconciler, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_PEND1234"
    await _open_pending(uow_factory, order_id, reference)

    outcome = await reconciler.handle("paystack", _paystack("charge.success", reference))

    assert outcome.action == "updated"
    assert (await _payment(uow_factory, reference)).gateway_status == PaymentStatus.SUCCESS


@pytest.mark.asyncio
async def test_failure_after_success_is_ignored(reconciler, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_STICKY01"
    await reconciler.handle("paystack", _paystack("charge.success", reference))

    outcome = await reconciler.handle("paystack", _paystack("charge.failed", reference, status="failed"))

    assert outcome.status_code == 200
    assert outcome.action == "noop"
    assert (await _payment(uow_factory, reference)).gateway_status == PaymentStatus.SUCCESS


@pytest.mark.asyncio
async def test_failure_marks_pending_record_failed(reconciler, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_FAIL0001"
    await _open_pending(uow_factory, order_id, reference)

    outcome = await reconciler.handle("paystack", _paystack("charge.failed", reference, status="failed"))

    assert outcome.action == "updated"
    assert (await _payment(uow_factory, reference)).gateway_status == PaymentStatus.FAILED


@pytest.mark.asyncio
async def test_failure_without_record_creates_nothing(reconciler, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_NOREC001"
    outcome = await reconciler.handle("paystack", _paystack("charge.failed", reference, status="failed"))
    assert (outcome.status_code, outcome.action) == (200, "ignored")
    assert await _payment(uow_factory, reference) is None


@pytest.mark.asyncio
async def test_order_found_through_reference_segment(reconciler, uow_factory, order_id):
    # never attached to the order: resolved via the embedded order number
    reference = "card_ORD1001_abc"
    outcome = await reconciler.handle("paystack", _paystack("charge.success", reference))
    assert outcome.action == "created"
    assert (await _payment(uow_factory, reference)).order_id == order_id


@pytest.mark.asyncio
async def test_success_for_unknown_order_is_acknowledged(reconciler, uow_factory, order_id):
    reference = "PAYSTACK_ORD9999_ZZZZ0000"
    outcome = await reconciler.handle("paystack", _paystack("charge.success", reference))
    assert (outcome.status_code, outcome.action) == (200, "ignored")
    assert await _payment(uow_factory, reference) is None


@pytest.mark.asyncio
async def test_unknown_gateway_is_rejected(reconciler, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_UNKNOWN1"
    outcome = await reconciler.handle("doesnotexist", _paystack("charge.success", reference))
    assert (outcome.status_code, outcome.message, outcome.action) == (400, "Unknown gateway", "rejected")
    assert await _payment(uow_factory, reference) is None


@pytest.mark.asyncio
async def test_bad_signature_is_rejected_without_writes(reconciler, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_BADSIG01"
    request = _paystack("charge.success", reference)
    forged = WebhookRequest(headers={"x-paystack-signature": "0" * 128}, body=request.body)

    outcome = await reconciler.handle("paystack", forged)

    assert (outcome.status_code, outcome.message) == (401, "Invalid signature")
    assert await _payment(uow_factory, reference) is None


@pytest.mark.asyncio
async def test_pending_and_other_events_are_acknowledged_only(reconciler, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_OTHER001"
    pending = await reconciler.handle("paystack", _paystack("charge.pending", reference, status="pending"))
    refund = await reconciler.handle("paystack", _paystack("refund.processed", reference, status="processed"))
    assert pending.action == refund.action == "ignored"
    assert await _payment(uow_factory, reference) is None

