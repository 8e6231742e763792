import httpx
import pytest

from application.services.payment_callback_service import PaymentCallbackService
from application.services.payment_service import PaymentOrchestrator
from domain.common.exceptions import BusinessException, OrderNotFoundException
from infrastructure.external.payments import GatewayRegistry


def _verify_handler(status: str):
    def handler(request: httpx.Request) -> httpx.Response:
        reference = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={
            "status": True,
            "data": {"id": 901, "reference": reference, "status": status, "amount": 500000, "currency": "NGN",
                     "gateway_response": "Declined"},
        })
    return handler


def _service(settings, uow_factory, status="success") -> PaymentCallbackService:
    registry = GatewayRegistry.from_settings(settings, transport=httpx.MockTransport(_verify_handler(status)))
    return PaymentCallbackService(PaymentOrchestrator(registry, settings), uow_factory, settings)


async def _attach(uow_factory, order_id, reference):
    async with uow_factory() as uow:
        await uow.order_repository.attach_payment(order_id, "paystack", reference)


@pytest.mark.asyncio
async def test_callback_records_verified_payment(payment_settings, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_CB000001"
    await _attach(uow_factory, order_id, reference)

    outcome = await _service(payment_settings, uow_factory).handle_callback(order_id, "paystack", None)

    assert outcome.status == "success"
    assert outcome.reference == reference
    async with uow_factory() as uow:
        payment = await uow.payment_repository.get_by_reference(reference)
    assert payment.is_successful
    assert payment.gateway_reference == "901"


@pytest.mark.asyncio
async def test_declined_callback_leaves_no_success_record(payment_settings, uow_factory, order_id):
    reference = "PAYSTACK_ORD1001_CB000002"
    outcome = await _service(payment_settings, uow_factory, status="failed").handle_callback(
        order_id, "paystack", reference
    )
    assert outcome.status == "failed"
    assert outcome.message == "Declined"
    async with uow_factory() as uow:
        assert await uow.payment_repository.get_by_reference(reference) is None


@pytest.mark.asyncio
async def test_callback_can_defer_to_webhook(settings_factory, uow_factory, order_id):
    settings = settings_factory(verify_on_callback=False)
    outcome = await _service(settings, uow_factory).handle_callback(order_id, "paystack", "PAYSTACK_ORD1001_CB3")
    assert outcome.status == "pending"
    assert outcome.message == "Awaiting payment confirmation"


@pytest.mark.asyncio
async def test_callback_without_reference_fails(payment_settings, uow_factory, order_id):
    outcome = await _service(payment_settings, uow_factory).handle_callback(order_id, "paystack", None)
    assert outcome.status == "failed"
    assert outcome.message == "Payment reference not found"


@pytest.mark.asyncio
async def test_missing_order_and_uninitiated_payment(payment_settings, uow_factory, order_id):
    service = _service(payment_settings, uow_factory)
    with pytest.raises(OrderNotFoundException):
        await service.handle_callback(order_id + 1, "paystack", "X")
    with pytest.raises(BusinessException) as exc_info:
        await service.verify_order(order_id)
    assert exc_info.value.error_type == "PaymentNotInitiated"
