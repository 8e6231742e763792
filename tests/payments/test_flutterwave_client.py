import json
from decimal import Decimal

import httpx
import pytest

from application.dtos.payments import OrderContext, WebhookRequest
from core.settings import FlutterwaveSettings
from infrastructure.external.payments.flutterwave_client import FlutterwaveClient


def _client(handler=None, **config) -> FlutterwaveClient:
    cfg = FlutterwaveSettings(**{"secret_key": "FLWSECK_TEST", "public_key": "FLWPUBK_TEST", "webhook_secret": "hash", **config})
    return FlutterwaveClient(cfg, transport=httpx.MockTransport(handler) if handler else None)


def _webhook(payload: dict, verif_hash: str = "hash") -> WebhookRequest:
    return WebhookRequest(headers={"verif-hash": verif_hash}, body=json.dumps(payload).encode())


def test_verif_hash_is_compared_to_secret():
    client = _client()
    assert client.validate_webhook(_webhook({}))
    assert not client.validate_webhook(_webhook({}, verif_hash="wrong"))
    assert not client.validate_webhook(WebhookRequest(body=b"{}"))


def test_charge_completed_status_drives_outcome():
    client = _client()
    ok = client.parse_webhook(_webhook({"event": "charge.completed", "data": {
        "id": 285959875, "tx_ref": "FLUTTERWAVE_ORD1001_ABCDEFGH", "status": "successful",
        "amount": 5000, "currency": "NGN", "app_fee": 70, "meta": {"order_id": 7},
    }}))
    assert ok.is_successful_charge()
    assert ok.reference == "FLUTTERWAVE_ORD1001_ABCDEFGH"
    assert ok.gateway_fee == Decimal("70")
    assert ok.metadata == {"order_id": 7}

    failed = client.parse_webhook(_webhook({"event": "charge.completed", "data": {
        "tx_ref": "FLUTTERWAVE_ORD1001_ABCDEFGH", "status": "failed",
    }}))
    assert failed.status == "failed"
    assert failed.is_failed_charge() and not failed.is_successful_charge()


@pytest.mark.asyncio
async def test_initiate_returns_inline_payload():
    def handler(request):
        body = json.loads(request.content)
        assert body["amount"] == 5000.0
        assert body["customer"]["email"] == "ada@example.com"
        return httpx.Response(200, json={"status": "success", "data": {"link": "https://checkout.flutterwave.com/v3/hosted/pay/x"}})

    order = OrderContext(order_id=7, order_number="ORD1001", customer_email="ada@example.com")
    result = await _client(handler).initiate(order, Decimal("5000"), "NGN")
    assert result.is_inline()
    assert result.inline_payload["public_key"] == "FLWPUBK_TEST"
    assert result.inline_payload["tx_ref"] == result.reference
    assert result.metadata["payment_link"].startswith("https://checkout.flutterwave.com")


@pytest.mark.asyncio
async def test_verify_by_reference():
    def handler(request):
        assert request.url.path == "/v3/transactions/verify_by_reference"
        assert request.url.params["tx_ref"] == "FLUTTERWAVE_ORD1001_ABCDEFGH"
        return httpx.Response(200, json={"status": "success", "data": {
            "id": 4242, "status": "successful", "amount": 5000, "currency": "NGN",
            "payment_type": "card", "app_fee": 70, "created_at": "2024-05-01T10:00:00.000Z",
        }})

    result = await _client(handler).verify("FLUTTERWAVE_ORD1001_ABCDEFGH")
    assert result.is_successful()
    assert result.gateway_reference == "4242"
    assert result.payment_method == "card"
    assert result.amount == Decimal("5000")


@pytest.mark.asyncio
async def test_refund_completed():
    def handler(request):
        assert request.url.path == "/v3/transactions/4242/refund"
        return httpx.Response(200, json={"status": "success", "data": {
            "id": 75923, "status": "completed", "amount_refunded": 2500, "currency": "NGN",
        }})

    result = await _client(handler).refund("FLUTTERWAVE_ORD1001_ABCDEFGH", Decimal("2500"), gateway_reference="4242")
    assert result.success
    assert result.refund_reference == "75923"
    assert result.amount == Decimal("2500")
