import asyncio
import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from api.dependencies import get_gateway_registry, get_payment_settings, get_uow_factory
from infrastructure.external.payments import GatewayRegistry
from infrastructure.models import Base, OrderModel, PaymentModel
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from main import app


WEBHOOK_SECRET = "whsec_test"


def _paystack_api(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/transaction/initialize":
        body = json.loads(request.content)
        return httpx.Response(200, json={
            "status": True,
            "message": "Authorization URL created",
            "data": {
                "authorization_url": "https://checkout.paystack.com/abc123",
                "access_code": "abc123",
                "reference": body["reference"],
            },
        })
    if request.url.path.startswith("/transaction/verify/"):
        reference = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={
            "status": True,
            "data": {"id": 555, "reference": reference, "status": "success", "amount": 500000,
                     "currency": "NGN", "channel": "card", "fees": 7500},
        })
    return httpx.Response(404, json={"status": False, "message": "not found"})


@pytest.fixture
def db(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}", poolclass=NullPool)
    sessions = async_sessionmaker(bind=engine, expire_on_commit=False)

    async def _setup() -> int:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with sessions() as session:
            order = OrderModel(order_number="ORD1001", total_amount=Decimal("5000.00"), currency="NGN",
                               customer_email="ada@example.com")
            session.add(order)
            await session.commit()
            return order.id

    order_id = asyncio.run(_setup())
    yield sessions, order_id
    asyncio.run(engine.dispose())


@pytest.fixture
def client(db, settings_factory):
    sessions, _ = db
    settings = settings_factory()
    registry = GatewayRegistry.from_settings(settings, transport=httpx.MockTransport(_paystack_api))
    app.dependency_overrides[get_gateway_registry] = lambda: registry
    app.dependency_overrides[get_payment_settings] = lambda: settings
    app.dependency_overrides[get_uow_factory] = lambda: (lambda: SQLAlchemyUnitOfWork(session_factory=sessions))
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _rows(sessions, model, *criteria):
    async def _query():
        async with sessions() as session:
            return (await session.execute(select(model).where(*criteria))).scalars().all()
    return asyncio.run(_query())


def _signed_body(reference: str, event: str = "charge.success") -> tuple[bytes, dict]:
    body = json.dumps({
        "event": event,
        "data": {"id": 777, "reference": reference, "status": "success", "amount": 500000, "currency": "NGN"},
    }).encode()
    signature = hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha512).hexdigest()
    return body, {"x-paystack-signature": signature, "content-type": "application/json"}


def test_webhook_answers_plain_text(client, db):
    sessions, order_id = db
    body, headers = _signed_body("PAYSTACK_ORD1001_WEBHOOK1")

    ok = client.post("/webhooks/payment/paystack", content=body, headers=headers)
    replay = client.post("/webhooks/payment/paystack", content=body, headers=headers)

    assert (ok.status_code, ok.text) == (200, "OK")
    assert (replay.status_code, replay.text) == (200, "OK")
    rows = _rows(sessions, PaymentModel, PaymentModel.reference == "PAYSTACK_ORD1001_WEBHOOK1")
    assert len(rows) == 1
    assert rows[0].gateway_status == "success"
    assert rows[0].order_id == order_id


def test_webhook_rejects_unknown_gateway_and_bad_signature(client, db):
    sessions, _ = db
    body, headers = _signed_body("PAYSTACK_ORD1001_REJECT01")

    unknown = client.post("/webhooks/payment/nope", content=body, headers=headers)
    forged = client.post("/webhooks/payment/paystack", content=body,
                         headers={**headers, "x-paystack-signature": "deadbeef"})

    assert (unknown.status_code, unknown.text) == (400, "Unknown gateway")
    assert (forged.status_code, forged.text) == (401, "Invalid signature")
    assert _rows(sessions, PaymentModel) == []


def test_initiate_attaches_reference_and_opens_pending_record(client, db):
    sessions, order_id = db

    response = client.post(f"/api/v1/payments/orders/{order_id}/initiate", json={"gateway": "paystack"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["redirect_url"] == "https://checkout.paystack.com/abc123"
    reference = data["reference"]
    assert reference.startswith("PAYSTACK_ORD1001_")

    order = _rows(sessions, OrderModel, OrderModel.id == order_id)[0]
    assert order.payment_reference == reference
    assert order.payment_gateway == "paystack"
    payment = _rows(sessions, PaymentModel, PaymentModel.reference == reference)[0]
    assert payment.gateway_status == "pending"


def test_initiate_failures_are_client_errors(client, db, settings_factory):
    _, order_id = db

    unknown = client.post(f"/api/v1/payments/orders/{order_id}/initiate", json={"gateway": "unknown"})
    assert unknown.status_code == 400
    assert unknown.json()["error"]["type"] == "GatewayNotFound"

    app.dependency_overrides[get_payment_settings] = lambda: settings_factory(supported_currencies=["USD"])
    rejected = client.post(f"/api/v1/payments/orders/{order_id}/initiate", json={"gateway": "paystack"})
    assert rejected.status_code == 400
    assert rejected.json()["error"]["type"] == "PaymentInitiationFailed"
    assert _rows(db[0], PaymentModel) == []


def test_initiate_for_missing_order_is_404(client):
    response = client.post("/api/v1/payments/orders/999/initiate", json={})
    assert response.status_code == 404


def test_callback_verifies_and_records_success(client, db):
    sessions, order_id = db
    initiated = client.post(f"/api/v1/payments/orders/{order_id}/initiate", json={}).json()["data"]

    response = client.get(f"/api/v1/payments/callback/paystack/{order_id}",
                          params={"reference": initiated["reference"]})

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "success"
    payment = _rows(sessions, PaymentModel, PaymentModel.reference == initiated["reference"])[0]
    assert payment.gateway_status == "success"
    assert payment.gateway_reference == "555"


def test_list_gateways(client):
    response = client.get("/api/v1/payments/gateways")
    assert response.status_code == 200
    ids = {g["id"] for g in response.json()["data"]}
    assert ids == {"paystack", "opay", "flutterwave", "crypto"}


def test_refund_unknown_payment_is_404(client):
    response = client.post("/api/v1/payments/refunds", json={"reference": "PAYSTACK_NOPE_00000000"})
    assert response.status_code == 404
