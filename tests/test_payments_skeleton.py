import pytest


@pytest.mark.asyncio
async def test_payment_routes_registered():
    # Basic import test to ensure routers load
    from main import app
    routes = {r.path for r in app.routes}
    assert "/webhooks/payment/{gateway}" in routes
    assert "/api/v1/payments/gateways" in routes
    assert "/api/v1/payments/orders/{order_id}/initiate" in routes
    assert "/api/v1/payments/callback/{gateway}/{order_id}" in routes
    assert "/api/v1/payments/orders/{order_id}/verify" in routes
    assert "/api/v1/payments/refunds" in routes
    assert "/health" in routes
