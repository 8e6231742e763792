"""
Payments API routes.

Two routers: the provider-facing webhook endpoint (plain-text answers,
mounted without the API prefix) and the client-facing payment endpoints.
Keep this thin: no provider details here.
"""
from __future__ import annotations

from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette import status as http_status

from application.dtos.payments import (
    InitiatePaymentRequest,
    OrderContext,
    RefundPaymentRequest,
    WebhookRequest,
)
from application.services.payment_callback_service import PaymentCallbackService
from application.services.payment_ledger import PaymentLedger
from application.services.payment_service import PaymentOrchestrator
from application.services.webhook_reconciler import WebhookReconciler
from api.dependencies import (
    get_callback_service,
    get_payment_orchestrator,
    get_payment_settings,
    get_uow_factory,
    get_webhook_reconciler,
)
from core.logging_config import get_logger
from core.response import error_response, success_response
from core.settings import PaymentSettings
from domain.common.exceptions import OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.exceptions import PaymentNotFoundException
from shared.codes import BusinessCode


webhook_router = APIRouter(tags=["Payment Webhooks"])
router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


@webhook_router.post("/webhooks/payment/{gateway}", response_class=PlainTextResponse)
async def payment_webhook(
    gateway: str,
    request: Request,
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """Provider notification: 200 OK / 400 Unknown gateway / 401 Invalid signature."""
    inbound = WebhookRequest(headers=dict(request.headers), body=await request.body())
    outcome = await reconciler.handle(gateway, inbound)
    return PlainTextResponse(outcome.message, status_code=outcome.status_code)


@router.get("/gateways")
async def list_gateways(orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator)):
    gateways = orchestrator.available_gateways()
    return success_response(data=[g.model_dump() for g in gateways])


@router.post("/orders/{order_id}/initiate")
async def initiate_payment(
    order_id: int,
    payload: InitiatePaymentRequest,
    request: Request,
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
    uow_factory: Callable[[], AbstractUnitOfWork] = Depends(get_uow_factory),
    settings: PaymentSettings = Depends(get_payment_settings),
):
    async with uow_factory() as uow:
        order = await uow.order_repository.get_by_id(order_id)
    if order is None:
        raise OrderNotFoundException(order_id)

    gateway_name = (payload.gateway or settings.default_gateway).lower()
    context = OrderContext(
        order_id=order.id,
        order_number=order.order_number,
        customer_email=order.customer_email,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        tenant_id=order.tenant_id,
        shop_id=order.shop_id,
        callback_url=payload.callback_url,
        return_url=payload.return_url,
        client_ip=getattr(request.state, "client_ip", None),
        pay_currency=payload.pay_currency,
        metadata=payload.metadata or {},
    )
    result = await orchestrator.initiate(context, gateway_name, order.total_amount, order.currency)

    if not result.success:
        response = error_response(
            code=BusinessCode.BUSINESS_ERROR,
            message=result.message or "Payment initiation failed",
            error_type="PaymentInitiationFailed",
            details={"gateway": gateway_name, "reference": result.reference},
        )
        return JSONResponse(status_code=http_status.HTTP_400_BAD_REQUEST, content=response.model_dump(mode="json"))

    async with uow_factory() as uow:
        await uow.order_repository.attach_payment(order.id, gateway_name, result.reference)
        await PaymentLedger(uow).open_pending(
            order,
            gateway=gateway_name,
            reference=result.reference,
            amount=order.total_amount,
            currency=order.currency,
        )

    return success_response(data=result.model_dump(mode="json"), message="Payment initiated")


@router.get("/callback/{gateway}/{order_id}")
async def payment_callback(
    gateway: str,
    order_id: int,
    reference: Optional[str] = Query(default=None),
    tx_ref: Optional[str] = Query(default=None),
    service: PaymentCallbackService = Depends(get_callback_service),
):
    outcome = await service.handle_callback(order_id, gateway.lower(), reference or tx_ref)
    return success_response(data=outcome.model_dump(mode="json"), message=outcome.message or outcome.status)


@router.get("/orders/{order_id}/verify")
async def verify_payment(
    order_id: int,
    service: PaymentCallbackService = Depends(get_callback_service),
):
    outcome = await service.verify_order(order_id)
    return success_response(data=outcome.model_dump(mode="json"), message=outcome.message or outcome.status)


@router.post("/refunds")
async def refund_payment(
    payload: RefundPaymentRequest,
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
    uow_factory: Callable[[], AbstractUnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        payment = await uow.payment_repository.get_by_reference(payload.reference)
    if payment is None:
        raise PaymentNotFoundException(payload.reference)

    result = await orchestrator.refund(payment, payload.amount, payload.reason)
    if result.status == "failed":
        response = error_response(
            code=BusinessCode.BUSINESS_ERROR,
            message=result.message or "Refund failed",
            error_type="RefundFailed",
            details={"reference": payload.reference},
        )
        return JSONResponse(status_code=http_status.HTTP_400_BAD_REQUEST, content=response.model_dump(mode="json"))
    return success_response(data=result.model_dump(mode="json"), message=result.message or "Refund requested")
