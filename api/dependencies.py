"""
API依赖项 - 支付服务的组装（composition root）
"""
from typing import Callable

from fastapi import Depends, Request

from application.services.payment_callback_service import PaymentCallbackService
from application.services.payment_service import PaymentOrchestrator
from application.services.webhook_reconciler import WebhookReconciler
from core.settings import PaymentSettings, payment_settings
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.external.payments import GatewayRegistry
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def get_payment_settings() -> PaymentSettings:
    return payment_settings


def get_gateway_registry(request: Request) -> GatewayRegistry:
    """应用启动时构建的网关注册表（见 main.lifespan）"""
    return request.app.state.gateway_registry


def get_uow_factory() -> Callable[[], AbstractUnitOfWork]:
    return SQLAlchemyUnitOfWork


async def get_payment_orchestrator(
    registry: GatewayRegistry = Depends(get_gateway_registry),
    settings: PaymentSettings = Depends(get_payment_settings),
) -> PaymentOrchestrator:
    return PaymentOrchestrator(registry, settings)


async def get_webhook_reconciler(
    registry: GatewayRegistry = Depends(get_gateway_registry),
    uow_factory: Callable[[], AbstractUnitOfWork] = Depends(get_uow_factory),
    settings: PaymentSettings = Depends(get_payment_settings),
) -> WebhookReconciler:
    return WebhookReconciler(registry, uow_factory, log_payloads=settings.log_webhook_payloads)


async def get_callback_service(
    orchestrator: PaymentOrchestrator = Depends(get_payment_orchestrator),
    uow_factory: Callable[[], AbstractUnitOfWork] = Depends(get_uow_factory),
    settings: PaymentSettings = Depends(get_payment_settings),
) -> PaymentCallbackService:
    return PaymentCallbackService(orchestrator, uow_factory, settings)
