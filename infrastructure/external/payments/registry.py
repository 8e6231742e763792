"""
Gateway registry: gateway name -> adapter instance.

Built once from `PaymentSettings` at application startup and never mutated
afterwards. Lookups are a single dict access.
"""
from __future__ import annotations

import importlib
from types import MappingProxyType
from typing import Mapping, Optional

import httpx

from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from core.settings import PaymentSettings
from domain.payment.exceptions import GatewayNotConfiguredError, GatewayNotFoundError


logger = get_logger(__name__)


def _import_binding(name: str, binding: str) -> type:
    """Load a `"package.module:ClassName"` binding."""
    module_path, _, class_name = binding.partition(":")
    if not module_path or not class_name:
        raise GatewayNotConfiguredError(name, reason=f"invalid implementation binding {binding!r}")
    try:
        module = importlib.import_module(module_path)
        return getattr(module, class_name)
    except (ImportError, AttributeError) as exc:
        raise GatewayNotConfiguredError(name, reason=f"cannot load {binding!r}") from exc


class GatewayRegistry:
    def __init__(self, adapters: Mapping[str, PaymentGateway], *, default_gateway: Optional[str] = None) -> None:
        self._adapters = MappingProxyType({name.lower(): adapter for name, adapter in adapters.items()})
        self.default_gateway = (default_gateway or "").lower() or None

    @classmethod
    def from_settings(
        cls,
        settings: PaymentSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GatewayRegistry":
        adapters: dict[str, PaymentGateway] = {}
        for name, binding in settings.gateways.items():
            adapter_cls = _import_binding(name, binding)
            adapters[name.lower()] = adapter_cls(
                settings.credentials_for(name.lower()),
                timeouts=settings.timeouts,
                public_base_url=settings.public_base_url,
                transport=transport,
            )
        registry = cls(adapters, default_gateway=settings.default_gateway)
        logger.info(
            "payment_gateways_registered",
            gateways=registry.names(),
            available=[a.provider for a in registry.available()],
            default=registry.default_gateway,
        )
        return registry

    def names(self) -> list[str]:
        return list(self._adapters)

    def resolve(self, name: Optional[str]) -> PaymentGateway:
        """Adapter for `name`; raises instead of returning an unusable adapter."""
        key = (name or "").strip().lower()
        adapter = self._adapters.get(key)
        if adapter is None:
            raise GatewayNotFoundError(name or "")
        if not adapter.is_available():
            raise GatewayNotConfiguredError(key)
        return adapter

    def default(self) -> PaymentGateway:
        return self.resolve(self.default_gateway)

    def available(self) -> list[PaymentGateway]:
        return [adapter for adapter in self._adapters.values() if adapter.is_available()]

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            close = getattr(adapter, "aclose", None)
            if callable(close):
                await close()
