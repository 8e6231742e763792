"""
Payment gateway adapters and the registry that resolves them by name.
"""
from infrastructure.external.payments.registry import GatewayRegistry

__all__ = ["GatewayRegistry"]
