"""Protocol adapters wrapping third-party IM clients."""

from typing import Any

from axonkit.adapters.base import (
    AdapterEventHandler,
    AdapterFactory,
    BaseProtocolAdapter,
    ProtocolAdapter,
    Subscription,
)
from axonkit.adapters.mock import MockProtocolAdapter

__all__ = [
    "AdapterEventHandler",
    "AdapterFactory",
    "BaseProtocolAdapter",
    "MockProtocolAdapter",
    "ProtocolAdapter",
    "Subscription",
    # Lazy imports for optional adapters
    "OneBotAdapter",
    "onebot_adapter_factory",
]


def __getattr__(name: str) -> Any:
    """Lazy import for optional protocol adapters."""
    if name == "OneBotAdapter":
        from axonkit.adapters.onebot import OneBotAdapter

        return OneBotAdapter
    if name == "onebot_adapter_factory":
        from axonkit.adapters.onebot import onebot_adapter_factory

        return onebot_adapter_factory
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
