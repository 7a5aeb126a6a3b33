from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Optional, Type
from importlib import import_module

from llmrelay.resilience.resilient_client import ResilientClient

logger = logging.getLogger(__name__)


class ProviderRegistry:
    _classes: Dict[str, Type] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[Type], Type]:
        name = name.lower()
        def deco(klass: Type) -> Type:
            cls._classes[name] = klass
            return klass
        return deco

    @classmethod
    def get(cls, name: str) -> Type:
        key = name.lower()
        if key not in cls._classes:
            raise KeyError(f"Provider '{name}' not registered")
        return cls._classes[key]

    @classmethod
    def names(cls) -> list[str]:
        return sorted(cls._classes)

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in backends so their @register decorators run.
        Called by create_client before lookup.
        """
        import_module("llmrelay.providers.openai_adapter")
        import_module("llmrelay.providers.gemini_adapter")


def create_client(
    provider_name: Optional[str],
    credentials: Optional[Dict[str, Any]] = None,
    *,
    policy=None,
    options: Optional[Dict[str, Any]] = None,
    client_options: Optional[Dict[str, Any]] = None,
    log: Optional[Any] = None,
):
    """
    Map a provider name to a ready ResilientClient.
    Returns None for unknown names (the HTTP layer answers 400);
    missing credentials raise ConfigurationError from the backend.
    """
    if not provider_name:
        return None
    ProviderRegistry.ensure_imports()
    try:
        backend_cls = ProviderRegistry.get(provider_name)
    except KeyError:
        logger.warning(f"Unsupported LLM provider: {provider_name}")
        return None

    backend = backend_cls.create(credentials=credentials or {}, options=options or {})
    return ResilientClient(backend, policy, log=log, **(client_options or {}))
