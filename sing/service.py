"""A type-keyed service registry carried through immutable context mappings."""

import threading
from types import MappingProxyType
from typing import Any, Mapping, Optional

_REGISTRY_KEY = object()


class Registry:
    """A thread-safe map from service types to service instances."""

    def __init__(self) -> None:
        self._services: dict[Any, Any] = {}
        self._lock = threading.Lock()

    def register(self, service_type: Any, service: Any) -> Optional[Any]:
        """Store ``service`` under ``service_type`` and return the one it replaced."""
        with self._lock:
            old = self._services.get(service_type)
            self._services[service_type] = service
            return old

    def get(self, service_type: Any) -> Optional[Any]:
        """Return the service stored under ``service_type``, or ``None``."""
        with self._lock:
            return self._services.get(service_type)


def context_with_registry(ctx: Optional[Mapping], registry: Registry) -> Mapping:
    """Return a new read-only context holding ``ctx``'s values plus ``registry``."""
    values = dict(ctx or {})
    values[_REGISTRY_KEY] = registry
    return MappingProxyType(values)


def registry_from_context(ctx: Optional[Mapping]) -> Optional[Registry]:
    """Return the registry carried by ``ctx``, or ``None``."""
    if ctx is None:
        return None
    return ctx.get(_REGISTRY_KEY)


def from_context(ctx: Optional[Mapping], service_type: Any) -> Optional[Any]:
    """Return the service of ``service_type`` registered in ``ctx``, or ``None``."""
    registry = registry_from_context(ctx)
    if registry is None:
        return None
    return registry.get(service_type)


def context_with(ctx: Optional[Mapping], service_type: Any, service: Any) -> Mapping:
    """Register ``service`` in ``ctx``'s registry, adding one if needed, and return the context."""
    registry = registry_from_context(ctx)
    if registry is None:
        registry = Registry()
        ctx = context_with_registry(ctx, registry)
    registry.register(service_type, service)
    return ctx