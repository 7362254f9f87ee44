"""
Local adapter registry.

Local adapters are hand-written, in-process implementations of a service's
actions. They form the last tier of capability lookup, used when a service
publishes no manifest and the secondary registry has none either.
"""

from typing import Any, Iterable, Optional

import structlog

from aiwe.core.domain.catalog import CapabilityCatalog
from aiwe.core.interfaces.adapters import ActionImplementation, LocalAdapterProtocol


class LocalAdapter:
    """Base class for local adapters.

    Subclasses declare `service_name`, `description` and `actions` (catalog
    action dicts), and implement each action as an async method named in
    `implementations`.
    """

    service_name: str = ""
    description: str = ""
    actions: list[dict[str, Any]] = []
    implementations: dict[str, str] = {}

    def catalog(self) -> CapabilityCatalog:
        return CapabilityCatalog(
            service=self.service_name,
            description=self.description,
            actions=self.actions,
        )

    def get_implementation(self, action_name: str) -> Optional[ActionImplementation]:
        method_name = self.implementations.get(action_name)
        if method_name is None:
            return None
        return getattr(self, method_name, None)


class LocalAdapterRegistry:
    """Static map of service name to local adapter."""

    def __init__(self, adapters: Optional[Iterable[LocalAdapterProtocol]] = None):
        self._adapters: dict[str, LocalAdapterProtocol] = {}
        self.logger = structlog.get_logger().bind(component="adapter_registry")
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: LocalAdapterProtocol) -> None:
        self._adapters[adapter.service_name] = adapter
        self.logger.debug("adapter.registered", service_name=adapter.service_name)

    def get(self, service_name: str) -> Optional[LocalAdapterProtocol]:
        return self._adapters.get(service_name)

    def service_names(self) -> list[str]:
        return sorted(self._adapters)
