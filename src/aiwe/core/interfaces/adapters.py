"""
Local Adapter Protocols

A local adapter is an in-process implementation of a service's actions, keyed
by service name. Adapters declare their actions by `name`; each declared action
may be backed by an async callable taking the resolved parameter map.
"""

from typing import Any, Awaitable, Callable, Optional, Protocol

from aiwe.core.domain.catalog import CapabilityCatalog

ActionImplementation = Callable[[dict[str, Any]], Awaitable[Any]]


class LocalAdapterProtocol(Protocol):
    @property
    def service_name(self) -> str: ...

    def catalog(self) -> CapabilityCatalog:
        """Return the adapter's declared action catalog."""
        ...

    def get_implementation(self, action_name: str) -> Optional[ActionImplementation]:
        """Return the callable for an action, or None if not implemented."""
        ...


class AdapterRegistryProtocol(Protocol):
    def get(self, service_name: str) -> Optional[LocalAdapterProtocol]: ...
