"""
Capability Source

Resolves a service name to an executable action catalog through a tiered
lookup, each tier attempted only if the previous one failed:

1. native manifest fetched from the service's well-known URL
2. the same manifest shape fetched from the secondary registry
3. a statically registered local adapter

A manifest that fails validation is treated exactly like a failed fetch. The
tier that succeeded is recorded in `config_sources`, which the ActionExecutor
consults to decide how to dispatch. One CapabilitySource belongs to one run.
"""

from typing import Iterable, Optional

import structlog

from aiwe.core.domain.catalog import CapabilityCatalog, parse_manifest
from aiwe.core.domain.errors import EngineError, NoIntegrationError
from aiwe.core.domain.models import ConfigSource
from aiwe.core.interfaces.adapters import AdapterRegistryProtocol
from aiwe.core.interfaces.transport import HttpTransportProtocol

DEFAULT_MANIFEST_URL_TEMPLATE = "https://{service}.com/.aiwe"
DEFAULT_REGISTRY_BASE_URL = "http://localhost:3000"


class CapabilitySource:
    """Tiered catalog lookup with per-service source tracking."""

    def __init__(
        self,
        transport: HttpTransportProtocol,
        adapters: AdapterRegistryProtocol,
        manifest_url_template: str = DEFAULT_MANIFEST_URL_TEMPLATE,
        registry_base_url: str = DEFAULT_REGISTRY_BASE_URL,
    ):
        self.transport = transport
        self.adapters = adapters
        self.manifest_url_template = manifest_url_template
        self.registry_base_url = registry_base_url.rstrip("/")
        self.config_sources: dict[str, ConfigSource] = {}
        self._catalogs: dict[str, CapabilityCatalog] = {}
        self.logger = structlog.get_logger().bind(component="capability_source")

    def manifest_url(self, service_name: str) -> str:
        return self.manifest_url_template.format(service=service_name)

    def registry_manifest_url(self, service_name: str) -> str:
        return f"{self.registry_base_url}/{service_name}/.aiwe"

    def source_for(self, service_name: str) -> Optional[ConfigSource]:
        return self.config_sources.get(service_name)

    async def resolve(self, service_name: str) -> CapabilityCatalog:
        """
        Resolve a service's catalog.

        Args:
            service_name: Service to resolve

        Returns:
            The first catalog any tier produced

        Raises:
            NoIntegrationError: If every tier failed
        """
        cached = self._catalogs.get(service_name)
        if cached is not None:
            return cached

        failures: dict[str, str] = {}

        for source, url in (
            (ConfigSource.NATIVE_MANIFEST, self.manifest_url(service_name)),
            (ConfigSource.SECONDARY_REGISTRY, self.registry_manifest_url(service_name)),
        ):
            try:
                body = await self.transport.get_json(url)
                catalog = parse_manifest(body, source=url)
            except Exception as e:
                message = e.message if isinstance(e, EngineError) else str(e)
                failures[source.value] = message
                self.logger.info(
                    "capability.tier.failed",
                    service_name=service_name,
                    tier=source.value,
                    url=url,
                    error=message,
                    error_type=type(e).__name__,
                )
                continue
            return self._remember(service_name, catalog, source)

        adapter = self.adapters.get(service_name)
        if adapter is not None:
            return self._remember(service_name, adapter.catalog(), ConfigSource.LOCAL_ADAPTER)
        failures[ConfigSource.LOCAL_ADAPTER.value] = "no adapter registered"

        self.logger.warning("capability.unresolved", service_name=service_name, failures=failures)
        raise NoIntegrationError(
            f"No integration available for {service_name}",
            service_name=service_name,
            details={"failures": failures},
        )

    async def resolve_all(self, service_names: Iterable[str]) -> dict[str, CapabilityCatalog]:
        """Resolve several services in order; the first failure propagates."""
        return {name: await self.resolve(name) for name in service_names}

    def _remember(
        self, service_name: str, catalog: CapabilityCatalog, source: ConfigSource
    ) -> CapabilityCatalog:
        self.config_sources[service_name] = source
        if catalog.service != service_name:
            self.config_sources.setdefault(catalog.service, source)
        self._catalogs[service_name] = catalog
        self.logger.info(
            "capability.resolved",
            service_name=service_name,
            tier=source.value,
            actions=[a.name for a in catalog.actions],
        )
        return catalog
