"""
Action Executor

Dispatches one resolved action to the backend that supplied its service's
catalog and normalizes the outcome:

- native manifest: POST {action, parameters} to the service's execution URL
- secondary registry: POST the parameter map to the registry's
  per-service-per-action URL
- local adapter: call the adapter's in-process implementation directly

Remote calls carry only the authentication headers the catalog declares.
Backend failures of any type surface as ExecutionError; CredentialError and
ActionNotFoundError are raised with their own kinds.
"""

from collections.abc import Mapping
from typing import Any, NoReturn, Optional

import structlog

from aiwe.core.domain.catalog import CapabilityCatalog
from aiwe.core.domain.errors import (
    ActionNotFoundError,
    CredentialError,
    EngineError,
    ExecutionError,
)
from aiwe.core.domain.models import ConfigSource
from aiwe.core.interfaces.adapters import AdapterRegistryProtocol
from aiwe.core.interfaces.transport import HttpTransportProtocol

DEFAULT_EXECUTE_URL_TEMPLATE = "https://{service}.com/ai-action"


class ActionExecutor:
    """Executes single actions against native, registry, or local backends."""

    def __init__(
        self,
        transport: HttpTransportProtocol,
        adapters: AdapterRegistryProtocol,
        config_sources: Mapping[str, ConfigSource],
        credentials: Optional[dict[str, dict[str, str]]] = None,
        execute_url_template: str = DEFAULT_EXECUTE_URL_TEMPLATE,
        registry_base_url: str = "http://localhost:3000",
    ):
        """
        Initialize the executor.

        Args:
            transport: HTTP transport for remote calls
            adapters: Registry of local adapters
            config_sources: Tier per service, shared with the run's CapabilitySource
            credentials: Per-service map of header name to value
            execute_url_template: Native execution URL, formatted with `service`
            registry_base_url: Base URL of the secondary registry
        """
        self.transport = transport
        self.adapters = adapters
        self.config_sources = config_sources
        self.credentials = credentials or {}
        self.execute_url_template = execute_url_template
        self.registry_base_url = registry_base_url.rstrip("/")
        self.logger = structlog.get_logger().bind(component="action_executor")

    async def execute(
        self,
        action_id: str,
        service_name: str,
        params: dict[str, Any],
        catalog: CapabilityCatalog,
    ) -> Any:
        """
        Execute one action.

        Args:
            action_id: Catalog action name
            service_name: Service the action targets
            params: Resolved parameter map
            catalog: The service's catalog for this run

        Returns:
            Raw result payload from the backend

        Raises:
            ActionNotFoundError: The catalog or adapter does not declare the action
            CredentialError: Required auth headers are not configured
            ExecutionError: Transport or backend failure
        """
        source = self.config_sources.get(service_name) or self.config_sources.get(catalog.service)
        if source is None:
            raise ExecutionError(
                f"No recorded configuration source for {service_name}",
                action_id=action_id,
                service_name=service_name,
            )

        self.logger.debug(
            "action.dispatch", action_id=action_id, service_name=service_name, tier=source.value
        )

        if source is ConfigSource.LOCAL_ADAPTER:
            return await self._execute_local(action_id, service_name, params, catalog)
        return await self._execute_remote(action_id, service_name, params, catalog, source)

    def resolve_auth_headers(self, service_name: str, catalog: CapabilityCatalog) -> dict[str, str]:
        """
        Build the auth headers a catalog requires from configured credentials.

        Only header-type authentication is honoured, and only its first option.
        Only the declared header names are forwarded.

        Raises:
            CredentialError: Naming exactly the missing header names
        """
        auth = catalog.authentication
        if auth is None or auth.type != "header" or not auth.options:
            return {}

        required = list(auth.options[0].headers.keys())
        saved = self.credentials.get(service_name) or self.credentials.get(catalog.service) or {}
        missing = [name for name in required if not saved.get(name)]
        if missing:
            raise CredentialError(
                f"Missing credentials for {service_name}:\n"
                f"Required: {', '.join(missing)}\n"
                "Please provide these credentials in the engine configuration.",
                missing=missing,
                service_name=service_name,
            )
        return {name: saved[name] for name in required}

    async def _execute_remote(
        self,
        action_id: str,
        service_name: str,
        params: dict[str, Any],
        catalog: CapabilityCatalog,
        source: ConfigSource,
    ) -> Any:
        catalog.require_action(action_id)
        headers = self.resolve_auth_headers(service_name, catalog)

        if source is ConfigSource.NATIVE_MANIFEST:
            url = self.execute_url_template.format(service=service_name)
            body: Any = {"action": action_id, "parameters": params}
        else:
            url = f"{self.registry_base_url}/{catalog.service}/{action_id}"
            body = params

        try:
            return await self.transport.post_json(url, body, headers=headers)
        except Exception as e:
            self._reraise(e, action_id, service_name)

    async def _execute_local(
        self,
        action_id: str,
        service_name: str,
        params: dict[str, Any],
        catalog: CapabilityCatalog,
    ) -> Any:
        adapter = self.adapters.get(service_name) or self.adapters.get(catalog.service)
        if adapter is None:
            raise ExecutionError(
                f"No implementation available for {service_name}",
                action_id=action_id,
                service_name=service_name,
            )

        if adapter.catalog().find_action(action_id) is None:
            raise ActionNotFoundError(
                f"Action {action_id} not found in {service_name} adapter",
                action_id=action_id,
                service_name=service_name,
            )

        implementation = adapter.get_implementation(action_id)
        if implementation is None or not callable(implementation):
            raise ExecutionError(
                f"Action {action_id} not implemented in {service_name} adapter",
                action_id=action_id,
                service_name=service_name,
            )

        try:
            return await implementation(params)
        except Exception as e:
            self._reraise(e, action_id, service_name)

    @staticmethod
    def _reraise(error: Exception, action_id: str, service_name: str) -> NoReturn:
        # Engine errors other than ExecutionError keep their kind and propagate as-is.
        if isinstance(error, EngineError) and not isinstance(error, ExecutionError):
            error.action_id = error.action_id or action_id
            error.service_name = error.service_name or service_name
            raise error

        reason = error.message if isinstance(error, EngineError) else (str(error) or type(error).__name__)
        raise ExecutionError(
            f"Failed to execute action {action_id} on {service_name}: {reason}",
            action_id=action_id,
            service_name=service_name,
            details={"error_type": type(error).__name__},
        ) from error
