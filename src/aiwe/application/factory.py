"""
Application Layer - Engine Factory

This module provides the dependency injection factory for creating AiweEngine
instances with infrastructure adapters based on configuration profiles.

Key Responsibilities:
- Load configuration profiles (dev/staging/prod)
- Build EngineSettings (profile values; AIWE_* env vars fill the rest)
- Instantiate infrastructure adapters (HTTP transport, oracle, local adapters)
- Wire dependencies into the AiweEngine
"""

from pathlib import Path
from typing import Optional

import structlog
import yaml

from aiwe.application.engine import AiweEngine
from aiwe.application.settings import EngineSettings
from aiwe.core.domain.ledger import SessionLedger
from aiwe.core.interfaces.oracle import OracleProtocol
from aiwe.core.interfaces.transport import HttpTransportProtocol
from aiwe.infrastructure.adapters.registry import LocalAdapterRegistry


class EngineFactory:
    """
    Factory for creating engines with dependency injection.

    Reads YAML configuration profiles, instantiates the matching
    infrastructure adapters and injects them into AiweEngine.
    """

    def __init__(self, config_dir: str = "configs"):
        """
        Initialize EngineFactory with configuration directory.

        Args:
            config_dir: Path to directory containing profile YAML files
        """
        self.config_dir = Path(config_dir)
        self.logger = structlog.get_logger().bind(component="engine_factory")

    def create_engine(
        self,
        profile: str = "dev",
        ledger: Optional[SessionLedger] = None,
        oracle: Optional[OracleProtocol] = None,
        transport: Optional[HttpTransportProtocol] = None,
    ) -> AiweEngine:
        """
        Create an engine for a configuration profile.

        Args:
            profile: Configuration profile name (dev/staging/prod)
            ledger: Session ledger to share (a new one if omitted)
            oracle: Oracle override (LiteLLM oracle from the profile if omitted)
            transport: Transport override (aiohttp transport if omitted)

        Returns:
            AiweEngine with injected dependencies

        Raises:
            FileNotFoundError: If profile YAML not found
            ValueError: If the profile names an unknown adapter
        """
        config = self._load_profile(profile)
        settings = self._create_settings(config)

        self.logger.info(
            "creating_engine",
            profile=profile,
            oracle_model=settings.oracle_model,
            adapters=config.get("adapters", []),
        )

        transport = transport or self._create_transport(settings)
        oracle = oracle or self._create_oracle(settings, config)
        adapters = self._create_adapters(config, settings, transport)

        return AiweEngine(
            oracle=oracle,
            transport=transport,
            adapters=adapters,
            ledger=ledger,
            settings=settings,
        )

    def _load_profile(self, profile: str) -> dict:
        """
        Load configuration profile from YAML file.

        Args:
            profile: Profile name (dev/staging/prod)

        Returns:
            Configuration dictionary

        Raises:
            FileNotFoundError: If profile YAML not found
        """
        profile_path = self.config_dir / f"{profile}.yaml"

        if not profile_path.exists():
            self.logger.error(
                "profile_not_found",
                profile=profile,
                path=str(profile_path),
                hint="Ensure profile YAML exists in configs directory",
            )
            raise FileNotFoundError(f"Profile not found: {profile_path}")

        with open(profile_path) as f:
            config = yaml.safe_load(f) or {}

        self.logger.debug("profile_loaded", profile=profile, config_keys=list(config.keys()))
        return config

    def _create_settings(self, config: dict) -> EngineSettings:
        return EngineSettings(**(config.get("engine") or {}))

    def _create_transport(self, settings: EngineSettings) -> HttpTransportProtocol:
        from aiwe.infrastructure.http.aiohttp_transport import AiohttpTransport

        return AiohttpTransport(timeout=settings.request_timeout)

    def _create_oracle(self, settings: EngineSettings, config: dict) -> OracleProtocol:
        from aiwe.infrastructure.llm.litellm_oracle import LiteLLMOracle

        oracle_config = config.get("oracle") or {}
        return LiteLLMOracle(
            model=settings.oracle_model,
            temperature=settings.oracle_temperature,
            timeout=oracle_config.get("timeout", 60.0),
            completion_kwargs=oracle_config.get("completion_kwargs"),
        )

    def _create_adapters(
        self, config: dict, settings: EngineSettings, transport: HttpTransportProtocol
    ) -> LocalAdapterRegistry:
        """
        Create the local adapter registry from the profile's `adapters` list.

        Raises:
            ValueError: If an adapter name is unknown
        """
        registry = LocalAdapterRegistry()
        for name in config.get("adapters") or []:
            if name == "stripe":
                from aiwe.infrastructure.adapters.stripe_adapter import StripeAdapter

                secret = settings.service_credentials.get("stripe", {}).get("Authorization")
                registry.register(StripeAdapter(transport=transport, secret_key=secret))
            else:
                raise ValueError(f"Unknown local adapter: {name}")
        return registry
