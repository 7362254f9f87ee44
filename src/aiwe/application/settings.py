"""
Engine configuration with environment variable support.
"""

from pathlib import Path
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings
import yaml


class EngineSettings(BaseSettings):
    """Execution engine settings.

    Values come from (highest first) explicit arguments, `AIWE_*` environment
    variables, a `.env` file, and the defaults below.
    """

    # Retry policy
    max_attempts: int = Field(default=3, ge=1, description="Attempts per action before escalation")
    retry_base_delay: float = Field(default=1.0, ge=0, description="Delay unit in seconds between attempts")
    max_escalation_resets: Optional[int] = Field(
        default=3, description="Escalation retry decisions allowed per action (None = unbounded)"
    )

    # Transport
    request_timeout: float = Field(default=30.0, gt=0, description="Timeout in seconds for HTTP calls")
    manifest_url_template: str = Field(
        default="https://{service}.com/.aiwe", description="Native capability manifest URL"
    )
    execute_url_template: str = Field(
        default="https://{service}.com/ai-action", description="Native action execution URL"
    )
    registry_base_url: str = Field(default="http://localhost:3000", description="Secondary registry base URL")

    # Oracle
    oracle_model: str = Field(default="gpt-4o-mini", description="LiteLLM model for the oracle")
    oracle_temperature: float = Field(default=0.3, description="Sampling temperature for oracle calls")

    # Credentials: service name -> header name -> value
    service_credentials: Dict[str, Dict[str, str]] = Field(default_factory=dict)

    model_config = {
        "env_file": ".env",
        "env_prefix": "AIWE_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @classmethod
    def load_from_file(cls, config_path: Path) -> "EngineSettings":
        """Load settings from a YAML profile; a missing file yields defaults."""
        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data.get("engine", config_data))
