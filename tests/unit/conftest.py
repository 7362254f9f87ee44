"""Shared fixtures for unit tests."""

from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from aiwe.core.domain.catalog import CapabilityCatalog
from aiwe.core.domain.oracle_models import Decision, EscalationDecision


def make_catalog(
    service: str,
    actions: list[str],
    auth_headers: Optional[list[str]] = None,
) -> CapabilityCatalog:
    data: dict[str, Any] = {
        "service": service,
        "description": f"{service} test service",
        "actions": [{"name": name, "description": f"{name} action"} for name in actions],
    }
    if auth_headers is not None:
        data["authentication"] = {
            "type": "header",
            "options": [{"name": "api-key", "headers": {h: "<value>" for h in auth_headers}}],
        }
    return CapabilityCatalog.model_validate(data)


class RecordingSleep:
    """Awaitable sleep stand-in recording requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def mock_transport():
    transport = MagicMock()
    transport.get_json = AsyncMock()
    transport.post_json = AsyncMock()
    transport.request = AsyncMock()
    return transport


@pytest.fixture
def empty_adapters():
    adapters = MagicMock()
    adapters.get.return_value = None
    return adapters


@pytest.fixture
def escalation_oracle():
    oracle = MagicMock()
    oracle.decide_escalation = AsyncMock(
        return_value=EscalationDecision(decision=Decision.STOP, reason="unrecoverable")
    )
    return oracle


@pytest.fixture
def catalog_factory():
    return make_catalog
