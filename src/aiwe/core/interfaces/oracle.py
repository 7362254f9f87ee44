"""
Oracle Protocol

The natural-language planner/interpreter is an external oracle. The engine only
depends on this request/response contract; implementations live in
infrastructure (LiteLLM-backed) or in the CLI (operator prompts).
"""

from typing import Any, Protocol

from aiwe.core.domain.catalog import CapabilityCatalog
from aiwe.core.domain.models import ActionResult, CompletedAction
from aiwe.core.domain.oracle_models import (
    EscalationDecision,
    InstructionAnalysis,
    PlanProposal,
    RunSummary,
    ServiceIdentification,
)


class EscalationOracleProtocol(Protocol):
    """The part of the oracle the retry layer consults."""

    async def decide_escalation(
        self, failure: dict[str, Any], transcript: list[dict[str, str]]
    ) -> EscalationDecision:
        """
        Decide what to do after an action exhausted its attempts.

        Args:
            failure: Action id, service name, attempts and last error
            transcript: Accumulated run transcript ({role, content} entries)

        Returns:
            EscalationDecision (stop, continue, or retry) with a reason
        """
        ...


class OracleProtocol(EscalationOracleProtocol, Protocol):
    """Full planner/interpreter contract used by the instruction pipeline."""

    async def analyze_instruction(
        self, instruction: str, conversation_history: str, data_reference: dict[str, Any]
    ) -> InstructionAnalysis: ...

    async def identify_services(
        self, instruction: str, conversation_history: str
    ) -> ServiceIdentification: ...

    async def propose_plan(
        self,
        instruction: str,
        conversation_history: str,
        catalogs: dict[str, CapabilityCatalog],
        completed_actions: dict[str, CompletedAction],
    ) -> PlanProposal: ...

    async def summarize(
        self, results: list[ActionResult], data_reference: dict[str, Any]
    ) -> RunSummary: ...

    async def explain_config_error(self, service_name: str, error: str) -> str: ...
