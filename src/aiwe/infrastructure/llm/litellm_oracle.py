"""
LiteLLM Oracle

Implements OracleProtocol on top of `litellm.acompletion`. Every question is
asked in JSON mode and the answer validated against the matching oracle
response model; any failure surfaces as OracleError.
"""

import json
import time
from typing import Any, Optional, Type, TypeVar

import litellm
import structlog
from pydantic import BaseModel, ValidationError

from aiwe.core.domain.catalog import CapabilityCatalog
from aiwe.core.domain.errors import OracleError
from aiwe.core.domain.models import ActionResult, CompletedAction
from aiwe.core.domain.oracle_models import (
    EscalationDecision,
    InstructionAnalysis,
    PlanProposal,
    RunSummary,
    ServiceIdentification,
)
from aiwe.core.prompts.oracle_prompts import (
    build_analysis_messages,
    build_config_error_messages,
    build_escalation_messages,
    build_identification_messages,
    build_planning_messages,
    build_summary_messages,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


class LiteLLMOracle:
    """Planner/interpreter oracle backed by any LiteLLM-supported model."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        timeout: float = 60.0,
        completion_kwargs: Optional[dict[str, Any]] = None,
    ):
        """
        Initialize the oracle.

        Args:
            model: LiteLLM model name (e.g. "gpt-4o-mini", "azure/<deployment>")
            temperature: Sampling temperature
            timeout: Per-call timeout in seconds
            completion_kwargs: Extra parameters forwarded to litellm.acompletion
        """
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.completion_kwargs = completion_kwargs or {}
        self.logger = structlog.get_logger().bind(component="litellm_oracle")

    async def analyze_instruction(
        self, instruction: str, conversation_history: str, data_reference: dict[str, Any]
    ) -> InstructionAnalysis:
        messages = build_analysis_messages(instruction, conversation_history, data_reference)
        return await self._ask("analyze_instruction", messages, InstructionAnalysis)

    async def identify_services(self, instruction: str, conversation_history: str) -> ServiceIdentification:
        messages = build_identification_messages(instruction, conversation_history)
        return await self._ask("identify_services", messages, ServiceIdentification)

    async def propose_plan(
        self,
        instruction: str,
        conversation_history: str,
        catalogs: dict[str, CapabilityCatalog],
        completed_actions: dict[str, CompletedAction],
    ) -> PlanProposal:
        messages = build_planning_messages(
            instruction,
            conversation_history,
            {name: catalog.to_prompt_dict() for name, catalog in catalogs.items()},
            {action_id: record.to_dict() for action_id, record in completed_actions.items()},
        )
        return await self._ask("propose_plan", messages, PlanProposal)

    async def decide_escalation(
        self, failure: dict[str, Any], transcript: list[dict[str, str]]
    ) -> EscalationDecision:
        messages = build_escalation_messages(failure, transcript)
        raw = await self._complete_json("decide_escalation", messages)
        return EscalationDecision.from_raw(raw)

    async def summarize(self, results: list[ActionResult], data_reference: dict[str, Any]) -> RunSummary:
        messages = build_summary_messages([r.to_dict() for r in results], data_reference)
        return await self._ask("summarize", messages, RunSummary)

    async def explain_config_error(self, service_name: str, error: str) -> str:
        raw = await self._complete_json("explain_config_error", build_config_error_messages(service_name, error))
        response = raw.get("response")
        if not isinstance(response, str) or not response:
            raise OracleError("Oracle returned no explanation for the configuration error")
        return response

    async def _ask(self, question: str, messages: list[dict[str, str]], model: Type[ModelT]) -> ModelT:
        raw = await self._complete_json(question, messages)
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            self.logger.warning("oracle.response.invalid", question=question, errors=e.error_count())
            raise OracleError(
                f"Oracle answer to {question} does not match the expected format",
                details={"errors": e.errors(include_url=False)},
            ) from e

    async def _complete_json(self, question: str, messages: list[dict[str, str]]) -> dict[str, Any]:
        start_time = time.time()
        self.logger.info("oracle.completion.started", question=question, model=self.model)

        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                response_format={"type": "json_object"},
                timeout=self.timeout,
                **self.completion_kwargs,
            )
        except Exception as e:
            self.logger.error(
                "oracle.completion.failed",
                question=question,
                model=self.model,
                error_type=type(e).__name__,
                error=str(e)[:200],
            )
            raise OracleError(f"Oracle call {question} failed: {e}") from e

        content = response.choices[0].message.content or ""
        self.logger.info(
            "oracle.completion.success",
            question=question,
            model=self.model,
            latency_ms=int((time.time() - start_time) * 1000),
        )

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise OracleError(f"Oracle answer to {question} is not valid JSON") from e
        if not isinstance(parsed, dict):
            raise OracleError(f"Oracle answer to {question} is not a JSON object")
        return parsed
