"""
Application Layer - Engine Service

This module provides the service layer orchestrating instruction processing.
Both CLI and API entrypoints use this unified execution logic.

The AiweEngine:
- Manages session lifecycle through the SessionLedger
- Consults the oracle to analyze, plan and summarize
- Resolves service catalogs per run (CapabilitySource)
- Executes plans through the PlanRunner with retry and escalation
- Provides progress tracking via callbacks
- Renders engine errors as conversational responses
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog

from aiwe.application.settings import EngineSettings
from aiwe.core.domain.action_executor import ActionExecutor
from aiwe.core.domain.capabilities import CapabilitySource
from aiwe.core.domain.catalog import CapabilityCatalog
from aiwe.core.domain.errors import EngineError, NoIntegrationError, OracleError
from aiwe.core.domain.ledger import SessionLedger
from aiwe.core.domain.models import (
    Action,
    ActionResult,
    ConversationResponse,
    parse_plan,
)
from aiwe.core.domain.plan_runner import PlanRunner, ProgressCallback
from aiwe.core.domain.retry import RetryCoordinator
from aiwe.core.interfaces.adapters import AdapterRegistryProtocol
from aiwe.core.interfaces.oracle import EscalationOracleProtocol, OracleProtocol
from aiwe.core.interfaces.transport import HttpTransportProtocol

logger = structlog.get_logger()


class AiweEngine:
    """Service layer orchestrating instruction processing and plan execution.

    One engine serves many sessions. Every run gets its own CapabilitySource,
    ActionExecutor and PlanRunner, so concurrent runs share nothing but the
    ledger.
    """

    def __init__(
        self,
        oracle: OracleProtocol,
        transport: HttpTransportProtocol,
        adapters: AdapterRegistryProtocol,
        ledger: Optional[SessionLedger] = None,
        settings: Optional[EngineSettings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize AiweEngine.

        Args:
            oracle: Planner/interpreter oracle
            transport: HTTP transport for discovery and remote execution
            adapters: Registry of local adapters
            ledger: Session store (a fresh in-memory ledger if omitted)
            settings: Engine settings (defaults if omitted)
            sleep: Awaitable sleep used between retry attempts
        """
        self.oracle = oracle
        self.transport = transport
        self.adapters = adapters
        self.ledger = ledger or SessionLedger()
        self.settings = settings or EngineSettings()
        self._sleep = sleep
        self.logger = logger.bind(component="aiwe_engine")

    async def process_instruction(
        self,
        instruction: str,
        session_id: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ConversationResponse:
        """Process one natural-language instruction end to end.

        Workflow:
        1. Record the user message (creating the session on first contact)
        2. Ask the oracle whether actions are required
        3. Identify target services and resolve their catalogs
        4. Ask the oracle for a plan and execute it
        5. Summarize the results and record the assistant response

        Engine errors do not propagate; they become an "Error: ..." response.

        Args:
            instruction: User instruction
            session_id: Existing session to continue, or None for a new one
            progress_callback: Optional callback for progress updates

        Returns:
            ConversationResponse with the reply and per-action results
        """
        start_time = datetime.now()
        session = self.ledger.get_or_create(session_id)
        session_id = session.id
        await self.ledger.append_message(session_id, "user", instruction)

        self.logger.info(
            "instruction.processing.started",
            session_id=session_id,
            instruction=instruction[:100],
        )

        try:
            response = await self._respond(instruction, session_id, progress_callback)
        except EngineError as e:
            self.logger.error(
                "instruction.processing.failed",
                session_id=session_id,
                error_kind=e.kind.value,
                error=e.message,
                action_id=e.action_id,
            )
            response = ConversationResponse(
                session_id=session_id, response=f"Error: {e.message}", status="error"
            )

        await self.ledger.append_message(session_id, "assistant", response.response)

        self.logger.info(
            "instruction.processing.completed",
            session_id=session_id,
            status=response.status,
            duration_seconds=(datetime.now() - start_time).total_seconds(),
        )
        return response

    async def run_plan(
        self,
        actions: Iterable[Action],
        session_id: str,
        progress_callback: Optional[ProgressCallback] = None,
        escalation_oracle: Optional[EscalationOracleProtocol] = None,
    ) -> list[ActionResult]:
        """Execute a plan directly, without planning or summarization.

        Catalogs are resolved for every service the plan names, in order of
        first appearance. Errors propagate to the caller.

        Args:
            actions: Plan to execute
            session_id: Session whose completed actions are reused and extended
            progress_callback: Optional callback for progress updates
            escalation_oracle: Escalation oracle override (defaults to the engine oracle)

        Returns:
            ActionResults in execution order
        """
        plan = list(actions)
        self.ledger.get_or_create(session_id)
        capabilities = self._capability_source()
        service_names = list(dict.fromkeys(action.service_name for action in plan))
        catalogs = await capabilities.resolve_all(service_names)
        return await self._execute(
            plan, catalogs, capabilities, session_id, progress_callback, escalation_oracle
        )

    async def _respond(
        self,
        instruction: str,
        session_id: str,
        progress_callback: Optional[ProgressCallback],
    ) -> ConversationResponse:
        history = self.ledger.conversation_history(session_id)
        data_reference = self.ledger.data_reference(session_id)

        analysis = await self.oracle.analyze_instruction(instruction, history, data_reference)
        requested = self._requested_data(session_id, analysis.data_needed)
        if requested:
            # One follow-up round with the results the oracle asked for.
            self.logger.info(
                "analysis.data_requested", session_id=session_id, action_ids=list(requested)
            )
            data_reference = {**data_reference, "requestedData": requested}
            analysis = await self.oracle.analyze_instruction(instruction, history, data_reference)

        if not analysis.requires_action:
            return ConversationResponse(session_id=session_id, response=analysis.response)

        identification = await self.oracle.identify_services(instruction, history)
        if identification.status == "needsClarification":
            return ConversationResponse(
                session_id=session_id,
                response=identification.question or "Could you clarify which service you mean?",
                status="needs_clarification",
            )

        capabilities = self._capability_source()
        catalogs: dict[str, CapabilityCatalog] = {}
        for ref in identification.data:
            try:
                catalogs[ref.service_name] = await capabilities.resolve(ref.service_name)
            except NoIntegrationError as e:
                return ConversationResponse(
                    session_id=session_id,
                    response=await self._explain_config_error(ref.service_name, e),
                    status="error",
                )

        completed = self.ledger.completed_actions(session_id)
        proposal = await self.oracle.propose_plan(instruction, history, catalogs, completed)
        if proposal.status == "needsInfo":
            return ConversationResponse(
                session_id=session_id,
                response=proposal.question or "More information is needed to plan this.",
                status="needs_info",
            )
        if proposal.plan is None:
            raise OracleError("Oracle marked the plan complete but returned no actions")

        plan = parse_plan(proposal.plan.actions)
        results = await self._execute(plan, catalogs, capabilities, session_id, progress_callback)

        summary = await self.oracle.summarize(results, self.ledger.data_reference(session_id))
        return ConversationResponse(
            session_id=session_id,
            response=summary.render(),
            execution_results=[r.to_dict() for r in results],
        )

    async def _execute(
        self,
        plan: list[Action],
        catalogs: dict[str, CapabilityCatalog],
        capabilities: CapabilitySource,
        session_id: str,
        progress_callback: Optional[ProgressCallback],
        escalation_oracle: Optional[EscalationOracleProtocol] = None,
    ) -> list[ActionResult]:
        runner = self._plan_runner(capabilities, session_id, progress_callback, escalation_oracle)
        return await runner.run(plan, catalogs, self.ledger.completed_actions(session_id))

    def _requested_data(self, session_id: str, action_ids: list[str]) -> dict[str, Any]:
        completed = self.ledger.completed_actions(session_id)
        return {aid: completed[aid].to_dict() for aid in action_ids if aid in completed}

    async def _explain_config_error(self, service_name: str, error: NoIntegrationError) -> str:
        try:
            return await self.oracle.explain_config_error(service_name, error.message)
        except Exception as e:
            self.logger.warning(
                "config_error.explanation_failed",
                service_name=service_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return f"Failed to get configuration for {service_name}"

    def _capability_source(self) -> CapabilitySource:
        return CapabilitySource(
            transport=self.transport,
            adapters=self.adapters,
            manifest_url_template=self.settings.manifest_url_template,
            registry_base_url=self.settings.registry_base_url,
        )

    def _plan_runner(
        self,
        capabilities: CapabilitySource,
        session_id: str,
        progress_callback: Optional[ProgressCallback],
        escalation_oracle: Optional[EscalationOracleProtocol] = None,
    ) -> PlanRunner:
        executor = ActionExecutor(
            transport=self.transport,
            adapters=self.adapters,
            config_sources=capabilities.config_sources,
            credentials=self.settings.service_credentials,
            execute_url_template=self.settings.execute_url_template,
            registry_base_url=self.settings.registry_base_url,
        )
        retry = RetryCoordinator(
            executor=executor,
            oracle=escalation_oracle or self.oracle,
            max_attempts=self.settings.max_attempts,
            base_delay=self.settings.retry_base_delay,
            max_escalation_resets=self.settings.max_escalation_resets,
            sleep=self._sleep,
        )
        return PlanRunner(
            retry,
            progress_callback=progress_callback,
            completion_callback=lambda action_id, record: self.ledger.record_completion(
                session_id, action_id, record
            ),
        )
