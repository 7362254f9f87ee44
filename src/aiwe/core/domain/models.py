"""
Core Domain Models

This module defines the data models the execution engine passes between its
components: planned actions, per-action results, the run-scoped output store,
and the session ledger records.

Actions arrive from the oracle as loosely-typed JSON; `Action.from_dict`
validates them at ingestion so the rest of the engine only sees typed,
immutable values.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from aiwe.core.domain.errors import PlanValidationError

OUTPUT_REFERENCE_PREFIX = "$outputs."


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Action:
    """
    A single planned step.

    Attributes:
        id: Identifier, unique within a plan (also the catalog action name)
        service_name: Target service name
        parameters: Parameter map; string values may be `$outputs.` references
        depends_on: Identifiers of actions (or output keys) this action needs
        output_key: Key under which the result is published for later actions
        always_execute: Re-run even if a prior completion exists
    """

    id: str
    service_name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    depends_on: tuple[str, ...] = ()
    output_key: Optional[str] = None
    always_execute: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Action":
        """
        Build an Action from the oracle's camelCase plan entry.

        Accepts `serviceName` (or the legacy `website` key), `dependsOn`,
        `outputKey` and `alwaysExecute`.

        Raises:
            PlanValidationError: If the entry is malformed
        """
        if not isinstance(data, dict):
            raise PlanValidationError(f"Action entry must be an object, got {type(data).__name__}")

        action_id = data.get("id")
        if not isinstance(action_id, str) or not action_id:
            raise PlanValidationError("Action entry is missing a string 'id'")

        service_name = data.get("serviceName", data.get("service_name", data.get("website")))
        if not isinstance(service_name, str) or not service_name:
            raise PlanValidationError(
                f"Action {action_id} is missing a string 'serviceName'", action_id=action_id
            )

        parameters = data.get("parameters") or {}
        if not isinstance(parameters, dict):
            raise PlanValidationError(
                f"Action {action_id} has non-object 'parameters'", action_id=action_id
            )

        depends_on = data.get("dependsOn", data.get("depends_on")) or []
        if not isinstance(depends_on, list) or not all(isinstance(d, str) for d in depends_on):
            raise PlanValidationError(
                f"Action {action_id} has invalid 'dependsOn' (expected list of strings)",
                action_id=action_id,
            )

        output_key = data.get("outputKey", data.get("output_key"))
        if output_key is not None and not isinstance(output_key, str):
            raise PlanValidationError(
                f"Action {action_id} has non-string 'outputKey'", action_id=action_id
            )

        return cls(
            id=action_id,
            service_name=service_name,
            parameters=dict(parameters),
            depends_on=tuple(depends_on),
            output_key=output_key or None,
            always_execute=bool(data.get("alwaysExecute", data.get("always_execute", False))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "serviceName": self.service_name,
            "parameters": dict(self.parameters),
            "dependsOn": list(self.depends_on),
            "outputKey": self.output_key,
            "alwaysExecute": self.always_execute,
        }


def validate_plan(actions: Iterable[Action]) -> list[Action]:
    """
    Check that a plan is non-empty and its identifiers are unique.

    Raises:
        PlanValidationError: On an empty plan or duplicate identifiers
    """
    plan = list(actions)
    if not plan:
        raise PlanValidationError("Action plan is empty")

    seen: set[str] = set()
    for action in plan:
        if action.id in seen:
            raise PlanValidationError(
                f"Duplicate action identifier in plan: {action.id}", action_id=action.id
            )
        seen.add(action.id)
    return plan


def parse_plan(raw_actions: Iterable[dict[str, Any]]) -> list[Action]:
    """Parse and validate a raw list of plan entries."""
    return validate_plan(Action.from_dict(entry) for entry in raw_actions)


class ActionStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class ActionResult:
    """
    Outcome of one action's execution/retry cycle.

    Attributes:
        status: success, error, or skipped (reused from the ledger)
        action_id: Originating action identifier
        service_name: Target service name
        result: Result payload on success
        error: Error description on failure
        retry_count: Failed attempts before the outcome (reset by escalation retry)
        attempts: Total attempts made, across escalation resets
        escalation_reason: Oracle reason when the action was abandoned
    """

    status: ActionStatus
    action_id: str
    service_name: str
    result: Any = None
    error: Optional[str] = None
    retry_count: int = 0
    attempts: int = 0
    escalation_reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "action": self.action_id,
            "service": self.service_name,
            "result": self.result,
            "error": self.error,
            "retryCount": self.retry_count,
            "attempts": self.attempts,
            "escalationReason": self.escalation_reason,
        }


class ConfigSource(str, Enum):
    """Which tier supplied a service's capability catalog."""

    NATIVE_MANIFEST = "native_manifest"
    SECONDARY_REGISTRY = "secondary_registry"
    LOCAL_ADAPTER = "local_adapter"


@dataclass
class CompletedAction:
    """Ledger record of a successfully completed action."""

    service_name: str
    result: Any
    timestamp: datetime = field(default_factory=utcnow)
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_name": self.service_name,
            "result": self.result,
            "timestamp": self.timestamp.isoformat(),
            "parameters": self.parameters,
        }


@dataclass(frozen=True)
class Message:
    role: str
    content: str
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class Session:
    """
    Conversation session.

    Messages are append-only; completed actions are keyed by action id.
    """

    id: str
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    messages: list[Message] = field(default_factory=list)
    completed_actions: dict[str, CompletedAction] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "messages": [
                {"role": m.role, "content": m.content, "timestamp": m.timestamp.isoformat()}
                for m in self.messages
            ],
            "completed_actions": {k: v.to_dict() for k, v in self.completed_actions.items()},
        }


class OutputStore:
    """
    Run-scoped map from output key to the latest value produced for it.

    Also tracks which action identifiers produced (or reused) a result in
    this run, so dependencies on actions without an output key are satisfied.
    """

    def __init__(self, seed: Optional[dict[str, Any]] = None):
        self._values: dict[str, Any] = dict(seed or {})
        self._produced: set[str] = set()

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def mark_produced(self, action_id: str) -> None:
        self._produced.add(action_id)

    def satisfies(self, dependency: str) -> bool:
        """True if a dependency name has been materialized in this run."""
        return dependency in self._values or dependency in self._produced


@dataclass
class ProgressUpdate:
    """Progress event emitted while a plan runs.

    Attributes:
        timestamp: When this update occurred
        event_type: action.skipped, action.started, action.succeeded, action.failed
        message: Human-readable message describing the event
        details: Additional structured data about the event
    """

    timestamp: datetime
    event_type: str
    message: str
    details: dict


@dataclass
class ConversationResponse:
    """Result of processing one instruction through the engine."""

    session_id: str
    response: str
    execution_results: list[dict[str, Any]] = field(default_factory=list)
    status: str = "completed"
