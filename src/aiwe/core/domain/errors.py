"""
Engine Error Taxonomy

Every failure raised by the execution engine is an EngineError carrying an
ErrorKind discriminant. Retry and propagation decisions are made on the kind,
never on the message text.

Kinds and their policy:
- cycle, plan_validation, missing_dependency, catalog_missing: malformed plan,
  abort the run before or without consulting the oracle
- unresolved_reference: bad parameter reference, fatal for the action
- no_integration: no tier could resolve a service
- action_not_found, execution: retryable, escalated after max attempts
- credential: never retried, propagates immediately
- fatal_action: oracle decided to stop the run
- escalation: oracle could not produce a decision
- oracle: oracle call failed or answered outside its contract
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Discriminant for engine errors."""

    CYCLE = "cycle"
    PLAN_VALIDATION = "plan_validation"
    UNRESOLVED_REFERENCE = "unresolved_reference"
    NO_INTEGRATION = "no_integration"
    MANIFEST_VALIDATION = "manifest_validation"
    ACTION_NOT_FOUND = "action_not_found"
    CREDENTIAL = "credential"
    EXECUTION = "execution"
    MISSING_DEPENDENCY = "missing_dependency"
    CATALOG_MISSING = "catalog_missing"
    FATAL_ACTION = "fatal_action"
    ESCALATION = "escalation"
    ORACLE = "oracle"


RETRYABLE_KINDS = frozenset({ErrorKind.ACTION_NOT_FOUND, ErrorKind.EXECUTION})


class EngineError(Exception):
    """
    Base class for all engine errors.

    Attributes:
        kind: Error discriminant used for retry/propagation decisions
        action_id: Identifier of the action involved (if any)
        service_name: Service the action targeted (if any)
        attempts: Number of attempts made before the error surfaced
        details: Additional structured data for rendering
    """

    kind: ErrorKind = ErrorKind.EXECUTION

    def __init__(
        self,
        message: str,
        *,
        action_id: Optional[str] = None,
        service_name: Optional[str] = None,
        attempts: int = 0,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.action_id = action_id
        self.service_name = service_name
        self.attempts = attempts
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logs, API responses and oracle context."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "action_id": self.action_id,
            "service_name": self.service_name,
            "attempts": self.attempts,
            "details": self.details,
        }


class CycleError(EngineError):
    kind = ErrorKind.CYCLE


class PlanValidationError(EngineError):
    kind = ErrorKind.PLAN_VALIDATION


class UnresolvedReferenceError(EngineError):
    """A `$outputs.` reference could not be resolved."""

    kind = ErrorKind.UNRESOLVED_REFERENCE

    def __init__(self, message: str, *, parameter: str, reference: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.parameter = parameter
        self.reference = reference
        self.details.update({"parameter": parameter, "reference": reference})


class NoIntegrationError(EngineError):
    kind = ErrorKind.NO_INTEGRATION


class ManifestValidationError(EngineError):
    kind = ErrorKind.MANIFEST_VALIDATION


class ActionNotFoundError(EngineError):
    kind = ErrorKind.ACTION_NOT_FOUND


class CredentialError(EngineError):
    """Required authentication headers are not configured for a service."""

    kind = ErrorKind.CREDENTIAL

    def __init__(self, message: str, *, missing: list[str], **kwargs: Any):
        super().__init__(message, **kwargs)
        self.missing = list(missing)
        self.details["missing"] = self.missing


class ExecutionError(EngineError):
    kind = ErrorKind.EXECUTION


class MissingDependencyError(EngineError):
    kind = ErrorKind.MISSING_DEPENDENCY


class CatalogMissingError(EngineError):
    kind = ErrorKind.CATALOG_MISSING


class FatalActionError(EngineError):
    """Raised when escalation decides to stop the whole run."""

    kind = ErrorKind.FATAL_ACTION

    def __init__(self, message: str, *, reason: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.reason = reason
        self.details["reason"] = reason


class EscalationError(EngineError):
    kind = ErrorKind.ESCALATION


class OracleError(EngineError):
    kind = ErrorKind.ORACLE
