"""
Oracle Response Models

The oracle (planner/interpreter) answers in a small set of JSON shapes. These
models validate each shape at the boundary; the engine never inspects anything
beyond them.
"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceRef(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    service_name: str = Field(alias="serviceName")
    url: Optional[str] = None


class InstructionAnalysis(BaseModel):
    """Whether an instruction needs actions or is plain conversation."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    requires_action: bool = Field(default=False, alias="requiresAction")
    response: str = ""
    data_needed: list[str] = Field(default_factory=list, alias="dataNeeded")
    reason: Optional[str] = None


class ServiceIdentification(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Literal["complete", "needsClarification"]
    data: list[ServiceRef] = Field(default_factory=list)
    question: Optional[str] = None


class ProposedPlan(BaseModel):
    model_config = ConfigDict(extra="allow")

    actions: list[dict[str, Any]]


class PlanProposal(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Literal["complete", "needsInfo"]
    plan: Optional[ProposedPlan] = None
    question: Optional[str] = None


class Decision(str, Enum):
    STOP = "stop"
    CONTINUE = "continue"
    RETRY = "retry"

    @classmethod
    def parse(cls, raw: Any) -> "Decision":
        """Map a raw decision string; `skip` and unknown values mean continue."""
        value = str(raw or "").strip().lower()
        if value == cls.STOP.value:
            return cls.STOP
        if value == cls.RETRY.value:
            return cls.RETRY
        return cls.CONTINUE


class EscalationDecision(BaseModel):
    model_config = ConfigDict(extra="allow")

    decision: Decision
    reason: str = ""

    @classmethod
    def from_raw(cls, data: dict[str, Any]) -> "EscalationDecision":
        return cls(decision=Decision.parse(data.get("decision")), reason=str(data.get("reason") or ""))


class SummaryResults(BaseModel):
    model_config = ConfigDict(extra="allow")

    successful: list[Any] = Field(default_factory=list)
    failed: list[Any] = Field(default_factory=list)


class RunSummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    summary: str = ""
    results: SummaryResults = Field(default_factory=SummaryResults)
    suggestions: list[str] = Field(default_factory=list)

    def render(self) -> str:
        """Render the summary as the conversational response."""
        text = self.summary
        if self.results.failed:
            text += "\n\nFailed actions: " + ", ".join(str(f) for f in self.results.failed)
        if self.suggestions:
            text += "\n\nSuggested next steps:\n" + "\n".join(f"- {s}" for s in self.suggestions)
        return text
