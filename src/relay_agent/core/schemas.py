"""
Core schemas for action parsing, parameter resolution and tool execution.

This module defines the structured values passed between the reasoning loop
and its collaborators.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from ..base.context import ReasoningStep
from ..base.tool import ToolUsageStat


class ParsedAction(BaseModel):
    """A tool invocation extracted from model output."""

    tool_name: str = Field(description="Tool the model asked for")
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Arguments exactly as the model wrote them"
    )

    class Config:
        frozen = True


class ParameterCollectionResult(BaseModel):
    """
    Outcome of completing a tool's arguments.

    `arguments` is present only on success.
    """

    success: bool
    arguments: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    user_cancelled: bool = False

    @model_validator(mode="after")
    def arguments_only_on_success(self):
        if self.success and self.arguments is None:
            raise ValueError("successful result requires arguments")
        if not self.success and self.arguments is not None:
            raise ValueError("failed result must not carry arguments")
        return self

    @classmethod
    def ok(cls, arguments: Dict[str, Any]) -> "ParameterCollectionResult":
        return cls(success=True, arguments=arguments)

    @classmethod
    def failed(cls, error: str) -> "ParameterCollectionResult":
        return cls(success=False, error=error)

    @classmethod
    def cancelled(cls) -> "ParameterCollectionResult":
        return cls(success=False, error="Cancelled by user", user_cancelled=True)


class Outcome(BaseModel):
    """Classification of a tool's textual result."""

    parameter_error: bool = False
    error: bool = False


class ExecutionResult(BaseModel):
    """What the supervisor reports back for one logical tool call."""

    success: bool
    content: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    user_cancelled: bool = False
    arguments: Dict[str, Any] = Field(
        default_factory=dict, description="Arguments used on the final attempt"
    )


class RunStatus(str, Enum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    CANCELLED = "cancelled"
    FAILED = "failed"


class AgentRunResult(BaseModel):
    """Transcript and statistics of a finished run, for the summary consumer."""

    query: str
    status: RunStatus
    iterations: int
    steps: List[ReasoningStep] = Field(default_factory=list)
    tool_stats: Dict[str, ToolUsageStat] = Field(default_factory=dict)
    error: Optional[str] = None

    @property
    def task_complete(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def tool_invocations(self) -> int:
        return sum(1 for step in self.steps if step.kind == "action")
