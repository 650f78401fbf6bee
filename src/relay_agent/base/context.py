"""
Execution context for a single agent run.

The transcript is an append-only sequence of reasoning steps; it seeds every
later prompt and is handed to the summary consumer when the run ends.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, PrivateAttr

from .tool import ToolUsageStat


class ThoughtStep(BaseModel):
    """Free-form reasoning produced by the model."""

    kind: Literal["thought"] = "thought"
    content: str

    class Config:
        frozen = True


class ActionStep(BaseModel):
    """A resolved tool invocation about to be executed."""

    kind: Literal["action"] = "action"
    tool: str
    arguments: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True


class ObservationStep(BaseModel):
    """What came back from an action (or why it never ran)."""

    kind: Literal["observation"] = "observation"
    content: str
    success: bool
    error: Optional[str] = None

    class Config:
        frozen = True


ReasoningStep = Annotated[
    Union[ThoughtStep, ActionStep, ObservationStep], Field(discriminator="kind")
]


class AgentContext(BaseModel):
    """Mutable state of one run: transcript, iteration counter and tool stats."""

    agent_name: str
    query: str
    iteration: int = 0
    tool_stats: Dict[str, ToolUsageStat] = Field(default_factory=dict)
    _steps: List[Any] = PrivateAttr(default_factory=list)

    @property
    def steps(self) -> Tuple[ReasoningStep, ...]:
        """Snapshot of the transcript; callers cannot edit it in place."""
        return tuple(self._steps)

    def add_thought(self, content: str) -> ThoughtStep:
        step = ThoughtStep(content=content)
        self._steps.append(step)
        return step

    def add_action(self, tool: str, arguments: Dict[str, Any]) -> ActionStep:
        step = ActionStep(tool=tool, arguments=dict(arguments))
        self._steps.append(step)
        return step

    def add_observation(
        self, content: str, success: bool, error: Optional[str] = None
    ) -> ObservationStep:
        step = ObservationStep(content=content, success=success, error=error)
        self._steps.append(step)
        return step

    def record_outcome(self, tool: str, success: bool, error: Optional[str] = None) -> None:
        """Update usage stats once an execution has concluded."""
        stat = self.tool_stats.setdefault(tool, ToolUsageStat())
        if success:
            stat.record_success()
        else:
            stat.record_error(error or "Unknown error")

    @property
    def tool_invocations(self) -> int:
        return sum(1 for step in self._steps if isinstance(step, ActionStep))

    def get_last_n_steps(self, n: int) -> List[ReasoningStep]:
        return list(self._steps[-n:]) if n > 0 else []
