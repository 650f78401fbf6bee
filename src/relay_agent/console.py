"""
Plain console implementations of the provider capabilities.

Prompts run in a worker thread so the event loop keeps servicing the tool
server pipe while the user types. EOF or Ctrl-C at any prompt cancels the run.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

from .base.tool import FieldSchema
from .core.schemas import AgentRunResult
from .errors import UserCancelled
from .utils.decorators import hook

logger = logging.getLogger(__name__)

_YES = {"y", "yes"}
_NO = {"n", "no", ""}


async def _ask(prompt: str) -> str:
    try:
        return await asyncio.to_thread(input, prompt)
    except (EOFError, KeyboardInterrupt):
        raise UserCancelled("Input aborted")


class ConsoleFieldProvider:
    """Asks for missing tool arguments on stdin."""

    async def resolve_field(self, name: str, schema: FieldSchema, required: bool) -> Any:
        label = f"{name} ({schema.type}, {'required' if required else 'optional, Enter to skip'})"
        if schema.description:
            print(f"\n{label}: {schema.description}")
        else:
            print(f"\n{label}")

        if schema.enum:
            for index, value in enumerate(schema.enum, start=1):
                print(f"  {index}. {value}")
            answer = (await _ask("Choose a number or type a value: ")).strip()
            if answer.isdigit() and 1 <= int(answer) <= len(schema.enum):
                return schema.enum[int(answer) - 1]
            return answer

        return (await _ask("> ")).strip()


class ConsoleCheckpoint:
    """Asks yes/no questions on stdin. Default is no."""

    async def confirm(self, prompt: str) -> bool:
        while True:
            answer = (await _ask(f"\n{prompt} [y/N] ")).strip().lower()
            if answer in _YES:
                return True
            if answer in _NO:
                return False
            print("Please answer y or n.")


class StaticFieldProvider:
    """
    Answers from a fixed mapping, for scripted runs and tests.

    A list value is consumed one answer per request; `None` in the mapping (or
    an exhausted list) answers empty.
    """

    def __init__(self, answers: Dict[str, Any], cancel_on: Iterable[str] = ()):
        self.answers = {
            k: list(v) if isinstance(v, (list, tuple)) else v for k, v in answers.items()
        }
        self.cancel_on = set(cancel_on)
        self.requests: list = []

    async def resolve_field(self, name: str, schema: FieldSchema, required: bool) -> Any:
        self.requests.append(name)
        if name in self.cancel_on:
            raise UserCancelled(f"Cancelled while asking for '{name}'")

        value = self.answers.get(name)
        if isinstance(value, list):
            return value.pop(0) if value else None
        return value


class StaticCheckpoint:
    """Answers checkpoints from a script: one boolean per question, then `default`."""

    def __init__(self, answers: Iterable[bool] = (), default: bool = False):
        self.answers = list(answers)
        self.default = default
        self.prompts: list = []

    async def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answers.pop(0) if self.answers else self.default


def format_summary(result: AgentRunResult) -> str:
    """Human-readable end-of-run report."""
    lines = [
        "",
        "=" * 60,
        f"Query: {result.query}",
        f"Status: {result.status.value} after {result.iterations} iteration(s)",
        f"Tool invocations: {result.tool_invocations}",
    ]
    if result.error:
        lines.append(f"Error: {result.error}")

    if result.tool_stats:
        lines.append("Tool usage:")
        for name, stat in result.tool_stats.items():
            lines.append(f"  {name}: {stat.successes} ok, {stat.errors} failed")
            for message in stat.error_messages:
                lines.append(f"    - {message[:200]}")

    last_thought: Optional[str] = None
    for step in result.steps:
        if step.kind == "thought":
            last_thought = step.content
    if last_thought:
        lines.append(f"Last thought: {last_thought[:500]}")

    lines.append("=" * 60)
    return "\n".join(lines)


@hook("agent_end")
async def print_summary(context, result: AgentRunResult):
    print(format_summary(result))
