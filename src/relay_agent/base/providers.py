"""
Provider capabilities the agent consults for human (or scripted) input.

Providers are decoupled from any interaction medium: the console versions live
in `relay_agent.console`, tests pass scripted ones. Raising `UserCancelled`
from any method aborts the whole run.
"""

from typing import Any, Protocol, runtime_checkable

from .tool import FieldSchema


@runtime_checkable
class FieldProvider(Protocol):
    """Supplies a value for a tool argument the model left out."""

    async def resolve_field(self, name: str, schema: FieldSchema, required: bool) -> Any:
        """
        Return the value for `name`. An empty answer (None or blank) means
        "skip" for optional fields and "ask again" for required ones.

        Raises:
            UserCancelled: when the user aborts.
        """
        ...


@runtime_checkable
class CheckpointProvider(Protocol):
    """Answers yes/no checkpoints such as "is the task complete?"."""

    async def confirm(self, prompt: str) -> bool:
        """
        Raises:
            UserCancelled: when the user aborts.
        """
        ...
