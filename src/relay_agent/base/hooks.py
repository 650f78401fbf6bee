"""
Lifecycle hooks for agent runs.

Hooks are plain async (or sync) callables registered per event. They receive
the run context as first argument plus event-specific keyword arguments. A
failing hook is logged and never interrupts the run.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class HookEvents:
    """Names of the events an agent emits."""

    AGENT_START = "agent_start"
    AGENT_END = "agent_end"
    AGENT_ERROR = "agent_error"
    LOOP_START = "loop_start"
    LOOP_END = "loop_end"
    LLM_CALL = "llm_call"
    LLM_RESPONSE = "llm_response"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"

    @classmethod
    def all(cls) -> List[str]:
        return [
            value
            for key, value in vars(cls).items()
            if key.isupper() and isinstance(value, str)
        ]


class HookManager:
    """Registry and dispatcher for lifecycle hooks."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._hooks: Dict[str, List[Callable]] = {}

    def register(self, event: str, func: Callable) -> None:
        if event not in HookEvents.all():
            raise ValueError(f"Unknown hook event '{event}'")
        self._hooks.setdefault(event, []).append(func)

    def has_hooks(self, event: str) -> bool:
        return bool(self._hooks.get(event))

    async def trigger(self, event: str, context: Any, **kwargs: Any) -> None:
        """Call every hook registered for `event`."""
        for hook_func in self._hooks.get(event, []):
            try:
                # Pass only the keyword arguments the hook declares
                sig = inspect.signature(hook_func)
                accepts_any = any(
                    p.kind == inspect.Parameter.VAR_KEYWORD
                    for p in sig.parameters.values()
                )
                call_kwargs = (
                    kwargs
                    if accepts_any
                    else {k: v for k, v in kwargs.items() if k in sig.parameters}
                )
                result = hook_func(context, **call_kwargs)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Hook error in {event} ({hook_func.__name__}): {e}")
                if self.verbose:
                    print(f"⚠️  Hook error in {event}: {e}")
