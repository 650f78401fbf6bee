"""
Heuristic classifiers for tool output and loop completion.

Tools report failures as free text, so outcomes are read with substring
heuristics. Both classifiers are plain objects passed into the supervisor and
the agent and can be replaced by anything with the same methods.
"""

import logging
from typing import Iterable, Optional, Sequence

from ..base.providers import CheckpointProvider
from .schemas import Outcome

logger = logging.getLogger(__name__)

PARAMETER_ERROR_MARKERS = (
    "missing parameter",
    "missing required",
    "required field",
    "required parameter",
)

ERROR_MARKERS = (
    "error",
    "forbidden",
    "not found",
)

COMPLETION_PHRASES = (
    "task complete",
    "query resolved",
    "done",
    "finished",
    "final answer",
    "summary:",
    "in conclusion",
    "successfully completed",
)


def _contains_any(text: str, markers: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in markers)


class OutcomeClassifier:
    """Reads a tool's textual result into an `Outcome`."""

    def __init__(
        self,
        parameter_markers: Sequence[str] = PARAMETER_ERROR_MARKERS,
        error_markers: Sequence[str] = ERROR_MARKERS,
    ):
        self.parameter_markers = tuple(m.lower() for m in parameter_markers)
        self.error_markers = tuple(m.lower() for m in error_markers)

    def classify(self, text: str) -> Outcome:
        text = text or ""
        return Outcome(
            parameter_error=_contains_any(text, self.parameter_markers),
            error=_contains_any(text, self.error_markers),
        )


class CompletionOracle:
    """
    Decides when the reasoning loop is done.

    Two independent signals: a phrase lexicon matched against action-free
    model replies, and an optional checkpoint provider asked after each
    iteration.
    """

    def __init__(
        self,
        checkpoint: Optional[CheckpointProvider] = None,
        phrases: Sequence[str] = COMPLETION_PHRASES,
        prompt: str = "Is the task complete?",
    ):
        self.checkpoint = checkpoint
        self.phrases = tuple(p.lower() for p in phrases)
        self.prompt = prompt

    def matches(self, text: str) -> bool:
        """True when `text` contains a completion phrase (case-insensitive)."""
        return _contains_any(text or "", self.phrases)

    async def confirm(self) -> bool:
        """
        Ask the checkpoint provider. Without one the answer is always no.

        Raises:
            UserCancelled: propagated from the provider
        """
        if self.checkpoint is None:
            return False
        answer = await self.checkpoint.confirm(self.prompt)
        logger.debug(f"Checkpoint answered {answer!r}")
        return bool(answer)
