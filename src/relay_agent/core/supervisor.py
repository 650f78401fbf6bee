"""
Execution supervisor: dispatches resolved tool calls and recovers from failures.

Two failure classes share one attempt counter per logical call:

- transport failures (the channel raised) are retried with the same arguments
  after a fixed backoff;
- parameter errors (the tool's text says an argument is missing) send the
  arguments back through the resolver before the next attempt.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from ..base.tool import ToolDescriptor
from ..errors import TransportError
from .classifier import OutcomeClassifier
from .resolver import ParameterResolver
from .schemas import ExecutionResult, Outcome

logger = logging.getLogger(__name__)


def result_text(result: Dict[str, Any]) -> str:
    """Flatten a `tools/call` result into the text the classifier reads."""
    error = result.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or json.dumps(error))
    if error:
        return str(error)

    parts = []
    for item in result.get("content") or []:
        if isinstance(item, dict) and "text" in item:
            parts.append(str(item["text"]))
        elif item is not None:
            parts.append(json.dumps(item, default=str))
    return "\n".join(parts)


def fields_named_in(tool: ToolDescriptor, text: str) -> List[str]:
    """Schema fields mentioned in an error message."""
    lowered = text.lower()
    return [name for name in tool.inputSchema.properties if name.lower() in lowered]


class ExecutionSupervisor:
    """
    Runs one logical tool call to a conclusion.

    `transport` is anything with `async call_tool(name, arguments) -> dict`,
    normally a connected `StdioTransport`.
    """

    def __init__(
        self,
        transport: Any,
        resolver: ParameterResolver,
        classifier: Optional[OutcomeClassifier] = None,
        max_retries: int = 2,
        backoff: float = 1.0,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.transport = transport
        self.resolver = resolver
        self.classifier = classifier or OutcomeClassifier()
        self.max_retries = max_retries
        self.backoff = backoff

    async def execute(
        self, tool: ToolDescriptor, arguments: Dict[str, Any]
    ) -> ExecutionResult:
        """
        Call `tool` with `arguments`, retrying within a total budget of
        `1 + max_retries` attempts.
        """
        attempts = 0
        last_error = "No attempt made"

        while attempts <= self.max_retries:
            attempts += 1
            budget_left = attempts <= self.max_retries

            try:
                result = await self.transport.call_tool(tool.name, arguments)
            except TransportError as e:
                last_error = f"Transport error: {e}"
                logger.warning(
                    f"{tool.name} attempt {attempts} failed at transport level: {e}"
                )
                if budget_left:
                    await asyncio.sleep(self.backoff)
                    continue
                break

            text = result_text(result)
            outcome = self.classifier.classify(text)
            if result.get("error") or result.get("isError"):
                outcome = Outcome(parameter_error=outcome.parameter_error, error=True)

            if outcome.parameter_error and budget_left:
                last_error = text
                logger.info(f"{tool.name} reported a parameter error: {text[:200]}")

                collected = await self.resolver.resolve(
                    tool, arguments, revisit=fields_named_in(tool, text)
                )
                if collected.user_cancelled:
                    return ExecutionResult(
                        success=False,
                        error=collected.error,
                        attempts=attempts,
                        user_cancelled=True,
                        arguments=arguments,
                    )
                if not collected.success:
                    return ExecutionResult(
                        success=False,
                        error=collected.error,
                        attempts=attempts,
                        arguments=arguments,
                    )
                arguments = collected.arguments
                continue

            if outcome.error or outcome.parameter_error:
                logger.debug(f"{tool.name} returned an error: {text[:200]}")
                return ExecutionResult(
                    success=False,
                    content=text,
                    error=text,
                    attempts=attempts,
                    arguments=arguments,
                )

            return ExecutionResult(
                success=True, content=text, attempts=attempts, arguments=arguments
            )

        logger.error(f"{tool.name} failed after {attempts} attempts: {last_error}")
        return ExecutionResult(
            success=False, error=last_error, attempts=attempts, arguments=arguments
        )
