"""
Parameter resolution for tool calls.

Completes the argument set the model produced against the tool's schema,
asking a field provider for whatever is missing. The whole resolution is
retried (up to `max_retries` extra passes) when a required answer comes back
empty or the collected set fails validation.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..base.providers import FieldProvider
from ..base.tool import FieldSchema, ToolDescriptor, is_empty_value
from ..errors import UserCancelled
from .schemas import ParameterCollectionResult

logger = logging.getLogger(__name__)

_TRUE = {"true", "yes", "y", "1"}
_FALSE = {"false", "no", "n", "0"}
_INTEGER = re.compile(r"^[+-]?\d+$")


def coerce_value(value: Any, schema: FieldSchema) -> Any:
    """
    Convert a typed-in answer to the schema's JSON type.

    Raises:
        ValueError: the answer cannot be read as that type
    """
    if not isinstance(value, str):
        return value

    text = value.strip()
    if schema.type == "integer":
        return int(text)
    if schema.type == "number":
        return int(text) if _INTEGER.match(text) else float(text)
    if schema.type == "boolean":
        if text.lower() in _TRUE:
            return True
        if text.lower() in _FALSE:
            return False
        raise ValueError(f"expected yes/no, got {text!r}")
    if schema.type == "array":
        if text.startswith("["):
            parsed = json.loads(text)
            if not isinstance(parsed, list):
                raise ValueError("expected a JSON array")
            return parsed
        return [part.strip() for part in text.split(",") if part.strip()]
    if schema.type == "object":
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError("expected a JSON object")
        return parsed
    return value


class ParameterResolver:
    """Fills in and validates a tool's arguments."""

    def __init__(self, provider: Optional[FieldProvider] = None, max_retries: int = 3):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.provider = provider
        self.max_retries = max_retries

    @staticmethod
    def find_missing(
        tool: ToolDescriptor,
        arguments: Dict[str, Any],
        revisit: Iterable[str] = (),
    ) -> Tuple[List[str], List[str]]:
        """Split absent or empty schema fields into (required, optional)."""
        revisit = set(revisit)
        missing = [
            name
            for name in tool.inputSchema.properties
            if name in revisit or is_empty_value(arguments.get(name))
        ]
        # Required fields without a declared property still count
        missing += [
            name
            for name in tool.required_fields
            if name not in tool.inputSchema.properties
            and (name in revisit or is_empty_value(arguments.get(name)))
        ]

        required = set(tool.required_fields)
        return (
            [name for name in missing if name in required],
            [name for name in missing if name not in required],
        )

    @staticmethod
    def validate(tool: ToolDescriptor, arguments: Dict[str, Any]) -> Dict[str, str]:
        """Return `{field: problem}` for every violated constraint."""
        problems: Dict[str, str] = {}

        for name in tool.required_fields:
            if is_empty_value(arguments.get(name)):
                problems[name] = f"Missing required parameter '{name}'"

        for name, schema in tool.inputSchema.properties.items():
            value = arguments.get(name)
            if not schema.enum or is_empty_value(value):
                continue
            values = value if isinstance(value, list) else [value]
            invalid = [v for v in values if v not in schema.enum]
            if invalid:
                allowed = ", ".join(str(v) for v in schema.enum)
                problems[name] = (
                    f"Invalid value {invalid[0]!r} for '{name}' (allowed: {allowed})"
                )

        return problems

    async def resolve(
        self,
        tool: ToolDescriptor,
        arguments: Optional[Dict[str, Any]],
        revisit: Iterable[str] = (),
    ) -> ParameterCollectionResult:
        """
        Complete `arguments` for `tool`.

        Args:
            tool: Descriptor whose schema drives the collection
            arguments: Candidate arguments (typically from the model)
            revisit: Fields to ask for again even if present

        Returns:
            Success with a complete argument set, `user_cancelled=True`, or a
            failure after the retry ceiling. A set that is already complete
            and valid is returned unchanged.
        """
        arguments = arguments if arguments is not None else {}
        revisit = [name for name in revisit if name in tool.inputSchema.properties]

        missing_required, missing_optional = self.find_missing(tool, arguments, revisit)
        problems = self.validate(tool, arguments)
        if not missing_required and not missing_optional and not problems:
            return ParameterCollectionResult.ok(arguments)

        if self.provider is None:
            if not missing_required and not problems:
                # Optional fields can only be skipped without a provider
                return ParameterCollectionResult.ok(arguments)
            detail = "; ".join(problems.values()) or (
                f"Missing required parameter(s): {', '.join(missing_required)}"
            )
            return ParameterCollectionResult.failed(
                f"{detail} for '{tool.name}' and no field provider is available"
            )

        logger.info(
            f"Resolving parameters for {tool.name}: "
            f"required={missing_required} optional={missing_optional}"
        )

        working = {k: v for k, v in arguments.items() if k not in revisit}
        asked_optional: set = set()
        last_error = ""

        for attempt in range(self.max_retries + 1):
            if attempt:
                logger.info(
                    f"Retrying parameter collection for {tool.name} "
                    f"({attempt}/{self.max_retries}): {last_error}"
                )

            # Invalid values are dropped and asked for again, optional ones included
            for name in self.validate(tool, working):
                working.pop(name, None)
                asked_optional.discard(name)
            missing_required, missing_optional = self.find_missing(tool, working)

            try:
                complete, last_error = await self._collect(
                    tool, working, missing_required, missing_optional, asked_optional
                )
            except UserCancelled:
                logger.info(f"Parameter collection for {tool.name} cancelled by user")
                return ParameterCollectionResult.cancelled()

            if not complete:
                continue

            problems = self.validate(tool, working)
            if not problems:
                return ParameterCollectionResult.ok(working)
            last_error = "; ".join(problems.values())

        return ParameterCollectionResult.failed(
            f"Could not collect valid parameters for '{tool.name}' after "
            f"{self.max_retries + 1} attempts: {last_error}"
        )

    async def _collect(
        self,
        tool: ToolDescriptor,
        working: Dict[str, Any],
        missing_required: List[str],
        missing_optional: List[str],
        asked_optional: set,
    ) -> Tuple[bool, str]:
        """One pass over the missing fields. Returns (complete, error)."""
        for name in missing_required:
            value, error = await self._ask(tool, name, required=True)
            if error:
                return False, error
            working[name] = value

        for name in missing_optional:
            if name in asked_optional:
                continue
            asked_optional.add(name)
            value, error = await self._ask(tool, name, required=False)
            if error:
                logger.debug(f"Skipping optional parameter '{name}': {error}")
                continue
            working[name] = value

        return True, ""

    async def _ask(self, tool: ToolDescriptor, name: str, required: bool) -> Tuple[Any, str]:
        schema = tool.field_schema(name)
        answer = await self.provider.resolve_field(name, schema, required)

        if is_empty_value(answer):
            return None, f"Required parameter '{name}' was left empty"

        try:
            return coerce_value(answer, schema), ""
        except (ValueError, json.JSONDecodeError) as e:
            return None, f"Invalid value for '{name}' ({schema.type}): {e}"
