"""
Action parser for free-form model output.

Recognized format:

    Thought: the repository needs an issue for the docs
    Action: create_issue
    Action Input: {"owner": "octo", "repo": "docs", "title": "Add docs"}

`Action Input:` must follow its own `Action:` line, before any blank line or
the next `Action:` marker. The JSON block runs from there to the first blank
line or the end of the text and may be wrapped in a markdown code fence.
Tool names are not checked here; unknown tools are reported at dispatch.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from .schemas import ParsedAction

logger = logging.getLogger(__name__)

ACTION_PATTERN = re.compile(r"^[ \t]*Action[ \t]*:[ \t]*`?([\w\-.]+)`?[ \t]*$", re.IGNORECASE | re.MULTILINE)
INPUT_PATTERN = re.compile(r"^[ \t]*Action[ \t]+Input[ \t]*:[ \t]*", re.IGNORECASE | re.MULTILINE)
THOUGHT_LABEL = re.compile(r"^\s*Thought\s*:\s*", re.IGNORECASE)
FENCE_PATTERN = re.compile(r"^```[\w-]*[ \t]*\n?")
BLANK_LINE = re.compile(r"\n[ \t]*\n")

_decoder = json.JSONDecoder()


def _input_block(text: str) -> Optional[str]:
    """Return the Action Input block that directly follows an action marker."""
    following = ACTION_PATTERN.search(text)
    if following:
        text = text[: following.start()]

    match = INPUT_PATTERN.search(text)
    if not match or BLANK_LINE.search(text[: match.start()]):
        return None

    rest = text[match.end():]
    fence = FENCE_PATTERN.match(rest.lstrip())
    if fence:
        rest = rest.lstrip()[fence.end():]

    end = BLANK_LINE.search(rest)
    block = rest[: end.start()] if end else rest
    return block.strip()


def _decode_object(block: str) -> Optional[Dict[str, Any]]:
    try:
        value, _ = _decoder.raw_decode(block)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def parse_action(text: str) -> Optional[ParsedAction]:
    """
    Extract the first action from `text`.

    Returns:
        ParsedAction, or None when there is no action marker or its input
        block is missing or not a JSON object
    """
    if not text:
        return None

    marker = ACTION_PATTERN.search(text)
    if not marker:
        return None

    tool_name = marker.group(1)
    block = _input_block(text[marker.end():])
    if block is None:
        logger.debug(f"Action '{tool_name}' has no input block")
        return None

    parameters = _decode_object(block)
    if parameters is None:
        logger.debug(f"Action '{tool_name}' input is not a JSON object: {block[:100]!r}")
        return None

    return ParsedAction(tool_name=tool_name, parameters=parameters)


def extract_thought(text: str) -> str:
    """Text preceding the action marker, without a leading `Thought:` label."""
    marker = ACTION_PATTERN.search(text or "")
    before = text[: marker.start()] if marker else (text or "")
    return THOUGHT_LABEL.sub("", before, count=1).strip()


def parse_tool_call(tool_call: Dict[str, Any]) -> Optional[ParsedAction]:
    """Convert a native `tool_calls` entry from the model backend."""
    function = tool_call.get("function") or {}
    name = function.get("name")
    if not name:
        return None

    arguments = function.get("arguments") or {}
    if isinstance(arguments, str):
        arguments = _decode_object(arguments.strip() or "{}")
    if not isinstance(arguments, dict):
        return None

    return ParsedAction(tool_name=name, parameters=arguments)
