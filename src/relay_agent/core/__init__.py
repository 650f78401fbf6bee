"""
Core implementation of relay-agent.

This module contains the reasoning loop and the collaborators it drives:
action parsing, parameter resolution, supervised execution and completion
detection.
"""

from .agent import ReactAgent
from .classifier import CompletionOracle, OutcomeClassifier
from .parser import parse_action, parse_tool_call, extract_thought
from .resolver import ParameterResolver
from .supervisor import ExecutionSupervisor
from .schemas import (
    ParsedAction,
    ParameterCollectionResult,
    Outcome,
    ExecutionResult,
    RunStatus,
    AgentRunResult,
)

__all__ = [
    "ReactAgent",
    "CompletionOracle",
    "OutcomeClassifier",
    "parse_action",
    "parse_tool_call",
    "extract_thought",
    "ParameterResolver",
    "ExecutionSupervisor",
    "ParsedAction",
    "ParameterCollectionResult",
    "Outcome",
    "ExecutionResult",
    "RunStatus",
    "AgentRunResult",
]
