"""Prompt rendering for the reasoning loop."""

import json
from typing import Dict, List, Sequence

from ..base.context import ActionStep, ObservationStep, ReasoningStep, ThoughtStep
from ..base.tool import ToolDescriptor

SYSTEM_INSTRUCTIONS = """You are an assistant that solves the user's request by calling tools.

Work in steps. When you need a tool, answer in exactly this format:

Thought: what you are about to do and why
Action: <tool name>
Action Input: {{"parameter": "value"}}

Action Input must be a single JSON object followed by a blank line.
Use only the tools listed below and fill every required parameter you know.
Missing values will be asked from the user, so do not invent them.

When the request is fully handled, answer without an Action and include one
of these phrases: {phrases}.

AVAILABLE TOOLS:
{catalog}"""


def render_tool(tool: ToolDescriptor) -> str:
    required = ", ".join(tool.required_fields) or "none"
    optional = ", ".join(tool.optional_fields) or "none"
    schema = json.dumps(tool.inputSchema.model_dump(exclude_none=True), sort_keys=True)
    return (
        f"- {tool.name} [{tool.category}]: {tool.description}\n"
        f"  Required: {required}\n"
        f"  Optional: {optional}\n"
        f"  Schema: {schema}"
    )


def render_catalog(tools: Sequence[ToolDescriptor]) -> str:
    if not tools:
        return "(no tools available)"
    return "\n".join(render_tool(tool) for tool in tools)


def render_step(step: ReasoningStep) -> str:
    if isinstance(step, ThoughtStep):
        return f"Thought: {step.content}"
    if isinstance(step, ActionStep):
        return f"Action: {step.tool}\nAction Input: {json.dumps(step.arguments, default=str)}"
    if isinstance(step, ObservationStep):
        status = "success" if step.success else "failed"
        body = step.content if step.success or not step.error else step.error
        return f"Observation ({status}): {body}"
    return str(step)


def build_messages(
    query: str,
    tools: Sequence[ToolDescriptor],
    steps: Sequence[ReasoningStep],
    phrases: Sequence[str],
) -> List[Dict[str, str]]:
    """
    Chat messages for one iteration: the instructions with the full catalog,
    then the request together with the transcript so far.
    """
    system = SYSTEM_INSTRUCTIONS.format(
        phrases=", ".join(f'"{p}"' for p in phrases),
        catalog=render_catalog(tools),
    )

    user = f"Request: {query}"
    if steps:
        transcript = "\n\n".join(render_step(step) for step in steps)
        user += f"\n\nProgress so far:\n{transcript}\n\nContinue with the next step."

    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]
