"""
Model backends for the reasoning loop.

The loop only needs `complete(messages, tools=None) -> ModelReply`. Two
implementations are provided: any OpenAI-style chat-completions endpoint over
aiohttp, and the Opper platform through its SDK.
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import aiohttp
from opperai import Opper
from pydantic import BaseModel, Field

from .errors import ConfigurationError, ModelBackendError

logger = logging.getLogger(__name__)


class ModelReply(BaseModel):
    """The first choice of a completion."""

    content: str = Field(default="", description="Reply text")
    tool_calls: List[Dict[str, Any]] = Field(
        default_factory=list, description="Native tool calls, if the backend made any"
    )


@runtime_checkable
class ModelBackend(Protocol):
    async def complete(
        self,
        messages: List[Dict[str, str]],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ModelReply: ...


def tools_to_functions(descriptors: List[Any]) -> List[Dict[str, Any]]:
    """Catalog descriptors in the chat-completions `tools` shape."""
    functions = []
    for descriptor in descriptors:
        schema = descriptor.inputSchema.model_dump(exclude_none=True)
        schema["required"] = list(descriptor.inputSchema.required)
        functions.append(
            {
                "type": "function",
                "function": {
                    "name": descriptor.name,
                    "description": descriptor.description,
                    "parameters": schema,
                },
            }
        )
    return functions


class ChatCompletionsBackend:
    """Client for a `/chat/completions` endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: Optional[str] = None,
        max_tokens: int = 256,
        timeout: Optional[float] = None,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        if not base_url:
            raise ConfigurationError("base_url is required for the chat backend")
        self.url = base_url.rstrip("/") + "/chat/completions"
        self.model = model
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._session = http_session
        self._owns_session = http_session is None

    def _get_http(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def complete(
        self,
        messages: List[Dict[str, str]],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ModelReply:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with self._get_http().post(
                self.url, json=payload, headers=headers
            ) as response:
                body = await response.text()
                if response.status != 200:
                    raise ModelBackendError(
                        f"Model backend returned HTTP {response.status}: {body[:200]}"
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ModelBackendError(f"Model backend request failed: {e}") from e

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ModelBackendError(f"Model backend returned invalid JSON: {e}") from e

        choices = data.get("choices") or []
        if not choices:
            raise ModelBackendError("No response")

        message = choices[0].get("message") or {}
        return ModelReply(
            content=message.get("content") or "",
            tool_calls=message.get("tool_calls") or [],
        )


class OpperBackend:
    """Completions through the Opper SDK (`call_async`)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        opper: Optional[Opper] = None,
        name: str = "relay_agent_step",
    ):
        if opper is None:
            api_key = api_key or os.getenv("OPPER_API_KEY")
            if not api_key:
                raise ConfigurationError(
                    "OPPER_API_KEY not found in environment or parameters"
                )
            opper = Opper(http_bearer=api_key)
        self.opper = opper
        self.model = model
        self.name = name

    async def complete(
        self,
        messages: List[Dict[str, str]],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ModelReply:
        # Opper has no native tool calls here; the catalog is already in the prompt
        instructions = "\n\n".join(
            m["content"] for m in messages if m.get("role") == "system"
        )
        conversation = [m for m in messages if m.get("role") != "system"]

        kwargs: Dict[str, Any] = {
            "name": self.name,
            "instructions": instructions,
            "input": {"messages": conversation},
        }
        if self.model:
            kwargs["model"] = self.model

        try:
            response = await self.opper.call_async(**kwargs)
        except Exception as e:
            raise ModelBackendError(f"Opper call failed: {e}") from e

        if response is None:
            raise ModelBackendError("No response")

        content = response.message
        if content is None and getattr(response, "json_payload", None) is not None:
            content = json.dumps(response.json_payload)
        if content is None:
            raise ModelBackendError("No response")

        return ModelReply(content=str(content))
