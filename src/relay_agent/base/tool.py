"""
Tool system for catalog descriptors and locally executed tools.

This module provides the immutable descriptor the agent reasons over, the
per-tool usage statistics of a run, and the function wrapper the server uses
for tools it executes itself.
"""

from pydantic import BaseModel, Field
from typing import Dict, Any, Callable, Optional, List, Tuple
from abc import ABC, abstractmethod
import inspect
import asyncio
import time


def is_empty_value(value: Any) -> bool:
    """Return True for values that count as "not provided"."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


class FieldSchema(BaseModel):
    """JSON schema fragment for a single tool argument."""

    type: str = Field(default="string", description="JSON schema type")
    description: str = Field(default="", description="Human readable description")
    enum: Optional[List[Any]] = Field(default=None, description="Allowed values")
    items: Optional[Dict[str, Any]] = Field(
        default=None, description="Item schema for array arguments"
    )

    class Config:
        frozen = True


class InputSchema(BaseModel):
    """Object schema describing a tool's arguments."""

    type: str = Field(default="object")
    properties: Dict[str, FieldSchema] = Field(default_factory=dict)
    required: Tuple[str, ...] = Field(default_factory=tuple)

    class Config:
        frozen = True


class ToolDescriptor(BaseModel):
    """A tool as advertised by the catalog. Immutable once retrieved."""

    name: str = Field(description="Tool name")
    description: str = Field(default="", description="Tool description")
    category: str = Field(default="", description="Catalog category")
    inputSchema: InputSchema = Field(
        default_factory=InputSchema, description="Argument schema"
    )

    class Config:
        frozen = True

    @property
    def required_fields(self) -> List[str]:
        return [name for name in self.inputSchema.required]

    @property
    def optional_fields(self) -> List[str]:
        required = set(self.inputSchema.required)
        return [name for name in self.inputSchema.properties if name not in required]

    def field_schema(self, name: str) -> FieldSchema:
        """Schema for an argument, falling back to a plain string field."""
        return self.inputSchema.properties.get(name, FieldSchema())

    def to_wire(self) -> Dict[str, Any]:
        """Shape used in `tools/list` responses."""
        data = self.model_dump(exclude_none=True)
        data["inputSchema"]["required"] = list(self.inputSchema.required)
        return data


class ToolUsageStat(BaseModel):
    """Per-tool outcome counters for one agent run."""

    successes: int = 0
    errors: int = 0
    error_messages: List[str] = Field(default_factory=list)

    def record_success(self) -> None:
        self.successes += 1

    def record_error(self, message: str) -> None:
        self.errors += 1
        self.error_messages.append(message)


class ToolResult(BaseModel):
    """Standardized result from local tool execution."""

    tool_name: str = Field(description="Name of the tool executed")
    success: bool = Field(description="Whether execution succeeded")
    result: Any = Field(description="Tool execution result")
    error: Optional[str] = Field(default=None, description="Error message if failed")
    execution_time: float = Field(description="Execution time in seconds")

    class Config:
        arbitrary_types_allowed = True


class Tool(BaseModel, ABC):
    """
    Abstract base class for tools the server executes itself.
    All tools must implement execute() method.
    """

    name: str = Field(description="Tool name")
    description: str = Field(description="Tool description")
    input_schema: InputSchema = Field(description="Tool parameters schema")

    class Config:
        arbitrary_types_allowed = True

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """Execute the tool with given parameters."""
        pass

    def to_descriptor(self, category: str = "Local") -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            category=category,
            inputSchema=self.input_schema,
        )


_JSON_TYPES = {
    "str": "string",
    "int": "integer",
    "float": "number",
    "bool": "boolean",
    "list": "array",
    "dict": "object",
}


class FunctionTool(Tool):
    """
    Tool that wraps a Python function.
    Handles both sync and async functions automatically.
    """

    func: Callable = Field(description="The wrapped function", exclude=True)

    def __init__(
        self,
        func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
        input_schema: Optional[InputSchema] = None,
    ):
        tool_name = name or func.__name__
        tool_description = description or inspect.getdoc(func) or f"Execute {func.__name__}"

        if input_schema is None:
            input_schema = self._extract_schema(func)

        super().__init__(
            name=tool_name,
            description=tool_description,
            input_schema=input_schema,
            func=func,
        )

    @staticmethod
    def _extract_schema(func: Callable) -> InputSchema:
        """Build an argument schema from the function signature."""
        sig = inspect.signature(func)
        properties: Dict[str, FieldSchema] = {}
        required: List[str] = []

        for param_name, param in sig.parameters.items():
            if param_name.startswith("_"):
                continue

            param_type = "string"
            if param.annotation != inspect.Parameter.empty:
                type_name = getattr(param.annotation, "__name__", str(param.annotation))
                param_type = _JSON_TYPES.get(type_name, "string")

            properties[param_name] = FieldSchema(type=param_type)
            if param.default == inspect.Parameter.empty:
                required.append(param_name)

        return InputSchema(properties=properties, required=tuple(required))

    async def execute(self, **kwargs) -> ToolResult:
        """Execute the wrapped function."""
        start_time = time.time()

        try:
            filtered_kwargs = {
                k: v for k, v in kwargs.items() if not k.startswith("_")
            }

            if asyncio.iscoroutinefunction(self.func):
                result = await self.func(**filtered_kwargs)
            else:
                loop = asyncio.get_running_loop()
                result = await loop.run_in_executor(
                    None, lambda: self.func(**filtered_kwargs)
                )

            return ToolResult(
                tool_name=self.name,
                success=True,
                result=result,
                execution_time=time.time() - start_time,
            )

        except Exception as e:
            return ToolResult(
                tool_name=self.name,
                success=False,
                result=None,
                error=str(e),
                execution_time=time.time() - start_time,
            )
