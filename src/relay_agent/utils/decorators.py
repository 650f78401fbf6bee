"""
Decorators for creating tools and hooks.

This module provides convenient decorators for converting functions
into locally executed tools and marking hooks for lifecycle events.
"""

from typing import Callable, Optional
from ..base.tool import FunctionTool, InputSchema


def tool(
    func: Optional[Callable] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    input_schema: Optional[InputSchema] = None,
) -> FunctionTool:
    """
    Decorator to convert a function into a Tool the server runs itself.

    Usage:
        @tool
        def echo(message: str) -> str:
            '''Echoes back your input.'''
            return message

        @tool(name="custom_name", description="Custom desc")
        def my_func(x: str) -> str:
            return x.upper()

    Args:
        func: Function to wrap (when used without arguments)
        name: Custom tool name (default: function name)
        description: Custom description (default: function docstring)
        input_schema: Custom argument schema (default: from the signature)

    Returns:
        FunctionTool instance wrapping the function
    """

    def decorator(f: Callable) -> FunctionTool:
        return FunctionTool(f, name, description, input_schema)

    if func is None:
        # Called with arguments: @tool(name="something")
        return decorator
    else:
        # Called without arguments: @tool
        return decorator(func)


def hook(event_name: str) -> Callable:
    """
    Decorator to mark a function as a hook for a specific event.

    Usage:
        @hook("agent_end")
        async def on_end(context, result):
            print(result.status)

        agent = ReactAgent(..., hooks=[on_end])

    Args:
        event_name: Name of the event to hook into (e.g., "agent_end")

    Returns:
        Decorated function with hook metadata
    """

    def decorator(func: Callable) -> Callable:
        func._hook_event = event_name
        return func

    return decorator
