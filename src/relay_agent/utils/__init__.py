from .decorators import tool, hook

__all__ = ["tool", "hook"]
