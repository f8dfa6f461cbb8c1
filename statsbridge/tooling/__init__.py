"""Tool registry and dispatch for LLM function tools."""

from statsbridge.tooling.http import http_tool
from statsbridge.tooling.library import FunctionLibrary, render_result
from statsbridge.tooling.models import (
    DispatchError,
    ToolActionError,
    ToolArgumentError,
    ToolError,
    ToolNotFoundError,
    ToolUnavailableError,
)
from statsbridge.tooling.registry import REGISTRY, Registry, register
from statsbridge.tooling.schema import NoArgs, ToolArgs, ToolDescriptor

__all__ = [
    "DispatchError",
    "FunctionLibrary",
    "NoArgs",
    "REGISTRY",
    "Registry",
    "ToolActionError",
    "ToolArgs",
    "ToolArgumentError",
    "ToolDescriptor",
    "ToolError",
    "ToolNotFoundError",
    "ToolUnavailableError",
    "http_tool",
    "register",
    "render_result",
]
