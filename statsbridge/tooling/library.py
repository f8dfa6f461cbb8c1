"""Function library: validated dispatch of tool calls with shared context."""

import json
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from statsbridge.tooling.models import (
    DispatchError,
    ToolActionError,
    ToolError,
    ToolNotFoundError,
    ToolUnavailableError,
)
from statsbridge.tooling.registry import REGISTRY, Registry
from statsbridge.tooling.schema import ToolDescriptor

logger = logging.getLogger(__name__)


class ContextObject:
    """Attribute view over a dict context."""

    def __init__(self, data: dict):
        for key, value in data.items():
            setattr(self, key, value)


def render_result(result: Any) -> str:
    """Render a tool result as text for the model."""
    if isinstance(result, str):
        return result
    if isinstance(result, ToolError):
        return result.error
    if isinstance(result, BaseModel):
        return result.model_dump_json(by_alias=True)
    try:
        return json.dumps(result)
    except (TypeError, ValueError):
        return str(result)


class FunctionLibrary:
    """Container for tools with shared context."""

    def __init__(
        self,
        functions: list[Callable] | None = None,
        descriptors: list[ToolDescriptor] | None = None,
        context: Any | None = None,
        context_factory: Callable[[], Any] | None = None,
        registry: Registry | None = None,
    ):
        """
        Initialize library.

        Args:
            functions: Functions decorated with ``@register``
            descriptors: ToolDescriptor objects to use directly
            context: Shared context passed to tools taking ``ctx``
            context_factory: Builds the context; called again by ``reload()``
            registry: Registry to use (defaults to global REGISTRY)
        """
        self.registry = registry or REGISTRY
        self._context_factory = context_factory
        if context_factory is not None:
            context = context_factory()
        self.context = self._wrap_context(context)

        self._descriptors: dict[str, ToolDescriptor] = {}
        if descriptors:
            for descriptor in descriptors:
                self._descriptors[descriptor.name] = descriptor
        elif functions:
            for func in functions:
                if not hasattr(func, "__tool_descriptor__"):
                    raise ValueError(f"Function {func.__name__} must be decorated with @register")
                descriptor = func.__tool_descriptor__
                self._descriptors[descriptor.name] = descriptor
        else:
            for descriptor in self.registry.functions:
                self._descriptors[descriptor.name] = descriptor

    @staticmethod
    def _wrap_context(context: Any) -> Any:
        if context is None:
            return ContextObject({})
        if isinstance(context, dict):
            return ContextObject(context)
        return context

    def reload(self) -> None:
        """Rebuild the shared context from the context factory."""
        if self._context_factory is None:
            logger.warning("reload() called on a library without a context factory")
            return
        self.context = self._wrap_context(self._context_factory())
        logger.info("Tool context reloaded")

    def get(self, name: str) -> ToolDescriptor | None:
        return self._descriptors.get(name)

    def is_available(self, descriptor: ToolDescriptor) -> bool:
        """Evaluate the tool's registration predicate against the current context."""
        try:
            return descriptor.should_register(self.context)
        except Exception:
            logger.exception(f"should_register failed for {descriptor.name}")
            return False

    def _missing_context_attribute(self, descriptor: ToolDescriptor) -> str | None:
        context_type = descriptor.context_type
        if not descriptor.takes_ctx or context_type is None:
            return None
        for attr_name in getattr(context_type, "__annotations__", {}):
            if not hasattr(self.context, attr_name):
                return attr_name
        return None

    def _resolve(self, name: str) -> ToolDescriptor:
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise ToolNotFoundError(name)
        if not self.is_available(descriptor):
            raise ToolUnavailableError(f"Tool '{name}' is not available")
        missing = self._missing_context_attribute(descriptor)
        if missing:
            raise ToolUnavailableError(f"Context missing required attribute: {missing}")
        return descriptor

    async def dispatch(
        self,
        tool_name: str,
        arguments: dict | None,
        on_progress: Callable[[str], None] | None = None,
    ) -> Any:
        """
        Execute a tool call with JSON arguments.

        Failures are returned as a ToolError, never raised.

        Args:
            tool_name: Name of the tool to call
            arguments: Raw JSON arguments from the model
            on_progress: Receives the progress message before the action runs

        Returns:
            The action's result, or ToolError
        """
        logger.info(f"Calling tool: {tool_name} with arguments: {arguments}")

        try:
            descriptor = self._resolve(tool_name)
            call_kwargs = descriptor.validate_and_parse_args(arguments)
        except DispatchError as e:
            logger.error(e.message)
            return e.to_tool_error()

        if on_progress is not None:
            try:
                on_progress(descriptor.format_message(arguments))
            except Exception:
                logger.exception(f"Progress callback failed for {tool_name}")

        try:
            result = await descriptor.invoke(call_kwargs, self.context)
        except Exception as e:
            logger.exception(f"Tool {tool_name} failed")
            return ToolActionError(descriptor.error_prefix, e).to_tool_error()

        logger.info(f"Tool {tool_name} completed successfully")
        return result

    def format_message(self, tool_name: str, arguments: dict | None) -> str:
        """Progress line for a pending call; never raises."""
        descriptor = self._descriptors.get(tool_name)
        if descriptor is None:
            return f"Running {tool_name}"
        return descriptor.format_message(arguments)

    @property
    def function_descriptions(self) -> list[ToolDescriptor]:
        return list(self._descriptors.values())

    def available_tools(self) -> list[ToolDescriptor]:
        return [d for d in self._descriptors.values() if self.is_available(d)]

    def get_schemas(self) -> list[dict]:
        """Get OpenAI-format schemas for the currently available tools."""
        return [descriptor.schema for descriptor in self.available_tools()]

    async def call_with_tool_response(self, name: str, args: dict, id: str) -> dict:
        """Execute a tool call, returning a tool message with the result or error."""
        result = await self.dispatch(name, args)
        if isinstance(result, ToolError):
            content = json.dumps({"error": result.error, "type": result.kind})
        else:
            content = render_result(result)
        return {"role": "tool", "tool_call_id": id, "content": content}
