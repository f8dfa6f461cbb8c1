"""Process-wide tool registry and the ``@register`` decorator."""

import logging
from collections.abc import Callable
from typing import Any

from statsbridge.tooling.schema import ToolDescriptor

logger = logging.getLogger(__name__)


class Registry:
    """Tool descriptors keyed by tool name."""

    def __init__(self):
        self._tools: dict[str, ToolDescriptor] = {}

    def register(self, tool: Callable | ToolDescriptor, **options: Any) -> ToolDescriptor:
        """Register a function or a prebuilt descriptor, replacing any tool of the same name."""
        descriptor = tool if isinstance(tool, ToolDescriptor) else ToolDescriptor(tool, **options)
        if descriptor.name in self._tools:
            logger.info(f"Replacing registered tool: {descriptor.name}")
        self._tools[descriptor.name] = descriptor
        return descriptor

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    @property
    def functions(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


REGISTRY = Registry()


def register(
    name: str | None = None,
    *,
    doc: str | None = None,
    display_name: str | None = None,
    format_message: Callable[[dict], str] | None = None,
    should_register: Callable[[Any], bool] | None = None,
    error_prefix: str | None = None,
    registry: Registry | None = None,
):
    """Decorator registering a tool function.

    The decorated function is returned unchanged apart from the
    ``__tool_descriptor__`` and ``__tool_schema__`` attributes.

    Example:
        @register("readDatabaseFile", error_prefix="Error reading database file")
        async def read_database_file(args: ReadFileArgs, *, ctx: StoreContext) -> str:
            ...
    """

    def decorator(func: Callable) -> Callable:
        descriptor = (registry or REGISTRY).register(
            func,
            name=name,
            description=doc,
            display_name=display_name,
            format_message=format_message,
            should_register=should_register,
            error_prefix=error_prefix,
        )
        func.__tool_descriptor__ = descriptor  # type: ignore[attr-defined]
        func.__tool_schema__ = descriptor.schema  # type: ignore[attr-defined]
        return func

    return decorator
