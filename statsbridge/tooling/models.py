"""Result and error types for tool dispatch."""

from typing import Any

from pydantic import BaseModel


class ToolError(BaseModel):
    """Failure value returned by dispatch in place of a tool result."""

    error: str
    kind: str = "ToolActionError"
    field_path: str | None = None
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.error


class DispatchError(Exception):
    """Base class for failures raised while dispatching a tool call."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_tool_error(self) -> ToolError:
        return ToolError(error=self.message, kind=type(self).__name__, details=self.details)


class ToolNotFoundError(DispatchError):
    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name = name


class ToolUnavailableError(DispatchError):
    pass


class ToolArgumentError(DispatchError):
    """Arguments did not satisfy the tool's parameter contract."""

    def __init__(self, message: str, field_path: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.field_path = field_path

    def to_tool_error(self) -> ToolError:
        error = super().to_tool_error()
        error.field_path = self.field_path
        return error


class ToolActionError(DispatchError):
    """Wraps an exception raised by a tool action."""

    def __init__(self, prefix: str, cause: BaseException):
        super().__init__(f"{prefix}: {cause}", {"type": type(cause).__name__})
        self.cause = cause
