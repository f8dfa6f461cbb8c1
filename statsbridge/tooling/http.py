"""Builder for tools that proxy a single backend endpoint."""

from collections.abc import Callable
from typing import Any, Literal, Protocol

from pydantic import BaseModel

from statsbridge.tooling.registry import REGISTRY, Registry
from statsbridge.tooling.schema import NoArgs, ToolDescriptor

ResponseFormat = Literal["json", "text"]


class Backend(Protocol):
    async def request(
        self,
        method: str,
        path: str,
        body: dict | None = None,
        response_format: ResponseFormat = "json",
    ) -> Any: ...


class BackendContext(Protocol):
    backend: Backend


def default_request_mapper(args: BaseModel) -> dict | None:
    """Snake_case JSON body from the tool arguments; no body for argument-less tools."""
    if not type(args).model_fields:
        return None
    return args.model_dump(exclude_none=True)


def http_tool(
    name: str,
    path: str,
    *,
    description: str,
    display_name: str | None = None,
    args_model: type[BaseModel] = NoArgs,
    method: str = "POST",
    response_format: ResponseFormat = "json",
    request_mapper: Callable[[BaseModel], dict | None] | None = None,
    response_mapper: Callable[[Any], Any] | None = None,
    error_prefix: str | None = None,
    format_message: Callable[[dict], str] | None = None,
    should_register: Callable[[Any], bool] | None = None,
    registry: Registry | None = None,
) -> ToolDescriptor:
    """Register a tool whose action is one request to the backend.

    Args:
        name: Tool name exposed to the model
        path: Endpoint path, e.g. ``/garmin/steps``
        description: Tool description for the model
        args_model: Arguments model; field names double as the request body keys
        method: HTTP method
        response_format: Decode the response as ``json`` or return raw ``text``
        request_mapper: Builds the request body from validated arguments
        response_mapper: Post-processes the decoded response
        error_prefix: Prefix of the failure message shown to the model

    Returns:
        The registered descriptor
    """
    to_body = request_mapper or default_request_mapper

    async def action(args: BaseModel, *, ctx: BackendContext) -> Any:
        body = to_body(args) if method != "GET" else None
        data = await ctx.backend.request(method, path, body, response_format)
        return response_mapper(data) if response_mapper else data

    action.__name__ = name
    action.__qualname__ = name
    action.__doc__ = description

    descriptor = ToolDescriptor(
        action,
        name=name,
        description=description,
        display_name=display_name,
        args_model=args_model,
        format_message=format_message,
        should_register=should_register,
        error_prefix=error_prefix,
    )
    return (registry or REGISTRY).register(descriptor)
