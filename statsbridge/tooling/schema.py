"""Tool descriptors and JSON schema generation."""

import inspect
import json
import logging
from collections.abc import Callable
from typing import Any, get_type_hints

from pydantic import BaseModel, ConfigDict, ValidationError, create_model
from pydantic.alias_generators import to_camel, to_pascal

from statsbridge.tooling.docstring import enhance_schema_with_docs
from statsbridge.tooling.models import ToolArgumentError

logger = logging.getLogger(__name__)

ARGS_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ToolArgs(BaseModel):
    """Base model for tool arguments.

    Fields are declared in snake_case and exposed to the model in camelCase,
    so ``model_dump()`` yields the backend's field names directly.
    """

    model_config = ARGS_CONFIG


class NoArgs(ToolArgs):
    """Arguments model for tools without parameters."""


def _field_path(loc: tuple) -> str:
    return ".".join(str(part) for part in loc)


class ToolDescriptor:
    """Everything the dispatch layer needs to know about one tool."""

    function: Callable

    def __init__(
        self,
        func: Callable,
        *,
        name: str | None = None,
        description: str | None = None,
        display_name: str | None = None,
        args_model: type[BaseModel] | None = None,
        format_message: Callable[[dict], str] | None = None,
        should_register: Callable[[Any], bool] | None = None,
        error_prefix: str | None = None,
    ):
        """Build a descriptor from a tool function.

        Args:
            func: The action; sync or async, optionally taking ``ctx``
            name: Tool name exposed to the model (defaults to the function name)
            description: Description override (defaults to the docstring summary)
            display_name: Human readable name
            args_model: Arguments model; derived from the signature when omitted
            format_message: Renders the in-progress status line from raw arguments
            should_register: Predicate on the library context gating availability
            error_prefix: Prefix of the message reported when the action fails
        """
        self.function = func
        self.name = name or func.__name__
        self.display_name = display_name or self.name
        self.error_prefix = error_prefix or f"Error running {self.name}"
        self._format_message = format_message
        self._should_register = should_register

        sig = inspect.signature(func)
        self.takes_ctx = "ctx" in sig.parameters
        self.context_type: type | None = None
        if self.takes_ctx:
            try:
                self.context_type = get_type_hints(func).get("ctx")
            except (NameError, AttributeError):
                self.context_type = None

        self.is_async = inspect.iscoroutinefunction(func)

        # Whether the function receives the validated model as its single argument
        self._model_param: str | None = None
        if args_model is not None:
            self.args_model = args_model
            params = [p for p in sig.parameters if p != "ctx"]
            self._model_param = params[0] if len(params) == 1 else None
        else:
            self.args_model = self._create_args_model(func)

        self.json_schema = self.args_model.model_json_schema(by_alias=True)
        self.schema = generate_tool_schema(self, description)

    def _create_args_model(self, func: Callable) -> type[BaseModel]:
        sig = inspect.signature(func)
        hints = get_type_hints(func, include_extras=True)
        params = {name: param for name, param in sig.parameters.items() if name != "ctx"}

        if len(params) == 1:
            param_name = next(iter(params))
            param_type = hints.get(param_name, Any)
            if inspect.isclass(param_type) and issubclass(param_type, BaseModel):
                self._model_param = param_name
                return param_type

        field_definitions: dict[str, Any] = {}
        for param_name, param in params.items():
            param_type = hints.get(param_name, Any)
            if param.default is not inspect.Parameter.empty:
                field_definitions[param_name] = (param_type, param.default)
            else:
                field_definitions[param_name] = (param_type, ...)

        model_name = f"{to_pascal(func.__name__)}Args"
        return create_model(model_name, __config__=ARGS_CONFIG, **field_definitions)

    @property
    def description(self) -> str:
        return self.schema["function"]["description"]

    def validate_and_parse_args(self, raw_args: dict | None) -> dict[str, Any]:
        """Validate raw JSON arguments and return keyword arguments for the action.

        Validation runs in strict JSON mode: declared types must match exactly,
        enumerations and patterns are enforced.

        Raises:
            ToolArgumentError: with the dotted path of the first offending field
        """
        if raw_args is None:
            raw_args = {}
        if not isinstance(raw_args, dict):
            raise ToolArgumentError(f"Arguments must be an object, got {type(raw_args).__name__}")

        try:
            payload = json.dumps(raw_args)
        except (TypeError, ValueError) as e:
            raise ToolArgumentError(f"Arguments are not JSON serializable: {e}") from e

        try:
            model = self.args_model.model_validate_json(payload, strict=True)
        except ValidationError as e:
            first = e.errors()[0]
            path = _field_path(first["loc"]) or None
            raise ToolArgumentError(
                f"Invalid arguments: {path}: {first['msg']}",
                field_path=path,
                details={"validation_errors": e.errors(include_url=False, include_input=False)},
            ) from e

        if self._model_param:
            return {self._model_param: model}
        return {field: getattr(model, field) for field in type(model).model_fields}

    async def invoke(self, call_kwargs: dict[str, Any], context: Any = None) -> Any:
        """Run the action with already validated arguments."""
        if self.takes_ctx:
            result = self.function(**call_kwargs, ctx=context)
        else:
            result = self.function(**call_kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    def should_register(self, context: Any = None) -> bool:
        if self._should_register is None:
            return True
        return bool(self._should_register(context))

    def format_message(self, raw_args: dict | None) -> str:
        """Render the progress line; never raises."""
        if self._format_message is None:
            return f"Running {self.name}"
        try:
            return self._format_message(raw_args or {})
        except Exception:
            logger.debug("format_message failed for %s", self.name, exc_info=True)
            return f"Running {self.name}"

    def __repr__(self) -> str:
        return f"ToolDescriptor(name={self.name!r})"


def generate_tool_schema(descriptor: ToolDescriptor, doc_override: str | None = None) -> dict:
    """Generate the OpenAI-compatible function schema for a descriptor."""
    schema = {
        "type": "function",
        "function": {
            "name": descriptor.name,
            "description": (doc_override or "").strip(),
            "parameters": descriptor.json_schema,
        },
    }

    schema = enhance_schema_with_docs(schema, descriptor.function)
    if not schema["function"]["description"]:
        schema["function"]["description"] = f"Function {descriptor.name}"

    return schema
