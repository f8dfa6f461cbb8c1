"""CLI generation from tool argument models."""

import asyncio
import json
import types
from collections.abc import Callable
from typing import Any, Union, get_args, get_origin

import click
from pydantic import BaseModel

from statsbridge.tooling.library import FunctionLibrary, render_result
from statsbridge.tooling.models import ToolError
from statsbridge.tooling.schema import ToolDescriptor


class CliOption:
    """Represents a CLI option configuration."""

    def __init__(
        self,
        name: str,
        param_name: str,
        type_annotation: Any,
        help_text: str,
        is_flag: bool = False,
        parse_json: bool = False,
        arg_key: str | None = None,
    ):
        self.name = name
        self.param_name = param_name
        # Key of the raw argument dict, i.e. the name the model sees
        self.arg_key = arg_key or param_name
        self.type_annotation = type_annotation
        self.help_text = help_text
        self.is_flag = is_flag
        self.parse_json = parse_json


def unwrap_optional(annotation: Any) -> Any:
    """``X | None`` -> ``X``; other annotations are returned unchanged."""
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def is_structured(annotation: Any) -> bool:
    """Whether values of this type are passed on the command line as JSON."""
    origin = get_origin(annotation)
    if origin in (list, tuple, dict, set):
        return True
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def create_click_option(option: CliOption):
    """Create a Click option decorator from a CliOption configuration."""
    if option.is_flag:
        return click.option(option.name, option.param_name, is_flag=True, default=None, help=option.help_text)
    if option.parse_json:
        return click.option(option.name, option.param_name, help=f"{option.help_text} (JSON)")

    click_type: Any = str
    if option.type_annotation is int:
        click_type = int
    elif option.type_annotation is float:
        click_type = float
    return click.option(option.name, option.param_name, type=click_type, help=option.help_text)


def collect_options(descriptor: ToolDescriptor) -> list[CliOption]:
    """Collect CLI options from the tool's argument model."""
    options = []

    for field_name, field_info in descriptor.args_model.model_fields.items():
        annotation = unwrap_optional(field_info.annotation)
        options.append(
            CliOption(
                name=f"--{field_name.replace('_', '-')}",
                param_name=field_name,
                type_annotation=annotation,
                help_text=field_info.description or f"Value for {field_name}",
                is_flag=annotation is bool,
                parse_json=is_structured(annotation),
                arg_key=field_info.alias or field_name,
            )
        )

    return options


def parse_cli_arguments(kwargs: dict[str, Any], options: list[CliOption]) -> dict[str, Any]:
    """Turn parsed click values into raw tool arguments, keyed by alias."""
    args_dict = {}
    for option in options:
        value = kwargs.get(option.param_name)
        if value is None:
            continue
        if option.parse_json:
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise click.BadParameter(f"Invalid JSON: {e}", param_hint=option.name) from e
        args_dict[option.arg_key] = value
    return args_dict


def run_tool(
    library: FunctionLibrary,
    name: str,
    arguments: dict,
    on_progress: Callable[[str], None] | None = None,
) -> Any:
    return asyncio.run(library.dispatch(name, arguments, on_progress=on_progress))


def generate_cli(
    descriptor: ToolDescriptor,
    get_library: Callable[[], FunctionLibrary],
    echo: Callable[[str], None] = click.echo,
    echo_error: Callable[[str], None] = lambda message: click.echo(message, err=True),
) -> click.Command:
    """Generate a Click command that dispatches one tool.

    Args:
        descriptor: The tool to expose
        get_library: Returns the library to dispatch through, at invocation time
        echo: Output for results
        echo_error: Output for progress lines and failures
    """
    options = collect_options(descriptor)

    @click.command(name=descriptor.name, help=descriptor.description)
    @click.option("--json", "json_input", help="JSON input for all arguments")
    def cli(json_input: str | None, **kwargs):
        if json_input:
            try:
                args_dict = json.loads(json_input)
            except json.JSONDecodeError as e:
                raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--json") from e
        else:
            args_dict = parse_cli_arguments(kwargs, options)

        result = run_tool(get_library(), descriptor.name, args_dict, on_progress=echo_error)

        if isinstance(result, ToolError):
            echo_error(result.error)
            click.get_current_context().exit(1)
        echo(render_result(result))

    for option in options:
        cli = create_click_option(option)(cli)

    return cli
