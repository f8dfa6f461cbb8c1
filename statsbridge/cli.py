import asyncio
import json
import logging
from pathlib import Path

import click
from rich.logging import RichHandler
from rich.table import Table

from statsbridge.config import SettingsStore
from statsbridge.console import Console
from statsbridge.context import create_library
from statsbridge.diffpatch import apply_patch, compute_ops, render_preview
from statsbridge.tooling import FunctionLibrary, ToolError, render_result
from statsbridge.tooling.cli import generate_cli
from statsbridge.tooling.llm import LiteLLMClient, LLMHelper

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


class AppState:
    """Per-invocation state shared by subcommands."""

    def __init__(self, settings: SettingsStore):
        self.settings = settings
        self.console = Console()
        self._library: FunctionLibrary | None = None

    @property
    def library(self) -> FunctionLibrary:
        if self._library is None:
            try:
                self._library = create_library(self.settings)
            except ValueError as e:
                raise click.ClickException(f"Invalid settings in {self.settings.path}: {e}") from e
        return self._library


class ToolCommandGroup(click.Group):
    """Exposes every registered tool as a subcommand."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        state = ctx.find_object(AppState)
        return sorted(d.name for d in state.library.function_descriptions)

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        state = ctx.find_object(AppState)
        descriptor = state.library.get(cmd_name)
        if descriptor is None:
            return None
        return generate_cli(
            descriptor,
            lambda: state.library,
            echo=state.console.out,
            echo_error=state.console.error,
        )


@click.group()
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="STATSBRIDGE_SETTINGS",
    help="Settings file (default: ~/.config/statsbridge/settings.json)",
)
@click.option("-v", "--verbose", is_flag=True, help="Log tool dispatch to stderr")
@click.pass_context
def cli(ctx: click.Context, settings_path: Path | None, verbose: bool):
    """statsbridge: LLM function tools for the local stats backend."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )
    ctx.obj = AppState(SettingsStore(settings_path))


@cli.command("tools")
@click.pass_obj
def list_tools(state: AppState):
    """List registered tools and whether they are currently available."""
    table = Table("Tool", "Name", "Available", "Description")
    library = state.library
    for descriptor in sorted(library.function_descriptions, key=lambda d: d.name):
        available = "yes" if library.is_available(descriptor) else "no"
        table.add_row(descriptor.name, descriptor.display_name, available, descriptor.description)
    state.console.print(table)


@cli.command("schema")
@click.argument("name", required=False)
@click.pass_obj
def show_schema(state: AppState, name: str | None):
    """Print the function schema of one tool, or of all available tools."""
    library = state.library
    if name is None:
        state.console.out(json.dumps(library.get_schemas(), indent=2))
        return
    descriptor = library.get(name)
    if descriptor is None:
        raise click.ClickException(f"Tool '{name}' not found")
    state.console.out(json.dumps(descriptor.schema, indent=2))


@cli.group("call", cls=ToolCommandGroup)
def call_tool():
    """Dispatch a single tool call."""


@cli.command("watch")
@click.argument("name")
@click.option("--json", "json_input", default="{}", help="JSON arguments for the tool")
@click.option("--interval", type=int, help="Seconds between calls (default: refreshInterval setting)")
@click.option("--count", type=int, help="Stop after this many calls")
@click.pass_obj
def watch(state: AppState, name: str, json_input: str, interval: int | None, count: int | None):
    """Call a tool repeatedly, re-reading the settings before every call."""
    try:
        arguments = json.loads(json_input)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--json") from e

    try:
        asyncio.run(_watch(state, name, arguments, interval, count))
    except KeyboardInterrupt:
        state.console.error("Stopped")


async def _watch(state: AppState, name: str, arguments: dict, interval: int | None, count: int | None):
    library = state.library
    calls = 0
    while True:
        try:
            library.reload()
        except ValueError as e:
            state.console.error(f"Could not reload settings, keeping the previous ones: {e}")
        result = await library.dispatch(name, arguments, on_progress=state.console.error)
        if isinstance(result, ToolError):
            state.console.error(result.error)
        else:
            state.console.out(render_result(result))

        calls += 1
        if count is not None and calls >= count:
            return
        await asyncio.sleep(interval if interval is not None else library.context.config.refresh_interval)


@cli.command("diff")
@click.argument("old", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("new", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--preview", is_flag=True, help="Show a per-op dry-run preview instead of JSON")
@click.pass_obj
def diff(state: AppState, old: Path, new: Path, preview: bool):
    """Print the diff tuples turning OLD into NEW, as accepted by patchDatabaseFile."""
    old_text = old.read_text(encoding="utf-8")
    ops = compute_ops(old_text, new.read_text(encoding="utf-8"))
    if preview:
        state.console.out(render_preview(apply_patch(old_text, ops, dry_run=True).preview))
        return
    state.console.out(json.dumps([[int(kind), text] for kind, text in ops]))


@cli.group("config")
def config_group():
    """Show or change the stored settings."""


@config_group.command("show")
@click.pass_obj
def config_show(state: AppState):
    try:
        config = state.settings.load()
    except ValueError as e:
        raise click.ClickException(f"Invalid settings in {state.settings.path}: {e}") from e
    state.console.out(config.model_dump_json(by_alias=True, indent=2))


@config_group.command("set")
@click.option("--api-port", type=int)
@click.option("--api-host")
@click.option("--refresh-interval", type=int, help="Polling interval in seconds")
@click.option("--request-timeout", type=float)
@click.option("--database-root", type=click.Path(file_okay=False, path_type=Path))
@click.option("--kpm-log-path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--strict-patches/--lenient-patches", default=None)
@click.pass_obj
def config_set(state: AppState, **changes):
    """Update settings; only the given options change."""
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        raise click.UsageError("Nothing to change")
    try:
        config = state.settings.update(**changes)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    state.console.out(config.model_dump_json(by_alias=True, indent=2))


@cli.command("chat")
@click.argument("prompt")
@click.option("--model", default=DEFAULT_MODEL, show_default=True, help="LiteLLM model name")
@click.option("--max-rounds", type=int, default=5, show_default=True)
@click.pass_obj
def chat(state: AppState, prompt: str, model: str, max_rounds: int):
    """Ask a model a question it can answer with the tools."""
    helper = LLMHelper(model, state.library, LiteLLMClient())
    with state.console.status("Waiting for the model..."):
        response = asyncio.run(helper.ask(prompt, max_rounds=max_rounds, on_progress=state.console.error))
    state.console.out(LLMHelper.final_answer(response))


def main():
    cli()


if __name__ == "__main__":
    main()
