import asyncio
from collections import deque
from pathlib import Path
from typing import Protocol

from pydantic import Field

from statsbridge.config import ProxyConfig
from statsbridge.tooling import ToolArgs, http_tool, register


class KpmLogArgs(ToolArgs):
    max_lines: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of lines to read from the end of the file. Returns all lines if not specified.",
    )


def _format_kpm_message(args: dict) -> str:
    max_lines = args.get("maxLines")
    return f"Reading KPM logs{f' (last {max_lines} lines)' if max_lines else ''}"


read_kpm_logs = http_tool(
    "readKpmLogs",
    "/read-logs",
    display_name="Read KPM Logs",
    description=(
        "Read the contents of the KPM logs file (~/.kpm_log.csv). "
        "Use this when you need to access keyboard activity statistics."
    ),
    args_model=KpmLogArgs,
    response_format="text",
    error_prefix="Error reading KPM logs",
    format_message=_format_kpm_message,
)


def _read_tail(path: Path, max_lines: int | None) -> str:
    with open(path, encoding="utf-8") as f:
        if max_lines is None:
            return f.read()
        return "".join(deque(f, maxlen=max_lines))


class KpmFileContext(Protocol):
    config: ProxyConfig


def _kpm_log_exists(ctx: KpmFileContext) -> bool:
    return ctx.config.resolved_kpm_log_path().is_file()


@register(
    "readKpmLogFile",
    display_name="Read KPM Log File",
    format_message=_format_kpm_message,
    should_register=_kpm_log_exists,
    error_prefix="Error reading KPM log file",
)
async def read_kpm_log_file(args: KpmLogArgs, *, ctx: KpmFileContext) -> str:
    """Read the KPM logs file directly from disk, without the backend.

    Only offered when the configured log file exists.
    """
    return await asyncio.to_thread(_read_tail, ctx.config.resolved_kpm_log_path(), args.max_lines)
