from typing import Annotated, Any, Literal, Protocol

from pydantic import BeforeValidator, Field

from statsbridge.config import ProxyConfig
from statsbridge.diffpatch import PatchResult, apply_patch
from statsbridge.store import DocumentStore
from statsbridge.tooling import register


class StoreContext(Protocol):
    store: DocumentStore


class PatchContext(Protocol):
    store: DocumentStore
    config: ProxyConfig


@register(
    "listDatabaseFiles",
    display_name="List Database Files",
    format_message=lambda args: "Listing database files",
    error_prefix="Error listing database files",
)
async def list_database_files(*, ctx: StoreContext) -> Any:
    """List all files in the database directory so that you can find out what to access."""
    return await ctx.store.list_files()


@register(
    "readDatabaseFile",
    display_name="Read Database File",
    format_message=lambda args: f"Reading database file: {args['filename']}",
    error_prefix="Error reading database file",
)
async def read_database_file(filename: str, *, ctx: StoreContext) -> str:
    """Read a file from the database directory. Use the 'list database files' function to get a list of available files.

    Args:
        filename: Name of the file to read (must be within the database directory)
    """
    return await ctx.store.read(filename)


@register(
    "createDatabaseFile",
    display_name="Create Database File",
    format_message=lambda args: f"Creating database file: {args['filename']}",
    error_prefix="Error creating database file",
)
async def create_database_file(filename: str, content: str, *, ctx: StoreContext) -> Any:
    """Create a new file in the database directory. Can only create files within existing directories.

    Args:
        filename: Name for the new file (must be within the database and parent directory must exist)
        content: Content to write to the file
    """
    return await ctx.store.create(filename, content)


def _reject_bool_kind(kind: Any) -> Any:
    # JSON true/false would otherwise match the 1 and 0 literals
    if isinstance(kind, bool):
        raise ValueError("diff kind must be -1, 0 or 1, not a boolean")
    return kind


DiffKindLiteral = Annotated[Literal[-1, 0, 1], BeforeValidator(_reject_bool_kind)]
DiffTuple = tuple[DiffKindLiteral, str]


def _format_patch_message(args: dict) -> str:
    return f"{'Dry run: ' if args.get('dryRun') else ''}Patching database file: {args['filename']}"


@register(
    "patchDatabaseFile",
    display_name="Patch Database File",
    format_message=_format_patch_message,
    error_prefix="Error patching database file",
)
async def patch_database_file(
    filename: str,
    diff_content: Annotated[list[DiffTuple], Field(min_length=1)],
    dry_run: bool = False,
    *,
    ctx: PatchContext,
) -> PatchResult:
    """Apply patches to a file using diff-match-patch style diff tuples.

    Args:
        filename: Name of the database file to patch (e.g. 'data.txt')
        diff_content: Array of diff tuples in format [[-1, "text to remove"], [1, "text to add"], [0, "unchanged text"]] where -1 indicates removal, 1 indicates addition, and 0 indicates unchanged text. The tuples must cover the whole file in order.
        dry_run: If true, shows what changes would be made without applying them
    """
    document = await ctx.store.read(filename)
    result = apply_patch(document, diff_content, dry_run=dry_run, strict=ctx.config.strict_patches)
    if dry_run:
        return result

    await ctx.store.commit_patch(filename, diff_content, result.result_document)
    return result.model_copy(update={"applied": True})
