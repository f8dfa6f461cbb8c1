"""Diff-patch engine for character-level edit scripts.

An edit script is an ordered list of ``(kind, text)`` pairs in the
diff-match-patch tuple format: ``-1`` deletes ``text``, ``0`` keeps it and
``1`` inserts it. Concatenating the EQUAL and DELETE texts reconstructs the
base document; concatenating EQUAL and INSERT texts yields the result.

The engine is pure: it never reads or writes storage and keeps no state
between calls. Persisting a result is the caller's job.
"""

from collections.abc import Iterable, Sequence
from difflib import SequenceMatcher
from enum import IntEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DiffKind(IntEnum):
    DELETE = -1
    EQUAL = 0
    INSERT = 1


class DiffOp(NamedTuple):
    kind: DiffKind
    text: str


class PatchError(ValueError):
    """Base class for edit script failures."""


class PatchValidationError(PatchError):
    """The edit script is malformed."""


class PatchMismatchError(PatchError):
    """An EQUAL or DELETE op does not match the base document."""

    def __init__(self, index: int, offset: int, expected: str, found: str):
        super().__init__(
            f"Op {index} does not match the document at offset {offset}: "
            f"expected {expected!r}, found {found!r}"
        )
        self.index = index
        self.offset = offset
        self.expected = expected
        self.found = found


class PatchIncompleteError(PatchError):
    """The edit script stops before the end of the base document."""

    def __init__(self, offset: int, remaining: int):
        super().__init__(
            f"Edit script ends at offset {offset} with {remaining} character(s) of the document uncovered"
        )
        self.offset = offset
        self.remaining = remaining


_MODEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DiffSummaryLine(BaseModel):
    """One op of a dry-run preview."""

    model_config = _MODEL_CONFIG

    kind: DiffKind
    text: str
    context_offset: int = Field(description="Offset into the base document where the op applies")


class PatchResult(BaseModel):
    """Outcome of applying an edit script."""

    model_config = _MODEL_CONFIG

    applied: bool = Field(default=False, description="Whether the result was persisted")
    result_document: str = Field(description="The patched document, or the would-be document for a dry run")
    preview: list[DiffSummaryLine] | None = Field(default=None, description="Per-op preview for dry runs")


def validate_ops(ops: Any) -> list[DiffOp]:
    """Check the shape of an edit script and normalize it to DiffOps.

    Raises:
        PatchValidationError: if the script is empty, an entry is not a pair,
            a kind is not -1, 0 or 1, or a text is not a string
    """
    if isinstance(ops, (str, bytes)) or not isinstance(ops, Iterable):
        raise PatchValidationError("Edit script must be a list of [kind, text] pairs")

    normalized = []
    for index, op in enumerate(ops):
        if isinstance(op, (str, bytes)) or not isinstance(op, Sequence) or len(op) != 2:
            raise PatchValidationError(f"Op {index} must be a [kind, text] pair, got {op!r}")
        kind, text = op
        # bool is an int subclass; True must not pass for INSERT
        if isinstance(kind, bool) or not isinstance(kind, int) or kind not in (-1, 0, 1):
            raise PatchValidationError(f"Op {index} has invalid kind {kind!r}; expected -1, 0 or 1")
        if not isinstance(text, str):
            raise PatchValidationError(f"Op {index} text must be a string, got {type(text).__name__}")
        normalized.append(DiffOp(DiffKind(kind), text))

    if not normalized:
        raise PatchValidationError("Edit script is empty")
    return normalized


def apply_patch(
    base_document: str,
    ops: Iterable[Sequence[Any]],
    dry_run: bool = False,
    strict: bool = True,
) -> PatchResult:
    """Apply an edit script to a document.

    Args:
        base_document: Document the script was computed against
        ops: Ordered ``(kind, text)`` pairs
        dry_run: Also build a per-op preview
        strict: Fail when the script does not reach the end of the document;
            otherwise the uncovered tail is kept unchanged

    Returns:
        PatchResult with ``applied=False``; callers set ``applied`` after
        persisting ``result_document``

    Raises:
        PatchValidationError, PatchMismatchError, PatchIncompleteError
    """
    script = validate_ops(ops)

    cursor = 0
    output: list[str] = []
    preview: list[DiffSummaryLine] = []

    for index, (kind, text) in enumerate(script):
        if dry_run:
            preview.append(DiffSummaryLine(kind=kind, text=text, context_offset=cursor))

        if kind == DiffKind.INSERT:
            output.append(text)
            continue

        found = base_document[cursor : cursor + len(text)]
        if found != text:
            raise PatchMismatchError(index, cursor, text, found)
        cursor += len(text)
        if kind == DiffKind.EQUAL:
            output.append(text)

    if cursor < len(base_document):
        if strict:
            raise PatchIncompleteError(cursor, len(base_document) - cursor)
        output.append(base_document[cursor:])

    return PatchResult(
        applied=False,
        result_document="".join(output),
        preview=preview if dry_run else None,
    )


def source_text(ops: Iterable[Sequence[Any]]) -> str:
    """The document an edit script applies to."""
    return "".join(text for kind, text in validate_ops(ops) if kind != DiffKind.INSERT)


def target_text(ops: Iterable[Sequence[Any]]) -> str:
    """The document an edit script produces."""
    return "".join(text for kind, text in validate_ops(ops) if kind != DiffKind.DELETE)


def invert_ops(ops: Iterable[Sequence[Any]]) -> list[DiffOp]:
    """Script that turns the result back into the original document."""
    return [DiffOp(DiffKind(-kind), text) for kind, text in validate_ops(ops)]


def compute_ops(old: str, new: str) -> list[DiffOp]:
    """Build an edit script turning ``old`` into ``new``.

    EQUAL ops always carry text. Two empty documents give the single no-op
    ``INSERT ""``, since an edit script may not be empty.
    """
    ops: list[DiffOp] = []
    matcher = SequenceMatcher(None, old, new, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            ops.append(DiffOp(DiffKind.EQUAL, old[i1:i2]))
            continue
        if tag in ("delete", "replace"):
            ops.append(DiffOp(DiffKind.DELETE, old[i1:i2]))
        if tag in ("insert", "replace"):
            ops.append(DiffOp(DiffKind.INSERT, new[j1:j2]))

    if not ops:
        ops.append(DiffOp(DiffKind.INSERT, ""))
    return ops


def render_preview(preview: Iterable[DiffSummaryLine]) -> str:
    """Format a preview as ``+``/``-``/`` `` prefixed lines."""
    markers = {DiffKind.INSERT: "+", DiffKind.DELETE: "-", DiffKind.EQUAL: " "}
    return "\n".join(
        f"{markers[line.kind]} @{line.context_offset}: {line.text!r}" for line in preview
    )
