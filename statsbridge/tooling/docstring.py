"""Docstring parsing using griffe for tool descriptions."""

import logging
from collections.abc import Callable
from typing import Any

from griffe import Docstring
from pydantic.alias_generators import to_snake

logger = logging.getLogger(__name__)


def extract_function_docs(func: Callable) -> dict[str, Any]:
    """Extract the summary and per-parameter descriptions of a tool function.

    Args:
        func: Function to extract documentation from

    Returns:
        Dictionary with ``description`` and ``parameters`` keys
    """
    docs: dict[str, Any] = {"description": "", "parameters": {}}
    if not func.__doc__:
        return docs

    parsed = Docstring(func.__doc__, lineno=1).parse("google")

    for section in parsed:
        kind = section.kind.value
        if kind == "text" and not docs["description"]:
            docs["description"] = (section.value or "").strip()
        elif kind == "parameters":
            for param in section.value or []:
                docs["parameters"][param.name] = param.description

    return docs


def enhance_schema_with_docs(schema: dict[str, Any], func: Callable) -> dict[str, Any]:
    """Fill in missing descriptions of a function schema from the docstring.

    Only the summary text is used as the tool description, so the Args
    section of a docstring does not leak into the model-facing text.
    Descriptions already present in the schema take precedence.
    """
    func_docs = extract_function_docs(func)
    function = schema.setdefault("function", {})

    if func_docs["description"] and not function.get("description"):
        function["description"] = func_docs["description"]

    properties = function.get("parameters", {}).get("properties", {})
    for param_name, param_schema in properties.items():
        doc = func_docs["parameters"].get(param_name) or func_docs["parameters"].get(to_snake(param_name))
        if doc and "description" not in param_schema:
            param_schema["description"] = doc

    return schema
