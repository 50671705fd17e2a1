"""
Function introspection for tool schemas.

Converts a Python callable into an OpenAI function-calling tool definition
from its signature, type hints and docstring.
"""

import inspect
import logging
import types
import typing
from typing import Any, Callable, Optional

from .types import CTX_VARS_NAME

logger = logging.getLogger(__name__)

TYPE_MAP: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
    type(None): "null",
}

# Annotations left as strings when type hints cannot be resolved.
NAME_MAP: dict[str, str] = {
    "str": "string",
    "int": "integer",
    "float": "number",
    "bool": "boolean",
    "list": "array",
    "tuple": "array",
    "dict": "object",
    "None": "null",
}

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
_UNION_ORIGINS = (typing.Union, types.UnionType)


def _json_type(annotation: Any) -> str:
    """Map an annotation to a JSON schema type, defaulting to string."""
    if isinstance(annotation, str):
        return NAME_MAP.get(annotation, "string")
    origin = typing.get_origin(annotation)
    if origin in _UNION_ORIGINS:
        # Optional[X] describes X; other unions fall back to string
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        return _json_type(members[0]) if len(members) == 1 else "string"
    if origin is not None and origin in TYPE_MAP:
        return TYPE_MAP[origin]
    try:
        return TYPE_MAP.get(annotation, "string")
    except TypeError:
        # unhashable annotation
        return "string"


def function_name(func: Callable) -> str:
    return getattr(func, "__name__", type(func).__name__)


def _signature(func: Callable) -> Optional[inspect.Signature]:
    try:
        return inspect.signature(func)
    except (ValueError, TypeError) as e:
        logger.warning("Cannot introspect '%s': %s", function_name(func), e)
        return None


def function_to_json(func: Callable) -> dict:
    """
    Build an OpenAI tool definition for a callable.

    Parameters without a default are required. Callables whose signature
    cannot be read produce a schema with no parameters.

    Args:
        func: The function to describe.

    Returns:
        Tool definition dict with ``type`` and ``function`` keys.
    """
    properties: dict[str, dict] = {}
    required: list[str] = []

    signature = _signature(func)
    if signature is not None:
        try:
            hints = typing.get_type_hints(func)
        except Exception:
            hints = {}

        for param in signature.parameters.values():
            if param.kind in _SKIPPED_KINDS:
                continue
            annotation = hints.get(param.name, param.annotation)
            if annotation is inspect.Parameter.empty:
                json_type = "string"
            else:
                json_type = _json_type(annotation)
            properties[param.name] = {"type": json_type}
            if param.default is inspect.Parameter.empty:
                required.append(param.name)

    doc = getattr(func, "__doc__", None)
    return {
        "type": "function",
        "function": {
            "name": function_name(func),
            "description": inspect.cleandoc(doc) if doc else "",
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


def accepts_context_variables(func: Callable) -> bool:
    """Whether the callable declares the reserved context variables parameter."""
    signature = _signature(func)
    if signature is None:
        return False
    return CTX_VARS_NAME in signature.parameters
