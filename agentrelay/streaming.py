"""
Reassembly of streamed chat-completion deltas.

A streamed assistant message arrives as many partial deltas. Text fields
are concatenated, nested mappings are merged recursively, and tool-call
fragments are routed to the in-flight tool call named by their ``index``.
"""

import copy
from typing import Optional


def new_message(sender: str) -> dict:
    """Empty accumulator for one streamed assistant message."""
    return {
        "content": "",
        "sender": sender,
        "role": "assistant",
        "function_call": None,
        "tool_calls": [],
    }


def merge_fields(target: dict, source: dict) -> None:
    """
    Fold ``source`` into ``target`` in place.

    Strings concatenate and mappings recurse; a key missing from ``target``
    starts out empty. ``None``, other scalars and lists are ignored.
    """
    for key, value in source.items():
        if isinstance(value, str):
            current = target.get(key)
            target[key] = (current if isinstance(current, str) else "") + value
        elif isinstance(value, dict):
            if not isinstance(target.get(key), dict):
                target[key] = {}
            merge_fields(target[key], value)


def merge_chunk(message: dict, delta: dict) -> dict:
    """
    Merge one streamed delta into the accumulated message.

    Neither argument is modified; the merged accumulator is returned.

    Args:
        message: Accumulator built by ``new_message``.
        delta: One ``choices[0].delta`` payload as a dict.

    Returns:
        The new accumulator.
    """
    merged = copy.deepcopy(message)
    fragment = {k: v for k, v in delta.items() if k not in ("role", "sender")}
    tool_call_fragments = fragment.pop("tool_calls", None) or []

    merge_fields(merged, fragment)

    if tool_call_fragments:
        tool_calls = merged.get("tool_calls")
        if not isinstance(tool_calls, list):
            tool_calls = merged["tool_calls"] = []
        for tool_call in tool_call_fragments:
            tool_call = dict(tool_call)
            index = tool_call.pop("index", None)
            if index is None:
                index = len(tool_calls)
            while len(tool_calls) <= index:
                tool_calls.append({})
            merge_fields(tool_calls[index], tool_call)

    return merged


def finalize_message(message: dict) -> dict:
    """Normalise an empty tool-call list to ``None``."""
    if not message.get("tool_calls"):
        message["tool_calls"] = None
    return message


def merge_all(deltas: list[dict], sender: str, message: Optional[dict] = None) -> dict:
    """Fold a complete sequence of deltas into a finished message."""
    result = message if message is not None else new_message(sender)
    for delta in deltas:
        result = merge_chunk(result, delta)
    return finalize_message(result)
