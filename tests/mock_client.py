"""
Fake OpenAI client and response builders for tests.

Responses are built from the real ``openai`` types so the loop sees the same
objects it gets from the SDK.
"""

import json
from unittest.mock import MagicMock

from openai.types.chat import ChatCompletion, ChatCompletionChunk


def create_mock_response(
    message: dict,
    function_calls: list[dict] | None = None,
    model: str = "gpt-4o",
) -> ChatCompletion:
    """Build a ChatCompletion with an optional list of tool calls.

    ``function_calls`` entries are ``{"name": ..., "args": {...}}`` with an
    optional ``"id"``.
    """
    tool_calls = None
    if function_calls:
        tool_calls = [
            {
                "id": call.get("id", f"mock_tc_id_{i}"),
                "type": "function",
                "function": {
                    "name": call.get("name", ""),
                    "arguments": call.get("raw_args", json.dumps(call.get("args", {}))),
                },
            }
            for i, call in enumerate(function_calls)
        ]

    return ChatCompletion.model_validate(
        {
            "id": "mock_cc_id",
            "created": 1234567890,
            "model": model,
            "object": "chat.completion",
            "choices": [
                {
                    "index": 0,
                    "finish_reason": "tool_calls" if tool_calls else "stop",
                    "message": {
                        "role": message.get("role", "assistant"),
                        "content": message.get("content", ""),
                        "tool_calls": tool_calls,
                    },
                }
            ],
        }
    )


def create_mock_chunk(delta: dict, model: str = "gpt-4o") -> ChatCompletionChunk:
    """Build one streamed ChatCompletionChunk carrying ``delta``."""
    return ChatCompletionChunk.model_validate(
        {
            "id": "mock_chunk_id",
            "created": 1234567890,
            "model": model,
            "object": "chat.completion.chunk",
            "choices": [{"index": 0, "delta": delta, "finish_reason": None}],
        }
    )


def create_mock_stream(content: str = "", tool_calls: list[dict] | None = None, pieces: int = 3):
    """Split a message into streamed chunks.

    Content is split into ``pieces`` slices; each tool call is sent as a
    header chunk (id, name) followed by its arguments in two halves.
    """
    chunks = [create_mock_chunk({"role": "assistant", "content": ""})]
    if content:
        step = max(1, len(content) // pieces)
        for start in range(0, len(content), step):
            chunks.append(create_mock_chunk({"content": content[start:start + step]}))
    for index, call in enumerate(tool_calls or []):
        arguments = json.dumps(call.get("args", {}))
        chunks.append(
            create_mock_chunk(
                {
                    "tool_calls": [
                        {
                            "index": index,
                            "id": call.get("id", f"call_{index}"),
                            "type": "function",
                            "function": {"name": call["name"], "arguments": ""},
                        }
                    ]
                }
            )
        )
        half = len(arguments) // 2
        for part in (arguments[:half], arguments[half:]):
            chunks.append(
                create_mock_chunk(
                    {"tool_calls": [{"index": index, "function": {"arguments": part}}]}
                )
            )
    return chunks


class MockOpenAIClient:
    """Stand-in for ``openai.OpenAI`` exposing ``chat.completions.create``."""

    def __init__(self):
        self.chat = MagicMock()
        self.chat.completions.create = MagicMock()

    def set_response(self, response):
        """Return the same response for every call."""
        self.chat.completions.create.return_value = response

    def set_sequential_responses(self, responses):
        """Return the given responses one per call, in order."""
        self.chat.completions.create.side_effect = list(responses)

    def set_sequential_streams(self, streams):
        """Return one iterator of chunks per call, in order."""
        self.chat.completions.create.side_effect = [iter(s) for s in streams]

    def assert_create_called_with(self, **kwargs):
        self.chat.completions.create.assert_called_with(**kwargs)

    @property
    def calls(self) -> list[dict]:
        """Keyword arguments of every create() call."""
        return [c.kwargs for c in self.chat.completions.create.call_args_list]
