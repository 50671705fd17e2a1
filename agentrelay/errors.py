"""
Errors raised by the run loop.

A missing tool is not an error here: the dispatcher reports it to the model
as a tool message and the run continues. Transport failures surface as the
``openai`` SDK's own exceptions.
"""

from typing import Any


class AgentRelayError(Exception):
    """Base class for agentrelay errors."""


class ArgumentParseError(AgentRelayError, ValueError):
    """Tool call arguments were not a JSON object."""

    def __init__(self, tool_name: str, arguments: str, reason: str):
        self.tool_name = tool_name
        self.arguments = arguments
        super().__init__(
            f"Invalid arguments for tool '{tool_name}': {reason}. "
            f"Arguments: {arguments[:200]}"
        )


class ResultCoercionError(AgentRelayError, TypeError):
    """An agent function returned a value with no string form."""

    def __init__(self, value: Any, reason: str):
        self.value = value
        super().__init__(
            f"Failed to cast response to string: {reason}. "
            "Make sure agent functions return a string or Result object."
        )
