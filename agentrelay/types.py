"""
Core data types for agent orchestration.

Agents are immutable configuration; the run loop swaps which agent is
active on handoff but never changes an agent's fields.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from .config import config

# Reserved parameter name: filled in by the dispatcher, hidden from the model.
CTX_VARS_NAME = "context_variables"

AgentFunction = Callable[..., Union[str, "Agent", "Result", Any]]


@dataclass(frozen=True, eq=False)
class Agent:
    """A named bundle of instructions and callable tools."""

    name: str = "Agent"
    model: str = field(default_factory=lambda: config.completion.model)
    instructions: Union[str, Callable[[dict], str]] = "You are a helpful agent."
    functions: list[AgentFunction] = field(default_factory=list)
    tool_choice: Optional[Union[str, dict]] = None
    parallel_tool_calls: bool = True

    def get_instructions(self, context_variables: dict) -> str:
        """Compute the system prompt for the given context variables."""
        if callable(self.instructions):
            return self.instructions(context_variables)
        return self.instructions


@dataclass
class Result:
    """
    Encapsulates the possible return values for an agent function.

    Attributes:
        value: The result value as a string.
        agent: The agent to hand off to, if any.
        context_variables: Context variable updates.
    """

    value: str = ""
    agent: Optional[Agent] = None
    context_variables: dict[str, Any] = field(default_factory=dict)


@dataclass
class Response:
    """Messages produced by a run, the final agent and context variables."""

    messages: list[dict] = field(default_factory=list)
    agent: Optional[Agent] = None
    context_variables: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCall:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: str = "{}"
    type: str = "function"

    @classmethod
    def from_dict(cls, data: dict) -> "ToolCall":
        """Build from an OpenAI-format ``tool_calls`` entry."""
        function = data.get("function") or {}
        return cls(
            id=data.get("id") or "",
            name=function.get("name") or "",
            arguments=function.get("arguments") or "",
            type=data.get("type") or "function",
        )
