"""
agentrelay - lightweight multi-agent orchestration over chat completions

This package provides:
- Agents: instructions plus callable tools, with handoff between agents
- A turn loop driving an OpenAI-compatible chat-completion endpoint
- Streaming with incremental reconstruction of assistant messages
- Context variables shared between instructions and tools
"""

from .core import Swarm
from .errors import AgentRelayError, ArgumentParseError, ResultCoercionError
from .introspect import function_to_json
from .types import Agent, AgentFunction, Response, Result, ToolCall

__all__ = [
    "Swarm",
    "Agent",
    "AgentFunction",
    "Response",
    "Result",
    "ToolCall",
    "function_to_json",
    "AgentRelayError",
    "ArgumentParseError",
    "ResultCoercionError",
]

__version__ = "0.1.0"
