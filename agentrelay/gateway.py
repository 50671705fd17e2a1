"""
Completion gateway.

Builds the chat-completion request for the active agent and sends it to
the OpenAI-compatible endpoint. There is no retry: transport errors from
the SDK propagate to the caller unchanged.
"""

import copy
import logging
from contextlib import ExitStack
from typing import Any, Iterable, Iterator, Optional

from openai import OpenAI

from .introspect import function_to_json
from .logging_setup import debug_log
from .tracing import SpanContext
from .types import CTX_VARS_NAME, Agent

logger = logging.getLogger(__name__)


def build_tools(agent: Agent) -> list[dict]:
    """Tool definitions for an agent with the context variables parameter hidden."""
    tools = [function_to_json(f) for f in agent.functions]
    for tool in tools:
        params = tool["function"]["parameters"]
        params["properties"].pop(CTX_VARS_NAME, None)
        if CTX_VARS_NAME in params["required"]:
            params["required"].remove(CTX_VARS_NAME)
    return tools


class CompletionGateway:
    """Sends chat-completion requests on behalf of an agent."""

    def __init__(self, client: OpenAI, tracer: Optional[SpanContext] = None):
        self.client = client
        self.tracer = tracer

    def build_request(
        self,
        agent: Agent,
        history: list[dict],
        context_variables: dict,
        model_override: Optional[str] = None,
        stream: bool = False,
    ) -> dict:
        """
        Build the keyword arguments for ``chat.completions.create``.

        The system message is computed from the agent's instructions and
        precedes the history verbatim. ``tools`` and ``parallel_tool_calls``
        are only sent when the agent has functions, ``tool_choice`` only
        when the agent sets one.
        """
        instructions = agent.get_instructions(copy.copy(context_variables))
        messages = [{"role": "system", "content": instructions}] + history

        create_kwargs: dict[str, Any] = {
            "model": model_override or agent.model,
            "messages": messages,
            "stream": stream,
        }

        tools = build_tools(agent)
        if tools:
            create_kwargs["tools"] = tools
            create_kwargs["parallel_tool_calls"] = agent.parallel_tool_calls
        if agent.tool_choice is not None:
            create_kwargs["tool_choice"] = agent.tool_choice

        return create_kwargs

    def get_chat_completion(
        self,
        agent: Agent,
        history: list[dict],
        context_variables: dict,
        model_override: Optional[str] = None,
        stream: bool = False,
        debug: bool = False,
        tracer: Optional[SpanContext] = None,
    ) -> Any:
        """
        Request a completion for ``agent`` over ``history``.

        Returns:
            A ``ChatCompletion``, or an iterator of ``ChatCompletionChunk``
            when ``stream`` is set.
        """
        create_kwargs = self.build_request(
            agent, history, context_variables, model_override, stream
        )
        debug_log(logger, debug, "Getting chat completion for...: %s", create_kwargs["messages"])

        tracer = tracer or self.tracer
        if tracer is None:
            return self.client.chat.completions.create(**create_kwargs)

        with ExitStack() as stack:
            gen = stack.enter_context(
                tracer.generation(
                    name=f"completion:{agent.name}",
                    model=create_kwargs["model"],
                    input=create_kwargs["messages"],
                    model_parameters={"stream": stream},
                )
            )
            try:
                completion = self.client.chat.completions.create(**create_kwargs)
            except Exception:
                gen.set_status("error")
                raise

            if stream:
                # the generation stays open until the stream is consumed
                return _traced_stream(completion, gen, stack.pop_all())

            gen.set_output(completion.choices[0].message.content or "")
            _record_usage(gen, getattr(completion, "usage", None))
            return completion


def _record_usage(gen: Any, usage: Any) -> None:
    if usage:
        gen.set_usage(
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
        )


def _traced_stream(completion: Iterable[Any], gen: Any, generation: ExitStack) -> Iterator[Any]:
    """Pass chunks through, recording the streamed text and usage on ``gen``."""
    parts: list[str] = []
    with generation:
        try:
            for chunk in completion:
                if chunk.choices and chunk.choices[0].delta.content:
                    parts.append(chunk.choices[0].delta.content)
                _record_usage(gen, getattr(chunk, "usage", None))
                yield chunk
        except Exception:
            gen.set_status("error")
            raise
        finally:
            gen.set_output("".join(parts))
