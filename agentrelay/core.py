"""
Turn loop for multi-agent conversations.

Each turn requests a completion for the active agent, appends the assistant
message to the history, executes any requested tool calls and switches the
active agent when a tool hands off. The loop ends when the model stops
calling tools, tool execution is disabled, or the turn limit is reached.

Per-turn flow:
    1. Build [system, *history] for the active agent and call the endpoint
    2. Append the assistant message, tagged with the agent's name
    3. Stop if there are no tool calls or tools are not executed
    4. Dispatch tool calls, append tool messages, merge context variables
    5. Switch the active agent on handoff
"""

import copy
import json
import logging
import uuid
from contextlib import nullcontext
from typing import Any, Iterator, Optional, Union

from openai import OpenAI

from .config import Config, config as default_config
from .dispatch import handle_tool_calls
from .gateway import CompletionGateway
from .logging_setup import debug_log
from .streaming import finalize_message, merge_chunk, new_message
from .tracing import TracingContext
from .types import Agent, Response, ToolCall

logger = logging.getLogger(__name__)


class Swarm:
    """
    Runs agents against an OpenAI-compatible chat-completion endpoint.

    The client is an explicit dependency so tests can substitute a fake;
    when omitted, one is built from configuration.
    """

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        config: Optional[Config] = None,
        tracing_context: Optional[TracingContext] = None,
    ):
        self.config = config or default_config
        if client is None:
            client = OpenAI(
                base_url=self.config.completion.base_url or None,
                api_key=self.config.completion.api_key or None,
            )
        self.client = client
        self.tracing_context = tracing_context
        self.gateway = CompletionGateway(client)

    def run(
        self,
        agent: Agent,
        messages: list[dict],
        context_variables: Optional[dict] = None,
        model_override: Optional[str] = None,
        stream: bool = False,
        debug: bool = False,
        max_turns: Optional[float] = None,
        execute_tools: bool = True,
    ) -> Union[Response, Iterator[dict]]:
        """
        Run a conversation until the model stops calling tools.

        Args:
            agent: Agent that starts with control.
            messages: Prior conversation history; not modified.
            context_variables: Initial context variables; not modified.
            model_override: Model used for every turn instead of the agent's.
            stream: Return a generator of streaming events instead.
            debug: Log loop details at INFO level.
            max_turns: Maximum number of completions; defaults to the
                configured limit (unbounded unless set).
            execute_tools: When False, the first requested tool calls are
                returned unexecuted.

        Returns:
            Response with the new messages, final agent and context
            variables, or the event generator from ``run_and_stream``.
        """
        if stream:
            return self.run_and_stream(
                agent=agent,
                messages=messages,
                context_variables=context_variables,
                model_override=model_override,
                debug=debug,
                max_turns=max_turns,
                execute_tools=execute_tools,
            )

        debug = debug or self.config.loop.debug
        max_turns = self._resolve_max_turns(max_turns)
        active_agent = agent
        # shallow copy; tools see the caller's value objects
        context_variables = dict(context_variables or {})
        history = copy.deepcopy(messages)
        init_len = len(messages)
        turns = 0

        with self._run_span(agent, messages) as run_span:
            try:
                while turns < max_turns and active_agent:
                    completion = self.gateway.get_chat_completion(
                        agent=active_agent,
                        history=history,
                        context_variables=context_variables,
                        model_override=model_override,
                        stream=False,
                        debug=debug,
                        tracer=run_span,
                    )
                    message = completion.choices[0].message.model_dump(mode="json")
                    message["sender"] = active_agent.name
                    debug_log(logger, debug, "Received completion: %s", message)
                    history.append(message)
                    turns += 1

                    if not message.get("tool_calls") or not execute_tools:
                        debug_log(logger, debug, "Ending turn.")
                        break

                    active_agent = self._dispatch(
                        message, active_agent, history, context_variables, debug, run_span
                    )
            except Exception:
                self._fail_span(run_span)
                raise

            response = Response(
                messages=history[init_len:],
                agent=active_agent,
                context_variables=context_variables,
            )
            self._finish_span(run_span, response, turns)
        return response

    def run_and_stream(
        self,
        agent: Agent,
        messages: list[dict],
        context_variables: Optional[dict] = None,
        model_override: Optional[str] = None,
        debug: bool = False,
        max_turns: Optional[float] = None,
        execute_tools: bool = True,
    ) -> Iterator[dict]:
        """
        Streaming variant of ``run``.

        Yields ``{"delim": "start"}``, every raw delta (tagged with
        ``sender`` when it declares the assistant role) and
        ``{"delim": "end"}`` for each turn, then ``{"response": Response}``.
        """
        debug = debug or self.config.loop.debug
        max_turns = self._resolve_max_turns(max_turns)
        active_agent = agent
        context_variables = dict(context_variables or {})
        history = copy.deepcopy(messages)
        init_len = len(messages)
        turns = 0

        with self._run_span(agent, messages) as run_span:
            try:
                while turns < max_turns and active_agent:
                    message = new_message(active_agent.name)

                    completion = self.gateway.get_chat_completion(
                        agent=active_agent,
                        history=history,
                        context_variables=context_variables,
                        model_override=model_override,
                        stream=True,
                        debug=debug,
                        tracer=run_span,
                    )

                    yield {"delim": "start"}
                    for chunk in completion:
                        if not chunk.choices:
                            continue
                        delta = chunk.choices[0].delta.model_dump(mode="json")
                        if delta.get("role") == "assistant":
                            delta["sender"] = active_agent.name
                        yield delta
                        message = merge_chunk(message, delta)
                    yield {"delim": "end"}

                    finalize_message(message)
                    debug_log(logger, debug, "Received completion: %s", message)
                    history.append(message)
                    turns += 1

                    if not message["tool_calls"] or not execute_tools:
                        debug_log(logger, debug, "Ending turn.")
                        break

                    active_agent = self._dispatch(
                        message, active_agent, history, context_variables, debug, run_span
                    )
            except Exception:
                self._fail_span(run_span)
                raise

            response = Response(
                messages=history[init_len:],
                agent=active_agent,
                context_variables=context_variables,
            )
            self._finish_span(run_span, response, turns)
        yield {"response": response}

    def _dispatch(
        self,
        message: dict,
        active_agent: Agent,
        history: list[dict],
        context_variables: dict,
        debug: bool,
        tracer: Any,
    ) -> Agent:
        """Execute a message's tool calls and return the next active agent."""
        tool_calls = [ToolCall.from_dict(tc) for tc in message["tool_calls"]]
        partial_response = handle_tool_calls(
            tool_calls,
            active_agent.functions,
            context_variables,
            debug,
            tracer=tracer,
        )
        history.extend(partial_response.messages)
        context_variables.update(partial_response.context_variables)
        if partial_response.agent:
            debug_log(
                logger,
                debug,
                "Handing off from %s to %s",
                active_agent.name,
                partial_response.agent.name,
            )
            return partial_response.agent
        return active_agent

    def _resolve_max_turns(self, max_turns: Optional[float]) -> float:
        if max_turns is None:
            return self.config.loop.max_turns
        return max_turns

    def _run_span(self, agent: Agent, messages: list[dict]):
        """Span covering one run, or a null context without tracing."""
        if self.tracing_context is None:
            return nullcontext()
        return self.tracing_context.span(
            name="swarm_run",
            metadata={"run_id": uuid.uuid4().hex[:12], "agent": agent.name},
            input={"messages": messages},
        )

    @staticmethod
    def _fail_span(span: Any) -> None:
        if span is not None:
            span.set_status("error")

    @staticmethod
    def _finish_span(span: Any, response: Response, turns: int) -> None:
        if span is None:
            return
        last = response.messages[-1] if response.messages else {}
        span.set_output(
            {
                "turns": turns,
                "agent": response.agent.name if response.agent else None,
                "final_content": (last.get("content") or "")[:500],
                "context_variables": json.loads(
                    json.dumps(response.context_variables, default=str)
                ),
            }
        )

    def close(self) -> None:
        """Close the underlying OpenAI client."""
        try:
            self.client.close()
        except Exception as e:
            logger.debug("Error closing OpenAI client: %s", e)
