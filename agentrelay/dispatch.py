"""
Tool dispatch for one assistant turn.

Resolves each requested tool call against the active agent's functions,
executes it, normalises the return value into a ``Result`` and aggregates
tool messages, context variable updates and the proposed handoff.
"""

import json
import logging
from contextlib import nullcontext
from typing import Any, Optional

from .errors import ArgumentParseError, ResultCoercionError
from .introspect import accepts_context_variables, function_name
from .logging_setup import debug_log
from .tracing import SpanContext
from .types import CTX_VARS_NAME, Agent, AgentFunction, Response, Result, ToolCall

logger = logging.getLogger(__name__)


def handle_function_result(result: Any, debug: bool = False) -> Result:
    """
    Normalise an agent function's return value.

    A ``Result`` passes through, an ``Agent`` becomes a handoff and any
    other value is converted with ``str()``.

    Raises:
        ResultCoercionError: If the value has no string form.
    """
    if isinstance(result, Result):
        return result

    if isinstance(result, Agent):
        return Result(
            value=json.dumps({"assistant": result.name}),
            agent=result,
        )

    try:
        return Result(value=str(result))
    except Exception as e:
        error = ResultCoercionError(result, f"{type(result).__name__}: {e}")
        if debug:
            logger.error("%s", error)
        raise error from e


def parse_arguments(tool_call: ToolCall) -> dict:
    """Parse a tool call's JSON arguments into a dict."""
    raw = tool_call.arguments
    if not raw or not raw.strip():
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ArgumentParseError(tool_call.name, raw, str(e)) from e
    if not isinstance(args, dict):
        raise ArgumentParseError(
            tool_call.name, raw, f"expected a JSON object, got {type(args).__name__}"
        )
    return args


def _tool_message(tool_call: ToolCall, content: str) -> dict:
    return {
        "role": "tool",
        "tool_call_id": tool_call.id,
        "tool_name": tool_call.name,
        "content": content,
    }


def handle_tool_calls(
    tool_calls: list[ToolCall],
    functions: list[AgentFunction],
    context_variables: dict,
    debug: bool = False,
    tracer: Optional[SpanContext] = None,
) -> Response:
    """
    Execute the tool calls of one turn in request order.

    Args:
        tool_calls: Calls requested by the model.
        functions: The active agent's functions.
        context_variables: Live context variables, passed to functions that
            declare a ``context_variables`` parameter.
        debug: Log dispatch details at INFO level.
        tracer: Optional span that becomes the parent of one span per call.

    Returns:
        Partial ``Response`` holding the tool messages, the merged context
        variable updates and the last proposed handoff agent.
    """
    # later definitions shadow earlier ones with the same name
    function_map = {function_name(f): f for f in functions}
    partial_response = Response(messages=[], agent=None, context_variables={})

    for tool_call in tool_calls:
        name = tool_call.name
        if name not in function_map:
            debug_log(logger, debug, "Tool %s not found in function map.", name)
            partial_response.messages.append(
                _tool_message(tool_call, f"Error: Tool {name} not found.")
            )
            continue

        args = parse_arguments(tool_call)
        debug_log(logger, debug, "Processing tool call: %s with arguments %s", name, args)

        func = function_map[name]
        if accepts_context_variables(func):
            args[CTX_VARS_NAME] = context_variables

        span_cm = tracer.span(name=f"tool:{name}", input=args) if tracer else nullcontext()
        with span_cm as span:
            try:
                raw_result = func(**args)
                result = handle_function_result(raw_result, debug)
            except Exception:
                if span is not None:
                    span.set_status("error")
                raise
            if span is not None:
                span.set_output({"result": str(result.value)[:500]})

        partial_response.messages.append(_tool_message(tool_call, result.value))
        partial_response.context_variables.update(result.context_variables)
        if result.agent:
            partial_response.agent = result.agent

    return partial_response
