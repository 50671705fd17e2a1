"""Tests for completion request building."""

from unittest.mock import MagicMock

import pytest

from agentrelay.gateway import CompletionGateway, build_tools
from agentrelay.types import Agent

from mock_client import MockOpenAIClient, create_mock_response, create_mock_stream


def print_account_details(context_variables: dict, account_id: int):
    """Print the account details."""
    return "ok"


def get_weather(location: str):
    return "sunny"


class TestBuildTools:
    def test_context_variables_hidden(self):
        tools = build_tools(Agent(functions=[print_account_details]))
        params = tools[0]["function"]["parameters"]
        assert "context_variables" not in params["properties"]
        assert params["required"] == ["account_id"]

    def test_no_functions_no_tools(self):
        assert build_tools(Agent()) == []


class TestBuildRequest:
    def test_system_message_precedes_history(self):
        gateway = CompletionGateway(MockOpenAIClient())
        agent = Agent(instructions="Be brief.", model="test-model")
        history = [{"role": "user", "content": "Hi"}]

        kwargs = gateway.build_request(agent, history, {})

        assert kwargs["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hi"},
        ]
        assert kwargs["model"] == "test-model"
        assert kwargs["stream"] is False

    def test_instructions_function_receives_context(self):
        def instructions(context_variables):
            return f"Greet the user by name ({context_variables['name']})."

        gateway = CompletionGateway(MockOpenAIClient())
        kwargs = gateway.build_request(
            Agent(instructions=instructions), [], {"name": "James", "user_id": 123}
        )
        assert "James" in kwargs["messages"][0]["content"]

    def test_instructions_function_cannot_change_context(self):
        def instructions(context_variables):
            context_variables["touched"] = True
            return "x"

        ctx = {"name": "James"}
        CompletionGateway(MockOpenAIClient()).build_request(Agent(instructions=instructions), [], ctx)
        assert ctx == {"name": "James"}

    def test_tools_omitted_without_functions(self):
        kwargs = CompletionGateway(MockOpenAIClient()).build_request(Agent(), [], {})
        assert "tools" not in kwargs
        assert "parallel_tool_calls" not in kwargs
        assert "tool_choice" not in kwargs

    def test_tools_and_parallel_flag(self):
        agent = Agent(functions=[get_weather], parallel_tool_calls=False, tool_choice="required")
        kwargs = CompletionGateway(MockOpenAIClient()).build_request(agent, [], {}, stream=True)
        assert [t["function"]["name"] for t in kwargs["tools"]] == ["get_weather"]
        assert kwargs["parallel_tool_calls"] is False
        assert kwargs["tool_choice"] == "required"
        assert kwargs["stream"] is True

    def test_model_override(self):
        kwargs = CompletionGateway(MockOpenAIClient()).build_request(
            Agent(model="a"), [], {}, model_override="b"
        )
        assert kwargs["model"] == "b"


class TestGetChatCompletion:
    def test_calls_client_with_request(self):
        client = MockOpenAIClient()
        client.set_response(create_mock_response({"content": "hello"}))
        gateway = CompletionGateway(client)
        agent = Agent(instructions="sys", model="m")

        completion = gateway.get_chat_completion(agent, [{"role": "user", "content": "Hi"}], {})

        assert completion.choices[0].message.content == "hello"
        client.assert_create_called_with(
            model="m",
            messages=[
                {"role": "system", "content": "sys"},
                {"role": "user", "content": "Hi"},
            ],
            stream=False,
        )

    def test_transport_errors_propagate(self):
        client = MockOpenAIClient()
        client.chat.completions.create.side_effect = ConnectionError("down")
        gateway = CompletionGateway(client)

        with pytest.raises(ConnectionError):
            gateway.get_chat_completion(Agent(), [], {})
        assert client.chat.completions.create.call_count == 1

    def test_generation_traced(self):
        client = MockOpenAIClient()
        client.set_response(create_mock_response({"content": "hello"}))
        tracer = MagicMock()
        gen = tracer.generation.return_value.__enter__.return_value

        CompletionGateway(client, tracer=tracer).get_chat_completion(Agent(name="A", model="m"), [], {})

        assert tracer.generation.call_args.kwargs["name"] == "completion:A"
        assert tracer.generation.call_args.kwargs["model"] == "m"
        gen.set_output.assert_called_once_with("hello")

    def test_streamed_generation_closed_after_stream_consumed(self):
        client = MockOpenAIClient()
        client.set_sequential_streams([create_mock_stream(content="Hello there")])
        tracer = MagicMock()
        generation = tracer.generation.return_value
        gen = generation.__enter__.return_value

        stream = CompletionGateway(client).get_chat_completion(
            Agent(name="A"), [], {}, stream=True, tracer=tracer
        )

        generation.__exit__.assert_not_called()
        gen.set_output.assert_not_called()

        chunks = list(stream)

        assert len(chunks) == len(create_mock_stream(content="Hello there"))
        gen.set_output.assert_called_once_with("Hello there")
        generation.__exit__.assert_called_once()

    def test_generation_marked_on_error(self):
        client = MockOpenAIClient()
        client.chat.completions.create.side_effect = RuntimeError("bad gateway")
        tracer = MagicMock()
        gen = tracer.generation.return_value.__enter__.return_value

        with pytest.raises(RuntimeError):
            CompletionGateway(client).get_chat_completion(Agent(), [], {}, tracer=tracer)
        gen.set_status.assert_called_once_with("error")
