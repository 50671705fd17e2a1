"""
Pytest configuration and fixtures for agentrelay tests.
"""

import pytest

from mock_client import MockOpenAIClient, create_mock_response

DEFAULT_RESPONSE_CONTENT = "sample response content"


@pytest.fixture
def mock_openai_client():
    """Fake client answering every call with a plain assistant message."""
    client = MockOpenAIClient()
    client.set_response(
        create_mock_response({"role": "assistant", "content": DEFAULT_RESPONSE_CONTENT})
    )
    return client


@pytest.fixture(autouse=True)
def reset_tracing_client():
    """Ensure no tracing client leaks between tests."""
    from agentrelay.tracing import client as tracing_client

    tracing_client._tracing_client = None
    yield
    tracing_client._tracing_client = None
