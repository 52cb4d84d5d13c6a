"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from test.builders import assistant, tool, tool_call, user


@pytest.fixture
def test_data_dir() -> Path:
    """Return path to test data directory."""
    return Path(__file__).parent / "test_data"


@pytest.fixture
def tool_chain_messages() -> list[dict]:
    """User question, assistant tool call, tool result, follow-up answer."""
    return [
        user("msg-1"),
        assistant(
            "msg-2",
            "msg-1",
            tools=[tool_call("call-1")],
            metadata={"totalTokens": 10, "duration": 100, "ttft": 5, "tps": 20},
        ),
        tool("tool-1", "msg-2", tool_call_id="call-1", content="search results"),
        assistant(
            "msg-3",
            "tool-1",
            content="Here is the answer",
            metadata={"totalTokens": 5, "duration": 50, "ttft": 9, "tps": 30},
        ),
        user("msg-4", "msg-3"),
    ]
