#!/usr/bin/env python3
"""Tests for assistant chain collection and usage aggregation."""

from conversation_flow.factories import create_message
from conversation_flow.indexing import build_helper_maps
from conversation_flow.models import Message
from conversation_flow.transformation import (
    MessageCollector,
    aggregate_performance,
    aggregate_usage,
    pick_metadata,
)
from test.builders import assistant, tool, tool_call, user


def _collector(raw) -> MessageCollector:
    return MessageCollector(build_helper_maps([create_message(r) for r in raw]))


class TestAggregation:
    def test_usage_summed_and_filtered(self):
        messages = [
            Message(
                id="a", role="assistant", metadata={"totalTokens": 10, "cost": 0.5}
            ),
            Message(
                id="b",
                role="assistant",
                metadata={"totalTokens": 5, "someCustomField": 99},
            ),
            Message(id="c", role="assistant"),
        ]
        assert aggregate_usage(messages) == {"totalTokens": 15, "cost": 0.5}

    def test_usage_none_when_absent(self):
        assert aggregate_usage([Message(id="a", role="assistant")]) is None

    def test_non_numeric_ignored(self):
        messages = [
            Message(
                id="a",
                role="assistant",
                metadata={"totalTokens": "10", "inputTextTokens": True},
            )
        ]
        assert aggregate_usage(messages) is None

    def test_performance(self):
        messages = [
            Message(
                id="a",
                role="assistant",
                metadata={"duration": 100, "latency": 10, "ttft": 5, "tps": 20},
            ),
            Message(
                id="b",
                role="assistant",
                metadata={"duration": 50, "latency": 20, "ttft": 9, "tps": 30},
            ),
        ]
        assert aggregate_performance(messages) == {
            "duration": 150,
            "latency": 30,
            "ttft": 5,
            "tps": 25.0,
        }

    def test_pick_metadata(self):
        assert pick_metadata({"totalTokens": 1, "activeBranchIndex": 0}) == {
            "totalTokens": 1
        }
        assert pick_metadata({"activeBranchIndex": 0}) is None
        assert pick_metadata(None) is None


class TestToolResults:
    def test_ordered_by_tool_call(self):
        collector = _collector(
            [
                assistant(
                    "msg-1", tools=[tool_call("call-a"), tool_call("call-b")]
                ),
                tool("tool-b", "msg-1", tool_call_id="call-b"),
                tool("tool-a", "msg-1", tool_call_id="call-a"),
            ]
        )
        message = collector.message_map["msg-1"]
        assert collector.tool_result_ids(message) == ["tool-a", "tool-b"]

    def test_attach_results(self):
        collector = _collector(
            [
                assistant(
                    "msg-1", tools=[tool_call("call-a"), tool_call("call-b")]
                ),
                tool(
                    "tool-a",
                    "msg-1",
                    tool_call_id="call-a",
                    content="result a",
                    pluginState={"page": 2},
                ),
                tool(
                    "tool-b",
                    "msg-1",
                    tool_call_id="call-b",
                    content="",
                    pluginError={"message": "timeout"},
                ),
            ]
        )
        original = collector.message_map["msg-1"]
        tools = collector.attach_tool_results(original)

        assert tools is not None
        assert tools[0].result_msg_id == "tool-a"
        assert tools[0].result is not None
        assert tools[0].result.content == "result a"
        assert tools[0].result.state == {"page": 2}
        assert tools[1].result_msg_id == "tool-b"
        assert tools[1].result is not None
        assert tools[1].result.error == {"message": "timeout"}
        # Copy-on-write: the indexed message is untouched
        assert original.tools is not None
        assert original.tools[0].result_msg_id is None

    def test_positional_fallback(self):
        collector = _collector(
            [
                assistant("msg-1", tools=[tool_call("call-a")]),
                tool("tool-a", "msg-1"),
            ]
        )
        tools = collector.attach_tool_results(collector.message_map["msg-1"])
        assert tools is not None
        assert tools[0].result_msg_id == "tool-a"

    def test_unanswered_call(self):
        collector = _collector([assistant("msg-1", tools=[tool_call("call-a")])])
        tools = collector.attach_tool_results(collector.message_map["msg-1"])
        assert tools is not None
        assert tools[0].result is None


class TestCollectAssistantChain:
    def test_chain_through_tool(self, tool_chain_messages):
        collector = _collector(tool_chain_messages)
        chain = collector.collect_assistant_chain("msg-2")

        assert chain.member_ids == ["msg-2", "tool-1", "msg-3"]
        assert chain.assistant_ids == ["msg-2", "msg-3"]
        assert chain.tool_ids == ["tool-1"]
        assert chain.last_id == "msg-3"
        assert chain.usage == {"totalTokens": 15}

    def test_multi_step_chain(self):
        collector = _collector(
            [
                user("msg-1"),
                assistant("msg-2", "msg-1", tools=[tool_call("call-1")]),
                tool("tool-1", "msg-2", tool_call_id="call-1"),
                assistant("msg-3", "tool-1", tools=[tool_call("call-2")]),
                tool("tool-2", "msg-3", tool_call_id="call-2"),
                assistant("msg-4", "tool-2"),
            ]
        )
        chain = collector.collect_assistant_chain("msg-2")
        assert chain.assistant_ids == ["msg-2", "msg-3", "msg-4"]
        assert chain.last_id == "msg-4"

    def test_user_reply_to_tool_ends_chain(self):
        collector = _collector(
            [
                assistant("msg-1", tools=[tool_call("call-1")]),
                tool("tool-1", "msg-1", tool_call_id="call-1"),
                user("msg-2", "tool-1"),
            ]
        )
        chain = collector.collect_assistant_chain("msg-1")
        assert chain.member_ids == ["msg-1", "tool-1"]
        assert chain.last_id == "tool-1"

    def test_different_agent_ends_chain(self):
        collector = _collector(
            [
                assistant("msg-1", tools=[tool_call("call-1")], agentId="agent-a"),
                tool("tool-1", "msg-1", tool_call_id="call-1"),
                assistant("msg-2", "tool-1", agentId="agent-b"),
            ]
        )
        chain = collector.collect_assistant_chain("msg-1")
        assert chain.assistant_ids == ["msg-1"]
        assert chain.last_id == "tool-1"

    def test_fork_after_tool_ends_chain(self):
        collector = _collector(
            [
                assistant("msg-1", tools=[tool_call("call-1")]),
                tool("tool-1", "msg-1", tool_call_id="call-1"),
                assistant("msg-2", "tool-1"),
                assistant("msg-3", "tool-1"),
            ]
        )
        chain = collector.collect_assistant_chain("msg-1")
        assert chain.assistant_ids == ["msg-1"]
        assert chain.last_id == "tool-1"

    def test_assistant_without_tools(self):
        collector = _collector([assistant("msg-1")])
        chain = collector.collect_assistant_chain("msg-1")
        assert chain.member_ids == ["msg-1"]
        assert chain.last_id == "msg-1"
        assert chain.usage is None
