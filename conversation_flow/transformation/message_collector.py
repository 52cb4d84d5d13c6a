"""Collect assistant tool-call chains and aggregate their usage.

A chain starts at an assistant message with tool calls, runs through the
tool messages answering those calls, and continues into the next assistant
turn of the same agent. It ends at a fork, a role change, a different agent,
a fan-out of tasks, or a dead end.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..indexing import HelperMaps
from ..models import ChatToolPayload, ChatToolResult, Message, MessageRole

# Token and cost counters summed across a chain
USAGE_FIELDS: Sequence[str] = (
    "totalInputTokens",
    "totalOutputTokens",
    "totalTokens",
    "inputTextTokens",
    "inputCachedTokens",
    "inputCacheMissTokens",
    "inputWriteCacheTokens",
    "inputAudioTokens",
    "inputImageTokens",
    "inputCitationTokens",
    "outputTextTokens",
    "outputReasoningTokens",
    "outputAudioTokens",
    "outputImageTokens",
    "acceptedPredictionTokens",
    "rejectedPredictionTokens",
    "cost",
)

# Timing counters; duration and latency are summed, ttft is taken from the
# first turn and tps is averaged
PERFORMANCE_FIELDS: Sequence[str] = ("duration", "latency", "ttft", "tps")

METADATA_ALLOW_LIST: frozenset[str] = frozenset(USAGE_FIELDS) | frozenset(
    PERFORMANCE_FIELDS
)


@dataclass
class AssistantChain:
    """Result of collecting one assistant tool-call chain.

    Attributes:
        member_ids: Every message of the chain in order, tool messages included.
        assistant_ids: Assistant turns only (one content block each).
        tool_ids: Tool result messages only.
        last_id: Message the conversation continues from after the chain.
        usage: Summed usage counters, None if no turn reported any.
        performance: Aggregated performance counters, None if none reported.
    """

    member_ids: list[str]
    assistant_ids: list[str]
    tool_ids: list[str]
    last_id: str
    usage: Optional[dict[str, float]] = None
    performance: Optional[dict[str, float]] = None


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def aggregate_usage(messages: Iterable[Message]) -> Optional[dict[str, float]]:
    """Sum allow-listed usage counters from message metadata."""
    totals: dict[str, float] = {}
    for message in messages:
        if not message.metadata:
            continue
        for key in USAGE_FIELDS:
            value = message.metadata.get(key)
            if _is_number(value):
                totals[key] = totals.get(key, 0) + value
    return totals or None


def aggregate_performance(
    messages: Iterable[Message],
) -> Optional[dict[str, float]]:
    """Combine allow-listed performance counters from message metadata."""
    totals: dict[str, float] = {}
    tps_values: list[float] = []
    for message in messages:
        if not message.metadata:
            continue
        for key in ("duration", "latency"):
            value = message.metadata.get(key)
            if _is_number(value):
                totals[key] = totals.get(key, 0) + value
        ttft = message.metadata.get("ttft")
        if _is_number(ttft) and "ttft" not in totals:
            totals["ttft"] = ttft
        tps = message.metadata.get("tps")
        if _is_number(tps):
            tps_values.append(tps)
    if tps_values:
        totals["tps"] = sum(tps_values) / len(tps_values)
    return totals or None


def pick_metadata(metadata: Optional[dict]) -> Optional[dict]:
    """Keep only usage and performance fields of a metadata dict."""
    if not metadata:
        return None
    kept = {k: v for k, v in metadata.items() if k in METADATA_ALLOW_LIST}
    return kept or None


class MessageCollector:
    """Gather linear chains of messages from the helper maps."""

    def __init__(self, helper_maps: HelperMaps):
        self.helper_maps = helper_maps
        self.message_map = helper_maps.message_map

    # -- Tool results ---------------------------------------------------------

    def tool_result_ids(self, message: Message) -> list[str]:
        """Return the tool messages answering message's tool calls.

        Tool messages matched by ``tool_call_id`` come first, in tool call
        order; unmatched tool children follow in insertion order.
        """
        tool_children = [
            child_id
            for child_id in self.helper_maps.children_of(message.id)
            if self.message_map[child_id].role == MessageRole.TOOL
        ]
        if not tool_children or not message.tools:
            return tool_children

        by_call_id: dict[str, str] = {}
        for child_id in tool_children:
            call_id = self.message_map[child_id].tool_call_id
            if call_id and call_id not in by_call_id:
                by_call_id[call_id] = child_id

        ordered: list[str] = []
        seen: set[str] = set()
        for tool in message.tools:
            child_id = by_call_id.get(tool.id)
            if child_id is not None and child_id not in seen:
                seen.add(child_id)
                ordered.append(child_id)
        ordered.extend(c for c in tool_children if c not in seen)
        return ordered

    def attach_tool_results(
        self, message: Message
    ) -> Optional[list[ChatToolPayload]]:
        """Return copies of message's tools with their results filled in.

        Results are matched by ``tool_call_id``; tool messages without one are
        paired with the remaining unanswered calls in order.
        """
        if not message.tools:
            return None

        tool_messages = [self.message_map[i] for i in self.tool_result_ids(message)]
        by_call_id = {m.tool_call_id: m for m in tool_messages if m.tool_call_id}
        unmatched = iter([m for m in tool_messages if not m.tool_call_id])

        tools: list[ChatToolPayload] = []
        for tool in message.tools:
            result_message = by_call_id.get(tool.id)
            if result_message is None:
                result_message = next(unmatched, None)
            if result_message is None:
                tools.append(tool)
                continue
            extra = result_message.extra_fields
            tools.append(
                tool.model_copy(
                    update={
                        "result_msg_id": result_message.id,
                        "result": ChatToolResult(
                            content=result_message.content,
                            error=extra.get("pluginError", extra.get("error")),
                            state=extra.get("pluginState"),
                        ),
                    }
                )
            )
        return tools

    # -- Chains ---------------------------------------------------------------

    def _continuation(self, anchor_id: str, agent_id: Optional[str]) -> Optional[str]:
        """Return the assistant turn continuing the chain after anchor_id."""
        child_ids = self.helper_maps.children_of(anchor_id)
        if len(child_ids) != 1:
            return None
        child = self.message_map[child_ids[0]]
        if child.role != MessageRole.ASSISTANT or child.agentId != agent_id:
            return None
        return child.id

    def collect_assistant_chain(self, start_id: str) -> AssistantChain:
        """Collect the tool-call chain starting at an assistant message."""
        first = self.message_map[start_id]
        agent_id = first.agentId

        member_ids: list[str] = []
        assistant_ids: list[str] = []
        tool_ids: list[str] = []
        seen: set[str] = set()

        current: Optional[Message] = first
        last_id = start_id
        while current is not None and current.id not in seen:
            seen.add(current.id)
            member_ids.append(current.id)
            assistant_ids.append(current.id)
            last_id = current.id
            if not current.tools:
                break

            results = self.tool_result_ids(current)
            if not results:
                break
            member_ids.extend(results)
            tool_ids.extend(results)
            seen.update(results)

            # The reply hangs off the last tool message that has children
            anchor_id = results[-1]
            for result_id in reversed(results):
                if self.helper_maps.children_of(result_id):
                    anchor_id = result_id
                    break
            last_id = anchor_id

            next_id = self._continuation(anchor_id, agent_id)
            current = self.message_map[next_id] if next_id is not None else None

        assistants = [self.message_map[i] for i in assistant_ids]
        return AssistantChain(
            member_ids=member_ids,
            assistant_ids=assistant_ids,
            tool_ids=tool_ids,
            last_id=last_id,
            usage=aggregate_usage(assistants),
            performance=aggregate_performance(assistants),
        )
