"""Parse entry point: messages in, context tree and flat list out.

Parsing is a pure function of ``(messages, message_groups)`` and runs in
three phases:

1. Indexing: lookup maps (``indexing``)
2. Structuring: the ordered id tree (``structuring``)
3. Transformation: context tree and flat list (``transformation``)

Nothing is cached between calls; every call rebuilds everything, so the
same input always gives the same output.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from . import parse_timings
from .factories import create_message_group, ensure_message
from .indexing import build_helper_maps
from .models import ContextNode, FlatItem, Message, MessageGroupMetadata
from .serialization import to_plain
from .structuring import build_id_tree
from .transformation import (
    BranchResolver,
    ContextTreeBuilder,
    FlatListBuilder,
    MessageCollector,
    MessageTransformer,
)

MessageInput = Union[Message, dict[str, Any]]
MessageGroupInput = Union[MessageGroupMetadata, dict[str, Any]]


@dataclass
class ParseResult:
    """Output of a parse call.

    Attributes:
        context_tree: Navigation nodes covering every branch.
        flat_list: Render-ready items for the active path only.
        message_map: Every input message by id, normalised for display.
    """

    context_tree: list[ContextNode] = field(
        default_factory=lambda: []  # type: list[ContextNode]
    )
    flat_list: list[FlatItem] = field(
        default_factory=lambda: []  # type: list[FlatItem]
    )
    message_map: dict[str, Message] = field(
        default_factory=lambda: {}  # type: dict[str, Message]
    )

    def to_dict(self) -> dict[str, Any]:
        """Return the result as plain JSON-compatible data."""
        return {
            "contextTree": to_plain(self.context_tree),
            "flatList": to_plain(self.flat_list),
            "messageMap": to_plain(self.message_map),
        }


def parse(
    messages: Iterable[MessageInput],
    message_groups: Optional[Iterable[MessageGroupInput]] = None,
) -> ParseResult:
    """Parse a flat list of messages into a context tree and a flat list.

    Args:
        messages: Messages in display order, as models or raw dicts.
        message_groups: Optional metadata for ``groupId`` groups (compare mode).

    Raises:
        pydantic.ValidationError: If a raw dict lacks a required field.
    """
    t_start = time.time() if parse_timings.DEBUG_TIMING else None

    with parse_timings.log_timing("Validation", t_start):
        message_list = [ensure_message(m) for m in messages]
        group_list = [create_message_group(g) for g in message_groups or ()]

    with parse_timings.log_timing(
        lambda: f"Indexing ({len(message_list)} messages)", t_start
    ):
        helper_maps = build_helper_maps(message_list, group_list)

    with parse_timings.log_timing("Structuring", t_start):
        id_tree = build_id_tree(helper_maps)

    branch_resolver = BranchResolver()
    collector = MessageCollector(helper_maps)
    transformer = MessageTransformer(helper_maps, collector)

    with parse_timings.log_timing("Context tree", t_start):
        context_tree = ContextTreeBuilder(
            helper_maps, branch_resolver, collector, transformer
        ).build(id_tree)

    flat_list: list[FlatItem] = []
    with parse_timings.log_timing(
        lambda: f"Flat list ({len(flat_list)} items)", t_start
    ):
        flat_list = FlatListBuilder(
            helper_maps, branch_resolver, collector, transformer
        ).flatten(message_list)

    with parse_timings.log_timing("Message map", t_start):
        message_map = {
            message_id: transformer.normalize_for_map(message)
            for message_id, message in helper_maps.message_map.items()
        }

    return ParseResult(
        context_tree=context_tree, flat_list=flat_list, message_map=message_map
    )
