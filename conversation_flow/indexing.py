"""Build O(1) lookup structures from a flat message list.

This is the first phase of parsing. Everything later (structuring, branch
resolution, grouping) reads these maps instead of rescanning the message
list, which keeps a full re-parse linear in the number of messages.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .models import Message, MessageGroupMetadata, MessageRole

_NO_CHILDREN: Sequence[str] = ()


@dataclass
class HelperMaps:
    """Lookup maps rebuilt on every parse call.

    Attributes:
        message_map: id -> Message (last occurrence wins on duplicate ids).
        children_map: parent id (None for roots) -> ordered child ids, with
            compressed-group redirection applied.
        parent_map: id -> effective parent id after redirection.
        thread_map: threadId -> messages of that thread, in input order.
        message_group_map: groupId -> group metadata.
    """

    message_map: dict[str, Message] = field(
        default_factory=lambda: {}  # type: dict[str, Message]
    )
    children_map: dict[Optional[str], list[str]] = field(
        default_factory=lambda: {}  # type: dict[Optional[str], list[str]]
    )
    parent_map: dict[str, Optional[str]] = field(
        default_factory=lambda: {}  # type: dict[str, Optional[str]]
    )
    thread_map: dict[str, list[Message]] = field(
        default_factory=lambda: {}  # type: dict[str, list[Message]]
    )
    message_group_map: dict[str, MessageGroupMetadata] = field(
        default_factory=lambda: {}  # type: dict[str, MessageGroupMetadata]
    )

    def get(self, message_id: Optional[str]) -> Optional[Message]:
        if message_id is None:
            return None
        return self.message_map.get(message_id)

    def children_of(self, message_id: Optional[str]) -> Sequence[str]:
        """Return the children of a message that belong to its conversation.

        A child carrying a threadId different from its parent's is a
        side-thread message and is left out.
        """
        child_ids = self.children_map.get(message_id)
        if not child_ids:
            return _NO_CHILDREN
        if not self.thread_map:
            return child_ids

        parent = self.get(message_id)
        parent_thread = parent.threadId if parent is not None else None
        visible: list[str] = []
        for child_id in child_ids:
            thread_id = self.message_map[child_id].threadId
            if thread_id and thread_id != parent_thread:
                continue
            visible.append(child_id)
        return visible


def build_helper_maps(
    messages: Iterable[Message],
    message_groups: Optional[Iterable[MessageGroupMetadata]] = None,
) -> HelperMaps:
    """Index messages and group metadata for constant-time lookups.

    Compressed groups hide a run of older messages; any message replying to
    the last hidden message (the group's ``metadata.lastMessageId``) is
    re-parented to the compressed group itself.
    """
    messages = list(messages)
    maps = HelperMaps()

    # Pass 1: compressed group redirection targets
    redirects: dict[str, str] = {}
    for message in messages:
        if message.role == MessageRole.COMPRESSED_GROUP:
            last_message_id = message.meta("lastMessageId")
            if isinstance(last_message_id, str) and last_message_id:
                redirects[last_message_id] = message.id

    # Pass 2: main index
    message_map = maps.message_map
    children_map = maps.children_map
    parent_map = maps.parent_map
    for message in messages:
        message_id = message.id
        is_duplicate = message_id in message_map
        message_map[message_id] = message
        if is_duplicate:
            # Keep the first position in children_map, last content wins
            continue

        parent_id = message.parentId or None
        if parent_id is not None and redirects:
            target = redirects.get(parent_id)
            if target is not None and target != message_id:
                parent_id = target
        parent_map[message_id] = parent_id

        siblings = children_map.get(parent_id)
        if siblings is None:
            children_map[parent_id] = [message_id]
        else:
            siblings.append(message_id)

        if message.threadId:
            maps.thread_map.setdefault(message.threadId, []).append(message)

    if message_groups:
        for group in message_groups:
            maps.message_group_map[group.id] = group

    return maps
