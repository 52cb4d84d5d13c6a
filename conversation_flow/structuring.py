"""Build the ordered id tree from the helper maps.

The id tree keeps every branch; choosing which branch to show happens later
in the transformation phase.
"""

import logging
from dataclasses import dataclass, field

from .indexing import HelperMaps

logger = logging.getLogger(__name__)


@dataclass
class IdNode:
    """A message id with its ordered children."""

    id: str
    children: list["IdNode"] = field(
        default_factory=lambda: []  # type: list[IdNode]
    )


def find_root_ids(helper_maps: HelperMaps) -> list[str]:
    """Return root message ids in input order.

    A root is a message without a parent, or whose parent is not part of
    the input. The latter covers thread views, where every message hangs
    off a source message that was not fetched: the missing parent acts as
    a virtual root.
    """
    message_map = helper_maps.message_map
    roots: list[str] = []
    for message_id, parent_id in helper_maps.parent_map.items():
        if parent_id is None:
            roots.append(message_id)
        elif parent_id not in message_map:
            logger.debug(
                "Message %s references missing parent %s, treating as root",
                message_id,
                parent_id,
            )
            roots.append(message_id)
    return roots


def build_id_tree(helper_maps: HelperMaps) -> list[IdNode]:
    """Build the id tree starting from the root messages.

    Uses an explicit work stack so that very long chains do not hit the
    recursion limit. Messages that can only be reached through a thread
    (not through the parent chain) are not part of the tree, and a visited
    set cuts parent cycles.
    """
    root_ids = find_root_ids(helper_maps)
    roots = [IdNode(root_id) for root_id in root_ids]

    visited: set[str] = set(root_ids)
    stack: list[IdNode] = list(roots)
    while stack:
        node = stack.pop()
        for child_id in helper_maps.children_of(node.id):
            if child_id in visited:
                logger.debug("Cycle at %s -> %s, child skipped", node.id, child_id)
                continue
            visited.add(child_id)
            child = IdNode(child_id)
            node.children.append(child)
            stack.append(child)

    return roots


def index_id_tree(roots: list[IdNode]) -> dict[str, IdNode]:
    """Map every id in the tree to its node."""
    nodes: dict[str, IdNode] = {}
    stack = list(roots)
    while stack:
        node = stack.pop()
        nodes[node.id] = node
        stack.extend(node.children)
    return nodes
