"""Select the active child at a fork."""

import logging
from typing import Mapping, Optional, Sequence

from ..models import BranchInfo, Message

logger = logging.getLogger(__name__)


class BranchResolver:
    """Pick which child of a message the flat list follows.

    The choice is stored on the forking (parent) message as
    ``metadata.activeBranchIndex``. An index equal to the number of children
    means the UI has started a new branch that is not persisted yet
    (optimistic update): nothing is followed and no error is raised.
    """

    def get_active_index(self, message: Optional[Message]) -> int:
        """Return the requested branch index, defaulting to 0."""
        if message is None:
            return 0
        index = message.meta("activeBranchIndex")
        if index is None:
            return 0
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            logger.debug(
                "Invalid activeBranchIndex %r on %s, using 0", index, message.id
            )
            return 0
        return index

    def select(
        self, message: Optional[Message], child_ids: Sequence[str]
    ) -> Optional[str]:
        """Return the active child id among child_ids, or None to stop."""
        if not child_ids:
            return None
        if len(child_ids) == 1 and (
            message is None or message.meta("activeBranchIndex") is None
        ):
            return child_ids[0]

        index = self.get_active_index(message)
        if index < len(child_ids):
            return child_ids[index]
        if index > len(child_ids):
            # Not an optimistic placeholder: the stored index is stale
            logger.debug(
                "activeBranchIndex %d out of range for %d children of %s",
                index,
                len(child_ids),
                message.id if message else None,
            )
        return None

    def branch_info(
        self, message: Optional[Message], child_ids: Sequence[str]
    ) -> Optional[BranchInfo]:
        """Describe the fork for the selected child, None if not a fork."""
        if len(child_ids) < 2:
            return None
        index = self.get_active_index(message)
        if index >= len(child_ids):
            return None
        return BranchInfo(active_branch_index=index, count=len(child_ids))

    def resolve_active_child(
        self,
        message_id: str,
        children_map: Mapping[Optional[str], Sequence[str]],
        message_map: Mapping[str, Message],
    ) -> Optional[str]:
        """Resolve the active child of message_id from raw maps."""
        return self.select(
            message_map.get(message_id), children_map.get(message_id, ())
        )
