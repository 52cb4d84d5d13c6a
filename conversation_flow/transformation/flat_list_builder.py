"""Flatten the active path of a conversation into render-ready items."""

from typing import Optional, Sequence

from ..indexing import HelperMaps
from ..models import BranchInfo, FlatItem, Message
from ..structuring import find_root_ids
from .branch_resolver import BranchResolver
from .message_collector import MessageCollector
from .message_transformer import MessageTransformer, UnitKind

# Where the walk continues: (message id, its children), None to stop
Position = Optional[tuple[Optional[str], Sequence[str]]]


class FlatListBuilder:
    """Build the flat list: one semantic item per step of the active path.

    Each step classifies the children of the current position, emits one
    item and continues from the last message that item covers. At a plain
    fork exactly one child is followed, chosen by the BranchResolver.
    """

    def __init__(
        self,
        helper_maps: HelperMaps,
        branch_resolver: BranchResolver,
        message_collector: MessageCollector,
        message_transformer: MessageTransformer,
    ):
        self.helper_maps = helper_maps
        self.message_map = helper_maps.message_map
        self.branch_resolver = branch_resolver
        self.message_collector = message_collector
        self.message_transformer = message_transformer

    def flatten(self, messages: Optional[Sequence[Message]] = None) -> list[FlatItem]:
        """Return the flat list, walking from the roots among ``messages``.

        Roots are visited in the order ``messages`` lists them; entries that
        are not roots of the indexed maps are skipped. Without ``messages``
        every root is walked in input order.
        """
        result: list[FlatItem] = []
        visited: set[str] = set()
        transformer = self.message_transformer

        root_ids = find_root_ids(self.helper_maps)
        if messages is not None:
            root_ids = self._roots_among(messages, root_ids)
        # Root-level compare columns share a group id, not a parent
        clusters = transformer.compare_root_clusters(root_ids)
        for root_id in root_ids:
            if root_id in visited:
                continue
            group_id = None
            if clusters:
                group_id = transformer.compare_group_id(self.message_map[root_id])
            if group_id is not None:
                position = self._emit_compare(
                    group_id, clusters[group_id], group_id, None, result, visited
                )
            else:
                position = self._emit_unit(root_id, None, result, visited)
            self._walk(position, result, visited)

        return result

    @staticmethod
    def _roots_among(messages: Sequence[Message], root_ids: list[str]) -> list[str]:
        candidates = set(root_ids)
        roots: list[str] = []
        for message in messages:
            if message.id in candidates:
                candidates.discard(message.id)
                roots.append(message.id)
        return roots

    # -- Walk -----------------------------------------------------------------

    def _walk(
        self, position: Position, result: list[FlatItem], visited: set[str]
    ) -> None:
        while position is not None:
            parent_id, child_ids = position
            if not child_ids:
                return
            position = self._step(parent_id, child_ids, result, visited)

    def _step(
        self,
        parent_id: Optional[str],
        child_ids: Sequence[str],
        result: list[FlatItem],
        visited: set[str],
    ) -> Position:
        """Emit the item for the children of parent_id, return the next position."""
        transformer = self.message_transformer

        task_run = transformer.split_task_run(child_ids)
        if task_run is not None:
            task_ids, others = task_run
            if any(t in visited for t in task_ids):
                return None
            visited.update(task_ids)
            result.append(transformer.to_tasks(task_ids))
            return self._after_members(parent_id, task_ids, others)

        cluster = transformer.compare_cluster(child_ids)
        if cluster is not None:
            group_id, column_ids, others = cluster
            position = self._emit_compare(
                group_id, column_ids, group_id, None, result, visited
            )
            # Siblings outside the group follow the compare item
            if others:
                return parent_id, others
            return position

        council = transformer.council_members(parent_id, child_ids)
        if council is not None:
            member_ids, others = council
            if any(m in visited for m in member_ids):
                return None
            members: list[list[FlatItem]] = []
            anchors: list[str] = []
            for member_id in member_ids:
                column: list[FlatItem] = []
                anchors.append(
                    self._emit_unit_anchor(member_id, None, column, visited)
                )
                members.append(column)
            result.append(
                transformer.to_agent_council(parent_id or "", member_ids, members)
            )
            return self._after_members(parent_id, anchors, others)

        parent = self.helper_maps.get(parent_id)
        chosen_id = self.branch_resolver.select(parent, child_ids)
        if chosen_id is None:
            return None
        branch = self.branch_resolver.branch_info(parent, child_ids)
        return self._emit_unit(chosen_id, branch, result, visited)

    def _after_members(
        self, parent_id: Optional[str], member_ids: Sequence[str], others: Sequence[str]
    ) -> Position:
        """Continue after a tasks or council item.

        A trailing sibling (typically a summary turn) wins; otherwise the walk
        descends from the last member that has replies.
        """
        if others:
            return parent_id, others
        for member_id in reversed(member_ids):
            child_ids = self.helper_maps.children_of(member_id)
            if child_ids:
                return member_id, child_ids
        return None

    # -- Units ----------------------------------------------------------------

    def _emit_unit(
        self,
        message_id: str,
        branch: Optional[BranchInfo],
        result: list[FlatItem],
        visited: set[str],
    ) -> Position:
        if message_id in visited:
            return None
        message = self.message_map[message_id]
        kind = self.message_transformer.classify(message)
        if kind == UnitKind.COMPARE_USER:
            visited.add(message_id)
            result.append(self.message_transformer.to_display(message, branch))
            column_ids = self.helper_maps.children_of(message_id)
            if not column_ids:
                return None
            return self._emit_compare(
                f"compare-{message_id}", column_ids, None, None, result, visited
            )

        anchor_id = self._emit_unit_anchor(message_id, branch, result, visited, kind)
        return anchor_id, self.helper_maps.children_of(anchor_id)

    def _emit_unit_anchor(
        self,
        message_id: str,
        branch: Optional[BranchInfo],
        result: list[FlatItem],
        visited: set[str],
        kind: Optional[UnitKind] = None,
    ) -> str:
        """Emit the item for one message and return the id to continue from."""
        transformer = self.message_transformer
        message = self.message_map[message_id]
        if kind is None:
            kind = transformer.classify(message)

        if kind == UnitKind.ASSISTANT_GROUP:
            chain = self.message_collector.collect_assistant_chain(message_id)
            visited.update(chain.member_ids)
            result.append(transformer.to_assistant_group(chain, branch))
            return chain.last_id

        visited.add(message_id)
        if kind == UnitKind.SUPERVISOR:
            result.append(transformer.to_supervisor(message, branch))
        else:
            result.append(transformer.to_display(message, branch))
        return message_id

    def _emit_compare(
        self,
        item_id: str,
        column_ids: Sequence[str],
        group_id: Optional[str],
        branch: Optional[BranchInfo],
        result: list[FlatItem],
        visited: set[str],
    ) -> Position:
        """Emit a compare item; the walk continues below the active column."""
        column_ids = [c for c in column_ids if c not in visited]
        if not column_ids:
            return None

        columns: list[list[FlatItem]] = []
        anchors: dict[str, str] = {}
        for column_id in column_ids:
            column: list[FlatItem] = []
            anchors[column_id] = self._emit_unit_anchor(
                column_id, None, column, visited
            )
            columns.append(column)

        transformer = self.message_transformer
        result.append(
            transformer.to_compare(item_id, column_ids, columns, group_id, branch)
        )
        active_id = transformer.active_column_id(column_ids)
        if active_id is None:
            return None
        anchor_id = anchors[active_id]
        return anchor_id, self.helper_maps.children_of(anchor_id)
