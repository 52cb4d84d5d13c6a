"""Build the context tree: semantic nodes mirroring every branch.

The grouping rules are the ones the flat list uses; the difference is what
happens where the conversation splits. Forks become branch nodes holding
one sequence per child, and compare columns and council members keep their
whole continuation instead of just their first unit.
"""

from typing import Optional

from ..indexing import HelperMaps
from ..models import (
    AgentCouncilNode,
    AssistantGroupNode,
    BranchNode,
    CompareNode,
    ContextNode,
    MessageNode,
    SupervisorNode,
    TasksNode,
)
from ..structuring import IdNode, index_id_tree
from .branch_resolver import BranchResolver
from .message_collector import MessageCollector
from .message_transformer import MessageTransformer, UnitKind

# Pending work: start a sequence at this node, appending into this list
Frame = tuple[IdNode, list[ContextNode]]


class ContextTreeBuilder:
    """Transform the id tree into context nodes, keeping all branches."""

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
        self._nodes: dict[str, IdNode] = {}

    def build(self, id_tree: list[IdNode]) -> list[ContextNode]:
        self._nodes = index_id_tree(id_tree)
        tree: list[ContextNode] = []
        stack: list[Frame] = []
        done: set[str] = set()
        transformer = self.message_transformer
        clusters = transformer.compare_root_clusters([r.id for r in id_tree])

        for root in id_tree:
            if root.id in done:
                continue
            group_id = None
            if clusters:
                group_id = transformer.compare_group_id(self.message_map[root.id])
            if group_id is not None:
                cluster = [self._nodes[r] for r in clusters[group_id]]
                done.update(r.id for r in cluster)
                tree.append(self._compare_node(group_id, group_id, cluster, stack))
            else:
                done.add(root.id)
                self._run(root, tree, stack)
            # Sequences split off by this root are completed before the next root
            while stack:
                node, out = stack.pop()
                self._run(node, out, stack)

        return tree

    # -- Sequences ------------------------------------------------------------

    def _run(self, start: IdNode, out: list[ContextNode], stack: list[Frame]) -> None:
        """Append the linear sequence starting at start; queue split-off sequences."""
        current: Optional[IdNode] = start
        while current is not None:
            anchor = self._emit_unit(current, out, stack)
            if anchor is None or not anchor.children:
                return
            current = self._next(anchor, anchor.children, out, stack)

    def _next(
        self,
        parent: IdNode,
        children: list[IdNode],
        out: list[ContextNode],
        stack: list[Frame],
    ) -> Optional[IdNode]:
        """Handle the children of parent; return the node to continue with."""
        transformer = self.message_transformer
        child_ids = [c.id for c in children]

        task_run = transformer.split_task_run(child_ids)
        if task_run is not None:
            task_ids, others = task_run
            item = transformer.to_tasks(task_ids)
            out.append(
                TasksNode(
                    id=item.id,
                    message_id=parent.id,
                    children=[MessageNode(t) for t in task_ids],
                    type=item.role,
                )
            )
            rest = [self._nodes[o] for o in others]
            return self._after_members(
                [self._nodes[t] for t in task_ids], rest, out, stack
            )

        cluster = transformer.compare_cluster(child_ids)
        if cluster is not None:
            group_id, column_ids, others = cluster
            columns = [self._nodes[c] for c in column_ids]
            out.append(self._compare_node(group_id, parent.id, columns, stack))
            if not others:
                return None
            return self._after_members([], [self._nodes[o] for o in others], out, stack)

        council = transformer.council_members(parent.id, child_ids)
        if council is not None:
            member_ids, others = council
            members: list[list[ContextNode]] = []
            for member_id in member_ids:
                sequence: list[ContextNode] = []
                stack.append((self._nodes[member_id], sequence))
                members.append(sequence)
            out.append(
                AgentCouncilNode(
                    id=f"agentCouncil-{parent.id}",
                    message_id=parent.id,
                    members=members,
                )
            )
            if not others:
                return None
            return self._after_members([], [self._nodes[o] for o in others], out, stack)

        return self._fork(parent, children, out, stack)

    def _fork(
        self,
        parent: IdNode,
        children: list[IdNode],
        out: list[ContextNode],
        stack: list[Frame],
    ) -> Optional[IdNode]:
        if len(children) == 1:
            return children[0]
        branches: list[list[ContextNode]] = []
        for child in children:
            sequence: list[ContextNode] = []
            stack.append((child, sequence))
            branches.append(sequence)
        out.append(
            BranchNode(
                id=f"branch-{parent.id}",
                parent_message_id=parent.id,
                active_branch_index=self.branch_resolver.get_active_index(
                    self.message_map.get(parent.id)
                ),
                branches=branches,
            )
        )
        return None

    def _after_members(
        self,
        members: list[IdNode],
        others: list[IdNode],
        out: list[ContextNode],
        stack: list[Frame],
    ) -> Optional[IdNode]:
        if others:
            if len(others) == 1:
                return others[0]
            # Several trailing siblings: treat them as a fork of the parent
            parent_id = self.helper_maps.parent_map.get(others[0].id)
            parent = self._nodes.get(parent_id) if parent_id else None
            if parent is None:
                return others[0]
            return self._fork(parent, others, out, stack)
        for member in reversed(members):
            if member.children:
                return self._next(member, member.children, out, stack)
        return None

    # -- Units ----------------------------------------------------------------

    def _emit_unit(
        self, node: IdNode, out: list[ContextNode], stack: list[Frame]
    ) -> Optional[IdNode]:
        """Append the node(s) for one message; return the node to continue from."""
        transformer = self.message_transformer
        message = self.message_map[node.id]
        kind = transformer.classify(message)

        if kind == UnitKind.ASSISTANT_GROUP:
            chain = self.message_collector.collect_assistant_chain(node.id)
            out.append(
                AssistantGroupNode(
                    id=node.id,
                    children=[MessageNode(m) for m in chain.member_ids],
                )
            )
            return self._nodes.get(chain.last_id)

        if kind == UnitKind.SUPERVISOR:
            out.append(SupervisorNode(node.id))
            return node

        out.append(MessageNode(node.id))
        if kind == UnitKind.COMPARE_USER and node.children:
            out.append(
                self._compare_node(f"compare-{node.id}", node.id, node.children, stack)
            )
            return None
        return node

    def _compare_node(
        self,
        item_id: str,
        message_id: str,
        columns: list[IdNode],
        stack: list[Frame],
    ) -> CompareNode:
        sequences: list[list[ContextNode]] = []
        for column in columns:
            sequence: list[ContextNode] = []
            stack.append((column, sequence))
            sequences.append(sequence)
        return CompareNode(
            id=item_id,
            message_id=message_id,
            columns=sequences,
            active_column_id=self.message_transformer.active_column_id(
                [c.id for c in columns]
            ),
        )
