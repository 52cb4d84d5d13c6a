"""Classify structural units and build semantic items from them.

Classification follows a fixed priority; the first matching rule wins:

1. compressed group: passed through, never expanded
2. two or more sibling task messages: ``tasks`` / ``groupTasks``
3. compare: siblings in a ``compare`` message group, or the children of a
   user message flagged ``metadata.compare``
4. agent council: agent replies fanning out from a broadcast tool message
5. content-only supervisor turn: ``supervisor`` with content in children
6. assistant turn with tool calls: ``assistantGroup``
7. anything else: passthrough (``assistant`` relabelled ``supervisor`` when
   flagged ``metadata.isSupervisor``)
"""

from enum import Enum
from typing import Optional, Sequence, Union

from ..indexing import HelperMaps
from ..models import (
    AgentCouncilMessage,
    AssistantContentBlock,
    AssistantGroupMessage,
    BranchInfo,
    CompareMessage,
    DisplayMessage,
    FlatItem,
    Message,
    MessageRole,
    TasksMessage,
)
from .message_collector import (
    AssistantChain,
    MessageCollector,
    aggregate_performance,
    aggregate_usage,
    pick_metadata,
)

Timestamp = Optional[Union[int, float]]


class UnitKind(str, Enum):
    """Semantic kind of a single-message unit."""

    PASSTHROUGH = "passthrough"
    SUPERVISOR = "supervisor"
    ASSISTANT_GROUP = "assistantGroup"
    COMPARE_USER = "compareUser"


def _min_timestamp(values: Sequence[Timestamp]) -> Timestamp:
    present = [v for v in values if v is not None]
    return min(present) if present else None


def _max_timestamp(values: Sequence[Timestamp]) -> Timestamp:
    present = [v for v in values if v is not None]
    return max(present) if present else None


class MessageTransformer:
    """Turn messages and sibling runs into flat-list items."""

    def __init__(self, helper_maps: HelperMaps, collector: MessageCollector):
        self.helper_maps = helper_maps
        self.message_map = helper_maps.message_map
        self.collector = collector

    # -- Classification -------------------------------------------------------

    def classify(self, message: Message) -> UnitKind:
        """Classify a single message by the priority rules."""
        role = message.role
        if role == MessageRole.COMPRESSED_GROUP:
            return UnitKind.PASSTHROUGH
        if role == MessageRole.USER:
            if message.meta("compare") is True:
                return UnitKind.COMPARE_USER
            return UnitKind.PASSTHROUGH
        if role in (MessageRole.ASSISTANT, MessageRole.SUPERVISOR):
            if message.tools:
                return UnitKind.ASSISTANT_GROUP
            if message.is_supervisor:
                return UnitKind.SUPERVISOR
        return UnitKind.PASSTHROUGH

    def split_task_run(
        self, child_ids: Sequence[str]
    ) -> Optional[tuple[list[str], list[str]]]:
        """Split siblings into (tasks, others) when there are two or more tasks."""
        if len(child_ids) < 2:
            return None
        tasks = [
            child_id
            for child_id in child_ids
            if self.message_map[child_id].role == MessageRole.TASK
        ]
        if len(tasks) < 2:
            return None
        task_set = set(tasks)
        others = [child_id for child_id in child_ids if child_id not in task_set]
        return tasks, others

    def compare_group_id(self, message: Message) -> Optional[str]:
        """Return message's group id if that group is in compare mode."""
        if not message.groupId:
            return None
        group = self.helper_maps.message_group_map.get(message.groupId)
        if group is None or group.mode != "compare":
            return None
        return message.groupId

    def compare_cluster(
        self, child_ids: Sequence[str]
    ) -> Optional[tuple[str, list[str], list[str]]]:
        """Split siblings on the first compare group among them.

        Returns (group id, column ids, others); others are the siblings
        outside the group, in input order.
        """
        if not self.helper_maps.message_group_map:
            return None
        for child_id in child_ids:
            group_id = self.compare_group_id(self.message_map[child_id])
            if group_id is not None:
                columns: list[str] = []
                others: list[str] = []
                for c in child_ids:
                    if self.message_map[c].groupId == group_id:
                        columns.append(c)
                    else:
                        others.append(c)
                return group_id, columns, others
        return None

    def compare_root_clusters(self, root_ids: Sequence[str]) -> dict[str, list[str]]:
        """Bucket root ids by compare group id, keeping input order."""
        clusters: dict[str, list[str]] = {}
        if not self.helper_maps.message_group_map:
            return clusters
        for root_id in root_ids:
            group_id = self.compare_group_id(self.message_map[root_id])
            if group_id is not None:
                clusters.setdefault(group_id, []).append(root_id)
        return clusters

    def council_members(
        self, parent_id: Optional[str], child_ids: Sequence[str]
    ) -> Optional[tuple[list[str], list[str]]]:
        """Split a broadcast's replies into (members, others).

        A broadcast is a tool message flagged ``metadata.agentCouncil``, or a
        tool message answered by two or more agents with distinct ids.
        Supervisor replies are never members.
        """
        parent = self.helper_maps.get(parent_id)
        if parent is None or parent.role != MessageRole.TOOL or not child_ids:
            return None

        members: list[str] = []
        others: list[str] = []
        for child_id in child_ids:
            child = self.message_map[child_id]
            if child.role == MessageRole.ASSISTANT and not child.is_supervisor:
                members.append(child_id)
            else:
                others.append(child_id)
        if not members:
            return None

        if parent.meta("agentCouncil") is True:
            return members, others
        agent_ids = {self.message_map[m].agentId for m in members}
        if len(members) >= 2 and None not in agent_ids and len(agent_ids) == len(members):
            return members, others
        return None

    def active_column_id(self, column_ids: Sequence[str]) -> Optional[str]:
        """Return the column flagged ``metadata.activeColumn``, else the first."""
        for column_id in column_ids:
            if self.message_map[column_id].meta("activeColumn") is True:
                return column_id
        return column_ids[0] if column_ids else None

    # -- Item construction ----------------------------------------------------

    def display_role(self, message: Message) -> str:
        if message.role == MessageRole.ASSISTANT and message.is_supervisor:
            return MessageRole.SUPERVISOR.value
        return message.role

    def to_display(
        self, message: Message, branch: Optional[BranchInfo] = None
    ) -> DisplayMessage:
        return DisplayMessage(
            id=message.id,
            role=self.display_role(message),
            content=message.content,
            parent_id=message.parentId,
            thread_id=message.threadId,
            group_id=message.groupId,
            agent_id=message.agentId,
            tools=message.tools,
            tool_call_id=message.tool_call_id,
            metadata=message.metadata,
            created_at=message.createdAt,
            updated_at=message.updatedAt,
            task_detail=message.taskDetail,
            branch=branch,
            extra=message.extra_fields,
        )

    def to_content_block(
        self, message: Message, tools: Optional[list] = None
    ) -> AssistantContentBlock:
        extra = message.extra_fields
        return AssistantContentBlock(
            id=message.id,
            content=message.content,
            tools=tools,
            usage=aggregate_usage((message,)),
            performance=aggregate_performance((message,)),
            reasoning=extra.get("reasoning"),
            error=extra.get("error"),
        )

    def to_supervisor(
        self, message: Message, branch: Optional[BranchInfo] = None
    ) -> AssistantGroupMessage:
        """Fold a content-only supervisor turn into a single child block."""
        extra = message.extra_fields
        return AssistantGroupMessage(
            id=message.id,
            role=MessageRole.SUPERVISOR.value,
            children=[self.to_content_block(message)],
            content="",
            parent_id=message.parentId,
            agent_id=message.agentId,
            group_id=message.groupId,
            usage=aggregate_usage((message,)),
            performance=aggregate_performance((message,)),
            metadata=message.metadata,
            model=extra.get("model"),
            provider=extra.get("provider"),
            created_at=message.createdAt,
            updated_at=message.updatedAt,
            branch=branch,
        )

    def to_assistant_group(
        self, chain: AssistantChain, branch: Optional[BranchInfo] = None
    ) -> AssistantGroupMessage:
        """Build an assistant group from a collected chain.

        Each assistant turn becomes one content block with its tool results
        attached; tool messages themselves are not separate blocks.
        """
        assistants = [self.message_map[i] for i in chain.assistant_ids]
        first = assistants[0]
        last = assistants[-1]

        children: list[AssistantContentBlock] = []
        all_tools = []
        for assistant in assistants:
            tools = self.collector.attach_tool_results(assistant)
            if tools:
                all_tools.extend(tools)
            children.append(self.to_content_block(assistant, tools))

        members = [self.message_map[i] for i in chain.member_ids]
        extra = first.extra_fields
        return AssistantGroupMessage(
            id=first.id,
            role=(
                MessageRole.SUPERVISOR.value
                if first.is_supervisor
                else MessageRole.ASSISTANT_GROUP.value
            ),
            children=children,
            content="",
            parent_id=first.parentId,
            agent_id=first.agentId,
            group_id=first.groupId,
            tools=all_tools or None,
            usage=chain.usage,
            performance=chain.performance,
            metadata=pick_metadata(last.metadata),
            model=extra.get("model"),
            provider=extra.get("provider"),
            created_at=first.createdAt,
            updated_at=_max_timestamp([m.updatedAt for m in members]),
            branch=branch,
        )

    def to_tasks(
        self, task_ids: Sequence[str], branch: Optional[BranchInfo] = None
    ) -> TasksMessage:
        """Aggregate sibling task messages.

        Same agent everywhere gives ``tasks``; mixed agents give
        ``groupTasks``, whose id is prefixed to stay distinct from the first
        task's own id.
        """
        tasks = [self.message_map[i] for i in task_ids]
        agent_ids = {t.agentId for t in tasks}
        first = tasks[0]
        if len(agent_ids) > 1:
            role = MessageRole.GROUP_TASKS.value
            item_id = f"groupTasks-{first.id}"
            agent_id = None
        else:
            role = MessageRole.TASKS.value
            item_id = f"tasks-{first.id}"
            agent_id = first.agentId
        return TasksMessage(
            id=item_id,
            role=role,
            tasks=[self.to_display(t) for t in tasks],
            parent_id=first.parentId,
            agent_id=agent_id,
            created_at=_min_timestamp([t.createdAt for t in tasks]),
            updated_at=_max_timestamp([t.updatedAt for t in tasks]),
            branch=branch,
        )

    def to_compare(
        self,
        item_id: str,
        column_ids: Sequence[str],
        columns: list[list[FlatItem]],
        group_id: Optional[str] = None,
        branch: Optional[BranchInfo] = None,
    ) -> CompareMessage:
        messages = [self.message_map[i] for i in column_ids]
        return CompareMessage(
            id=item_id,
            columns=columns,
            active_column_id=self.active_column_id(column_ids),
            parent_id=messages[0].parentId if messages else None,
            group_id=group_id,
            created_at=_min_timestamp([m.createdAt for m in messages]),
            updated_at=_max_timestamp([m.updatedAt for m in messages]),
            branch=branch,
        )

    def to_agent_council(
        self,
        tool_id: str,
        member_ids: Sequence[str],
        members: list[list[FlatItem]],
        branch: Optional[BranchInfo] = None,
    ) -> AgentCouncilMessage:
        messages = [self.message_map[i] for i in member_ids]
        return AgentCouncilMessage(
            id=f"agentCouncil-{tool_id}",
            members=members,
            parent_id=tool_id,
            created_at=_min_timestamp([m.createdAt for m in messages]),
            updated_at=_max_timestamp([m.updatedAt for m in messages]),
            branch=branch,
        )

    # -- Message map normalisation --------------------------------------------

    def normalize_for_map(self, message: Message) -> Message:
        """Return the message as exposed in the parse result's message map.

        Supervisor assistants are relabelled ``supervisor``; assistants with
        tool calls keep only usage and performance metadata. The input
        message is never modified.
        """
        update: dict[str, object] = {}
        if message.role == MessageRole.ASSISTANT and message.is_supervisor:
            update["role"] = MessageRole.SUPERVISOR.value
        if message.tools and message.metadata:
            update["metadata"] = pick_metadata(message.metadata)
        if not update:
            return message
        return message.model_copy(update=update)
