"""Models for conversation flow input records and parse output.

Input records (messages, tool payloads, message groups) are pydantic models
whose field names follow the service layer's JSON verbatim. Everything the
engine derives from them (semantic flat-list items, context tree nodes) is a
plain dataclass: cheap to build on every re-parse and trivially serialisable.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel


class MessageRole(str, Enum):
    """Roles the engine knows about.

    The role set on input is open: anything not listed here is passed
    through untouched. Using str as base class keeps plain string
    comparisons working.

    Input roles:
    - USER, ASSISTANT, TOOL, TASK, SYSTEM, COMPRESSED_GROUP, SUPERVISOR

    Output roles (synthesised by the transformer):
    - ASSISTANT_GROUP, TASKS, GROUP_TASKS, COMPARE, AGENT_COUNCIL
    """

    # Input roles
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    TASK = "task"
    SYSTEM = "system"
    COMPRESSED_GROUP = "compressedGroup"
    SUPERVISOR = "supervisor"

    # Synthesised roles
    ASSISTANT_GROUP = "assistantGroup"
    TASKS = "tasks"
    GROUP_TASKS = "groupTasks"
    COMPARE = "compare"
    AGENT_COUNCIL = "agentCouncil"


# =============================================================================
# Input Models
# =============================================================================


class TextPart(BaseModel):
    type: Literal["text"]
    text: str


class ImageUrl(BaseModel):
    url: str
    detail: Optional[str] = None


class ImageUrlPart(BaseModel):
    type: Literal["image_url"]
    image_url: ImageUrl


ContentPart = Union[TextPart, ImageUrlPart]

# Message content is either plain text or a list of typed parts
MessageContentValue = Union[str, list[ContentPart]]


class ChatToolResult(BaseModel):
    """Result of a tool call, copied from the tool message that answered it."""

    content: Any = None
    error: Any = None
    state: Any = None


class ChatToolPayload(BaseModel):
    """A tool invocation attached to an assistant message."""

    id: str
    apiName: str = ""
    identifier: str = ""
    arguments: str = ""
    type: str = "default"
    result_msg_id: Optional[str] = None
    result: Optional[ChatToolResult] = None

    model_config = {"extra": "allow"}


class Message(BaseModel):
    """A single chat message as delivered by the message service.

    Unknown fields (model, provider, reasoning, error, ...) are kept so that
    they reach the renderer unchanged.
    """

    id: str
    role: str
    content: MessageContentValue = ""
    parentId: Optional[str] = None
    threadId: Optional[str] = None
    groupId: Optional[str] = None
    agentId: Optional[str] = None
    tools: Optional[list[ChatToolPayload]] = None
    tool_call_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    createdAt: Optional[Union[int, float]] = None
    updatedAt: Optional[Union[int, float]] = None
    taskDetail: Optional[dict[str, Any]] = None

    model_config = {"extra": "allow"}

    def meta(self, key: str, default: Any = None) -> Any:
        """Read a metadata key, tolerating a missing metadata dict."""
        if not self.metadata:
            return default
        return self.metadata.get(key, default)

    @property
    def has_tools(self) -> bool:
        return bool(self.tools)

    @property
    def is_supervisor(self) -> bool:
        return self.meta("isSupervisor") is True

    @property
    def extra_fields(self) -> dict[str, Any]:
        return dict(self.model_extra) if self.model_extra else {}


class MessageGroupMetadata(BaseModel):
    """Describes a set of sibling messages sharing a ``groupId``."""

    id: str
    mode: Optional[str] = None

    model_config = {"extra": "allow"}


# =============================================================================
# Flat List Items
# =============================================================================
# Render-ready semantic items. The flat list holds exactly one branch of the
# conversation; the renderer walks it top to bottom.


@dataclass
class BranchInfo:
    """Which child of a fork is shown, attached to that child's item."""

    active_branch_index: int
    count: int


@dataclass
class DisplayMessage:
    """A message passed through to the renderer unchanged (except role)."""

    id: str
    role: str
    content: MessageContentValue
    parent_id: Optional[str] = None
    thread_id: Optional[str] = None
    group_id: Optional[str] = None
    agent_id: Optional[str] = None
    tools: Optional[list[ChatToolPayload]] = None
    tool_call_id: Optional[str] = field(
        default=None, metadata={"alias": "tool_call_id"}
    )
    metadata: Optional[dict[str, Any]] = None
    created_at: Optional[Union[int, float]] = None
    updated_at: Optional[Union[int, float]] = None
    task_detail: Optional[dict[str, Any]] = None
    branch: Optional[BranchInfo] = None
    extra: dict[str, Any] = field(default_factory=lambda: {})


@dataclass
class AssistantContentBlock:
    """One assistant turn inside an assistant group."""

    id: str
    content: MessageContentValue
    tools: Optional[list[ChatToolPayload]] = None
    usage: Optional[dict[str, float]] = None
    performance: Optional[dict[str, float]] = None
    reasoning: Any = None
    error: Any = None


@dataclass
class AssistantGroupMessage:
    """Consecutive assistant turns chained through tool calls.

    Also used for supervisor turns: a supervisor with tools keeps its chain
    under role ``supervisor``; a content-only supervisor turn has its content
    moved into a single child block and its own content left empty.
    """

    id: str
    role: str
    children: list[AssistantContentBlock]
    content: str = ""
    parent_id: Optional[str] = None
    agent_id: Optional[str] = None
    group_id: Optional[str] = None
    tools: Optional[list[ChatToolPayload]] = None
    usage: Optional[dict[str, float]] = None
    performance: Optional[dict[str, float]] = None
    metadata: Optional[dict[str, Any]] = None
    model: Optional[str] = None
    provider: Optional[str] = None
    created_at: Optional[Union[int, float]] = None
    updated_at: Optional[Union[int, float]] = None
    branch: Optional[BranchInfo] = None


@dataclass
class TasksMessage:
    """Two or more sibling task messages shown as one block.

    Role is ``tasks`` when every task shares one agent, ``groupTasks`` when
    several agents ran in parallel.
    """

    id: str
    role: str
    tasks: list[DisplayMessage]
    content: str = ""
    parent_id: Optional[str] = None
    agent_id: Optional[str] = None
    created_at: Optional[Union[int, float]] = None
    updated_at: Optional[Union[int, float]] = None
    branch: Optional[BranchInfo] = None


@dataclass
class CompareMessage:
    """Parallel answers rendered side by side, one column per answer."""

    id: str
    columns: list[list["FlatItem"]]
    active_column_id: Optional[str] = None
    role: str = MessageRole.COMPARE.value
    content: str = ""
    parent_id: Optional[str] = None
    group_id: Optional[str] = None
    created_at: Optional[Union[int, float]] = None
    updated_at: Optional[Union[int, float]] = None
    branch: Optional[BranchInfo] = None


@dataclass
class AgentCouncilMessage:
    """Replies of several agents to one supervisor broadcast."""

    id: str
    members: list[list["FlatItem"]]
    role: str = MessageRole.AGENT_COUNCIL.value
    content: str = ""
    parent_id: Optional[str] = None
    created_at: Optional[Union[int, float]] = None
    updated_at: Optional[Union[int, float]] = None
    branch: Optional[BranchInfo] = None


FlatItem = Union[
    DisplayMessage,
    AssistantGroupMessage,
    TasksMessage,
    CompareMessage,
    AgentCouncilMessage,
]


# =============================================================================
# Context Tree Nodes
# =============================================================================
# Navigation structure mirroring every branch. Nodes reference messages by id
# only; look the ids up in ParseResult.message_map.


@dataclass
class MessageNode:
    id: str
    type: str = "message"


@dataclass
class SupervisorNode:
    id: str
    type: str = "supervisor"


@dataclass
class AssistantGroupNode:
    id: str
    children: list[MessageNode]  # every chain member, tool messages included
    type: str = "assistantGroup"


@dataclass
class TasksNode:
    id: str
    message_id: str  # parent the tasks were spawned from
    children: list[MessageNode]
    type: str = "tasks"


@dataclass
class CompareNode:
    id: str
    message_id: str
    columns: list[list["ContextNode"]]
    active_column_id: Optional[str] = None
    type: str = "compare"


@dataclass
class AgentCouncilNode:
    id: str
    message_id: str
    members: list[list["ContextNode"]]
    type: str = "agentCouncil"


@dataclass
class BranchNode:
    id: str
    parent_message_id: str
    active_branch_index: int
    branches: list[list["ContextNode"]]
    type: str = "branch"


ContextNode = Union[
    MessageNode,
    SupervisorNode,
    AssistantGroupNode,
    TasksNode,
    CompareNode,
    AgentCouncilNode,
    BranchNode,
]
