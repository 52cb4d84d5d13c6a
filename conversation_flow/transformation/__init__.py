"""Transformation phase: branch selection, grouping and output building."""

from .branch_resolver import BranchResolver
from .context_tree_builder import ContextTreeBuilder
from .flat_list_builder import FlatListBuilder
from .message_collector import (
    AssistantChain,
    MessageCollector,
    aggregate_performance,
    aggregate_usage,
    pick_metadata,
)
from .message_transformer import MessageTransformer, UnitKind

__all__ = [
    # Branch selection
    "BranchResolver",
    # Chain collection and aggregation
    "AssistantChain",
    "MessageCollector",
    "aggregate_performance",
    "aggregate_usage",
    "pick_metadata",
    # Item construction
    "MessageTransformer",
    "UnitKind",
    # Builders
    "ContextTreeBuilder",
    "FlatListBuilder",
]
