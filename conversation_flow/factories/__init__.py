"""Factory modules for creating typed objects from raw data."""

from .message_factory import (
    # Content part creation
    create_content_part,
    create_message_content,
    # Timestamp normalisation
    normalize_timestamp,
    # Message creation
    create_message,
    create_message_group,
    ensure_message,
    # Registries and constants
    CONTENT_PART_CREATORS,
    TIMESTAMP_FIELDS,
)

__all__ = [
    # Content part creation
    "create_content_part",
    "create_message_content",
    # Timestamp normalisation
    "normalize_timestamp",
    # Message creation
    "create_message",
    "create_message_group",
    "ensure_message",
    # Registries and constants
    "CONTENT_PART_CREATORS",
    "TIMESTAMP_FIELDS",
]
