"""Factory for creating Message and ContentPart instances from raw data.

This module creates typed model instances from service-layer JSON:
- Message (with normalised content parts and timestamps)
- ContentPart subclasses (Text, ImageUrl)
- MessageGroupMetadata

Also provides:
- Conditional coercion of already-built models (ensure_message)
"""

import logging
from datetime import datetime
from typing import Any, Optional, Sequence, Union, cast

from pydantic import BaseModel, ValidationError

from ..models import (
    ContentPart,
    ImageUrlPart,
    Message,
    MessageContentValue,
    MessageGroupMetadata,
    TextPart,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Content Part Registry
# =============================================================================

# Maps content part type strings to their model classes
CONTENT_PART_CREATORS: dict[str, type[BaseModel]] = {
    "text": TextPart,
    "image_url": ImageUrlPart,
}

TIMESTAMP_FIELDS: Sequence[str] = ("createdAt", "updatedAt")


# =============================================================================
# Content Part Creation
# =============================================================================


def create_content_part(part_data: dict[str, Any]) -> ContentPart:
    """Create a ContentPart from raw data using the registry.

    Returns:
        ContentPart instance, with fallback to TextPart for unknown or
        malformed parts
    """
    model_class = CONTENT_PART_CREATORS.get(part_data.get("type", ""))
    if model_class is not None:
        try:
            return cast(ContentPart, model_class.model_validate(part_data))
        except ValidationError:
            logger.debug("Malformed %s content part, keeping as text", model_class)
    return TextPart(type="text", text=str(part_data))


def create_message_content(content_data: Any) -> MessageContentValue:
    """Normalise message content to either a string or a list of parts.

    Strings are kept as-is (the common case), lists are converted part by
    part, and anything else is stringified.
    """
    if content_data is None:
        return ""
    if isinstance(content_data, str):
        return content_data
    if isinstance(content_data, list):
        parts: list[ContentPart] = []
        for item in cast(list[Any], content_data):
            if isinstance(item, BaseModel):
                parts.append(cast(ContentPart, item))
            elif isinstance(item, dict):
                parts.append(create_content_part(cast(dict[str, Any], item)))
            else:
                parts.append(TextPart(type="text", text=str(item)))
        return parts
    return str(content_data)


# =============================================================================
# Timestamp Normalisation
# =============================================================================


def normalize_timestamp(value: Any) -> Optional[Union[int, float]]:
    """Convert a timestamp to epoch milliseconds.

    Numbers pass through; numeric strings and ISO 8601 strings are converted.
    Unparseable values become None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        if value.isdigit():
            return int(value)
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable timestamp %r dropped", value)
            return None
        return int(parsed.timestamp() * 1000)
    logger.debug("Unsupported timestamp type %s dropped", type(value).__name__)
    return None


# =============================================================================
# Message Creation
# =============================================================================


def create_message(data: dict[str, Any]) -> Message:
    """Create a Message from a JSON dictionary.

    Raises:
        pydantic.ValidationError: If required fields (id, role) are missing
    """
    data_copy = data.copy()
    if "content" in data_copy:
        data_copy["content"] = create_message_content(data_copy["content"])
    for key in TIMESTAMP_FIELDS:
        if key in data_copy:
            data_copy[key] = normalize_timestamp(data_copy[key])
    return Message.model_validate(data_copy)


def ensure_message(item: Union[Message, dict[str, Any]]) -> Message:
    """Return item as a Message, creating one from a dict if needed."""
    if isinstance(item, Message):
        return item
    return create_message(item)


def create_message_group(
    data: Union[MessageGroupMetadata, dict[str, Any]],
) -> MessageGroupMetadata:
    """Create MessageGroupMetadata from a JSON dictionary."""
    if isinstance(data, MessageGroupMetadata):
        return data
    return MessageGroupMetadata.model_validate(data)
