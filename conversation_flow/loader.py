"""Load messages and message groups from JSON or JSONL files."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from .factories import create_message, create_message_group
from .models import Message, MessageGroupMetadata

logger = logging.getLogger(__name__)


class LoaderError(Exception):
    """Raised when a file cannot be read or has an unsupported layout."""


def _format_validation_error(error: ValidationError) -> str:
    return re.sub(
        r"    For further information visit https://errors.pydantic(.*)\n?",
        "",
        str(error),
    )


def _create_messages(
    records: Iterable[tuple[str, Any]], source: Path
) -> list[Message]:
    """Validate raw records, skipping (and reporting) the bad ones."""
    messages: list[Message] = []
    for location, record in records:
        if not isinstance(record, dict):
            logger.warning("%s of %s is not a JSON object, skipped", location, source)
            continue
        try:
            messages.append(create_message(record))
        except ValidationError as e:
            logger.warning(
                "%s of %s | %s", location, source, _format_validation_error(e)
            )
    return messages


def _create_groups(raw_groups: Any, source: Path) -> list[MessageGroupMetadata]:
    if raw_groups is None:
        return []
    if not isinstance(raw_groups, list):
        logger.warning("messageGroups of %s is not a list, ignored", source)
        return []
    groups: list[MessageGroupMetadata] = []
    for index, raw in enumerate(raw_groups):
        try:
            groups.append(create_message_group(raw))
        except ValidationError as e:
            logger.warning(
                "Message group %d of %s | %s",
                index,
                source,
                _format_validation_error(e),
            )
    return groups


def _load_jsonl(path: Path) -> list[Message]:
    records: list[tuple[str, Any]] = []
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append((f"Line {line_no}", json.loads(line)))
            except json.JSONDecodeError as e:
                logger.warning(
                    "Line %d of %s | JSON decode error: %s", line_no, path, e
                )
    return _create_messages(records, path)


def load_messages(
    path: Path,
) -> tuple[list[Message], list[MessageGroupMetadata]]:
    """Load a conversation from disk.

    Accepted layouts:
    - a JSON array of messages
    - a JSON object ``{"messages": [...], "messageGroups": [...]}``
    - JSONL, one message per line (``.jsonl`` suffix)

    Invalid records are logged and skipped.

    Raises:
        LoaderError: If the file cannot be read or its top level is not
            one of the accepted layouts
    """
    try:
        if path.suffix == ".jsonl":
            return _load_jsonl(path), []
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise LoaderError(f"Cannot read {path}: {e}") from e

    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise LoaderError(f"{path} is not valid JSON: {e}") from e

    raw_groups: Optional[Any] = None
    if isinstance(data, dict):
        raw_messages = data.get("messages")
        raw_groups = data.get("messageGroups")
    else:
        raw_messages = data
    if not isinstance(raw_messages, list):
        raise LoaderError(
            f"{path} must contain a list of messages or an object with a 'messages' list"
        )

    records = [(f"Message {i}", record) for i, record in enumerate(raw_messages)]
    return _create_messages(records, path), _create_groups(raw_groups, path)
