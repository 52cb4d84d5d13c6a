"""Convert parse output to plain JSON-compatible data.

Input records keep the field names they arrived with. Dataclass fields of
the derived structures are snake_case in Python and are emitted in
camelCase, the casing the service layer and renderer use, unless the field
declares an ``alias`` in its metadata.
"""

import dataclasses
from enum import Enum
from typing import Any

from pydantic import BaseModel


def to_camel(name: str) -> str:
    """Convert a snake_case field name to camelCase."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_plain(value: Any) -> Any:
    """Recursively convert models, dataclasses and containers to plain data.

    None-valued fields are dropped. The ``extra`` dict of a passthrough
    message is merged into the message itself so unknown input fields come
    back out at the top level.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for f in dataclasses.fields(value):
            field_value = getattr(value, f.name)
            if f.name == "extra":
                extra = field_value or {}
                continue
            if field_value is None:
                continue
            key = f.metadata.get("alias") or to_camel(f.name)
            result[key] = to_plain(field_value)
        for key, extra_value in extra.items():
            result.setdefault(key, to_plain(extra_value))
        return result
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value
