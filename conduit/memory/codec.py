"""
Document codec: MemoryRecord <-> markdown with a YAML header.

A record file looks like::

    ---
    id: 5f0c1d2e-8a4b-4c6d-9e8f-0a1b2c3d4e5f
    title: Note A
    tags:
    - x
    created_at: '2024-05-01T12:00:00.000000+00:00'
    updated_at: '2024-05-01T12:00:00.000000+00:00'
    ---

    hello world

The header is plain YAML so a person can open and edit the file in any
text editor. The body after the blank line is the record content,
byte-for-byte. Encoding and decoding are pure functions with no I/O.
"""

import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List

import frontmatter
import yaml
from pydantic import ValidationError

from conduit.errors import MemoryDecodeError
from .schemas import MemoryRecord


_HANDLER = frontmatter.YAMLHandler()

# Opening delimiter, header, closing delimiter, optional blank line, body.
_DOCUMENT = re.compile(
    r"\A---[ \t]*\r?\n(?P<header>.*?)\r?\n---[ \t]*(?:\r?\n(?:\r?\n)?(?P<body>.*))?\Z",
    re.DOTALL,
)

REQUIRED_FIELDS = ("id", "title", "created_at", "updated_at")


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as fixed-width, sortable UTC ISO-8601 with microseconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: Any, field: str = "timestamp") -> datetime:
    """
    Parse a header timestamp.

    Accepts ISO-8601 strings (with ``Z`` or an offset) and the datetime
    objects YAML produces for unquoted timestamps. Naive values are UTC.

    Raises:
        MemoryDecodeError: If the value is not a parseable timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise MemoryDecodeError(f"Invalid {field} format: {value!r}") from None
    elif isinstance(value, date):
        raise MemoryDecodeError(f"{field} is a date without a time: {value!r}")
    else:
        raise MemoryDecodeError(f"{field} must be a timestamp, got {type(value).__name__}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def encode(record: MemoryRecord) -> str:
    """
    Serialize a record to its on-disk text form.

    Args:
        record: Record to serialize

    Returns:
        Header block, separator, then ``record.content`` verbatim
    """
    metadata = {
        "id": record.id,
        "title": record.title,
        "tags": list(record.tags),
        "created_at": format_timestamp(record.created_at),
        "updated_at": format_timestamp(record.updated_at),
    }
    header = _HANDLER.export(metadata, sort_keys=False)
    return f"---\n{header}\n---\n\n{record.content}"


def decode(text: str) -> MemoryRecord:
    """
    Parse on-disk text back into a record.

    Args:
        text: Full file contents

    Returns:
        The decoded MemoryRecord

    Raises:
        MemoryDecodeError: On a missing/malformed delimiter, an invalid
            header, a missing or mistyped required field, an unparseable
            timestamp, or ``tags`` that is not a list of strings
    """
    match = _DOCUMENT.match(text)
    if match is None:
        raise MemoryDecodeError("Missing or malformed header delimiter")

    try:
        metadata = _HANDLER.load(match.group("header"))
    except yaml.YAMLError as exc:
        raise MemoryDecodeError(f"Header is not valid YAML: {exc}") from exc

    if not isinstance(metadata, dict):
        raise MemoryDecodeError("Header must be a mapping of fields")

    return _record_from_header(metadata, match.group("body") or "")


def _record_from_header(metadata: Dict[str, Any], body: str) -> MemoryRecord:
    missing = [name for name in REQUIRED_FIELDS if metadata.get(name) is None]
    if missing:
        raise MemoryDecodeError(f"Missing required field(s): {', '.join(missing)}")

    memory_id = metadata["id"]
    if not isinstance(memory_id, str) or not memory_id.strip():
        raise MemoryDecodeError("id must be a non-empty string")

    title = metadata["title"]
    if not isinstance(title, str):
        raise MemoryDecodeError(f"title must be a string, got {type(title).__name__}")

    tags = _decode_tags(metadata.get("tags"))

    try:
        return MemoryRecord(
            id=memory_id,
            title=title,
            content=body,
            tags=tags,
            created_at=parse_timestamp(metadata["created_at"], "created_at"),
            updated_at=parse_timestamp(metadata["updated_at"], "updated_at"),
        )
    except ValidationError as exc:
        raise MemoryDecodeError(f"Invalid record: {exc.errors()[0]['msg']}") from exc


def _decode_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        raise MemoryDecodeError("tags must be a list of strings")
    return list(value)
