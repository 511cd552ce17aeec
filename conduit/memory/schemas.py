"""
Memory system data models.

Defines the MemoryRecord persisted by the store, one record per file.
"""

from datetime import datetime, timezone
from typing import List
import uuid

from pydantic import BaseModel, Field, field_validator, model_validator


def new_memory_id() -> str:
    """Generate a fresh, collision-resistant memory identifier (UUID4)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class MemoryRecord(BaseModel):
    """
    A single user-authored note.

    The on-disk file is the source of truth; this model is only the
    in-memory view of it. ``id`` and ``created_at`` never change once
    assigned, ``updated_at`` is refreshed on every successful mutation.
    """

    id: str = Field(..., min_length=1, description="Unique identifier (UUID4)")
    title: str = Field(..., description="Short display string, may be empty")
    content: str = Field("", description="Body text, stored verbatim")
    tags: List[str] = Field(default_factory=list, description="Opaque labels, order preserved")
    created_at: datetime = Field(..., description="Creation time (timezone-aware)")
    updated_at: datetime = Field(..., description="Last mutation time (timezone-aware)")

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "5f0c1d2e-8a4b-4c6d-9e8f-0a1b2c3d4e5f",
                "title": "Note A",
                "content": "hello world",
                "tags": ["x"],
                "created_at": "2024-05-01T12:00:00.000000+00:00",
                "updated_at": "2024-05-01T12:00:00.000000+00:00",
            }
        }
    }

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are read as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "MemoryRecord":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match on title, content or any tag."""
        needle = needle.casefold()
        return (
            needle in self.title.casefold()
            or needle in self.content.casefold()
            or any(needle in tag.casefold() for tag in self.tags)
        )

    def has_tag(self, tag: str) -> bool:
        """Case-insensitive exact tag match."""
        wanted = tag.casefold()
        return any(t.casefold() == wanted for t in self.tags)
