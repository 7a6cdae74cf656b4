from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def _text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True, slots=True)
class Memory:
    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @staticmethod
    def new(
        *,
        content: str,
        metadata: dict[str, Any] | None = None,
        tags: list[str] | None = None,
    ) -> Memory:
        now = datetime.now(UTC).isoformat()
        return Memory(
            id=uuid.uuid4().hex,
            content=content,
            metadata=dict(metadata or {}),
            tags=list(tags or []),
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Memory:
        # Older memories.json files used millisecond timestamps as ids; hand
        # edits and upstream replies may carry null or numeric fields.
        created_at = _text(data.get("created_at"))
        return Memory(
            id=str(data["id"]),
            content=_text(data["content"]),
            metadata=dict(data.get("metadata") or {}),
            tags=[str(tag) for tag in data.get("tags") or []],
            created_at=created_at,
            updated_at=_text(data.get("updated_at")) or created_at,
        )

    @property
    def created(self) -> datetime:
        """created_at as an aware datetime; unparseable values sort oldest."""
        try:
            parsed = datetime.fromisoformat(self.created_at)
        except ValueError:
            return datetime.min.replace(tzinfo=UTC)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=UTC)
        return parsed

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata,
            "tags": self.tags,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def matches(self, query: str | None, tags: list[str] | None) -> bool:
        if query and query.lower() not in self.content.lower():
            return False
        if tags and not any(tag in self.tags for tag in tags):
            return False
        return True
