from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, Field

MESSAGE_FIELD = "message"
TIMESTAMP_FIELD = "@timestamp"
TAGS_FIELD = "tags"


class Event(BaseModel):
    """Event is the internal representation of one received GELF message."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def remove(self, key: str) -> Any:
        return self.data.pop(key, None)

    def includes(self, key: str) -> bool:
        return key in self.data

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def to_iso8601(self) -> str:
        """Render the timestamp as UTC ISO-8601 with millisecond precision."""
        ts = self.timestamp.astimezone(timezone.utc)
        return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"

    def as_json_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary."""
        out: Dict[str, Any] = {TIMESTAMP_FIELD: self.to_iso8601()}
        out.update(self.data)
        if self.tags:
            out[TAGS_FIELD] = self._merged_tags()
        return out

    def _merged_tags(self) -> List[Any]:
        """Tags with any user-supplied 'tags' field value kept in front."""
        if TAGS_FIELD not in self.data:
            return list(self.tags)
        existing = self.data[TAGS_FIELD]
        merged = list(existing) if isinstance(existing, list) else [existing]
        merged.extend(t for t in self.tags if t not in merged)
        return merged
