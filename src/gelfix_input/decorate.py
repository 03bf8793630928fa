from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from gelfix_input.events import Event

_FIELD_REF = re.compile(r"%\{([^}]+)\}")


def sprintf(event: Event, template: str) -> str:
    """Expand %{field} references to top-level event fields."""

    def _sub(m: "re.Match[str]") -> str:
        key = m.group(1)
        if not event.includes(key):
            return m.group(0)
        value = event.get(key)
        return value if isinstance(value, str) else str(value)

    return _FIELD_REF.sub(_sub, template)


class Decorator:
    """Attaches the input's configured type, tags and extra fields to an event."""

    def __init__(
        self,
        type: Optional[str] = None,
        tags: Optional[List[str]] = None,
        add_field: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._type = type
        self._tags = list(tags or [])
        self._add_field: Dict[str, Any] = dict(add_field or {})

    def decorate(self, event: Event) -> None:
        if self._type and not event.includes("type"):
            event.set("type", self._type)

        for tag in self._tags:
            event.add_tag(tag)

        for key, value in self._add_field.items():
            field = sprintf(event, key)
            if isinstance(value, str):
                value = sprintf(event, value)
            if not event.includes(field):
                event.set(field, value)
                continue
            existing = event.get(field)
            if isinstance(existing, list):
                existing.append(value)
            else:
                event.set(field, [existing, value])
