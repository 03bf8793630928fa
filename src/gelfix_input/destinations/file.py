from __future__ import annotations

import json
from pathlib import Path
from typing import List

from gelfix_input.destinations.base import Destination
from gelfix_input.events import Event


class FileDestination(Destination):
    """Appends events to a file as JSON lines."""

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def send(self, events: List[Event]) -> None:
        with self._path.open("a", encoding="utf-8") as f:
            for e in events:
                f.write(json.dumps(e.as_json_dict(), ensure_ascii=False, default=str) + "\n")
