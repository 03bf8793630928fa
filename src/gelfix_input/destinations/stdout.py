from __future__ import annotations

import json
import sys
from typing import List, Optional, TextIO

from gelfix_input.destinations.base import Destination
from gelfix_input.events import Event


class StdoutDestination(Destination):
    """Prints one JSON document per event."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    def send(self, events: List[Event]) -> None:
        out = self._stream or sys.stdout
        for e in events:
            out.write(json.dumps(e.as_json_dict(), ensure_ascii=False, default=str) + "\n")
        out.flush()
