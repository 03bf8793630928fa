from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from gelfix_input.events import Event


class Destination(ABC):
    """A destination delivers finished events to an external target."""

    @abstractmethod
    def send(self, events: List[Event]) -> None:
        """Send a batch of events."""
        raise NotImplementedError

    def close(self) -> None:
        return None
