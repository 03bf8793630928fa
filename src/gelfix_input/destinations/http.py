from __future__ import annotations

from typing import Dict, List, Optional

import httpx

from gelfix_input.destinations.base import Destination
from gelfix_input.events import Event


class HttpDestination(Destination):
    """POSTs batches of events to an HTTP endpoint as a JSON array."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url = url
        self._client = client or httpx.Client(
            timeout=timeout_seconds, headers=headers or {}
        )

    def send(self, events: List[Event]) -> None:
        payload = [e.as_json_dict() for e in events]
        resp = self._client.post(self._url, json=payload)
        resp.raise_for_status()

    def close(self) -> None:
        self._client.close()
