from __future__ import annotations

import queue
import threading
from typing import Iterator, Tuple

import pytest

from gelfix_common.models import GelfInputConfig
from gelfix_common.settings import get_settings
from gelfix_input.events import Event
from gelfix_input.listener import GelfListener


@pytest.fixture(autouse=True)
def reset_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def running_listener(
    request: pytest.FixtureRequest,
) -> Iterator[Tuple[GelfListener, "queue.Queue[Event]"]]:
    """Start a listener on an ephemeral loopback port; overrides via indirect params."""
    overrides = getattr(request, "param", {}) or {}
    config = GelfInputConfig(
        host="127.0.0.1", port=0, receive_timeout_seconds=0.1, **overrides
    )
    listener = GelfListener(config)
    events: "queue.Queue[Event]" = queue.Queue()
    stop = threading.Event()
    thread = threading.Thread(target=listener.run, args=(events, stop), daemon=True)
    thread.start()
    assert listener.ready.wait(5.0)

    yield listener, events

    listener.stop()
    thread.join(timeout=5.0)
    assert not thread.is_alive()
