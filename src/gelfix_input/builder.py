"""
Turns a decoded GELF payload into an Event.
"""

from __future__ import annotations

import json
import math
from decimal import Decimal
from typing import Any, Optional, Union

from gelfix_common.logging import setup_logging
from gelfix_input.events import MESSAGE_FIELD, TAGS_FIELD, Event
from gelfix_input.timestamps import coerce_timestamp, is_numeric

log = setup_logging("gelfix.builder")

TIMESTAMP_GELF_FIELD = "timestamp"
SOURCE_HOST_FIELD = "source_host"
PARSE_FAILURE_TAG = "_jsonparsefailure"


class _NotAnObject(ValueError):
    pass


def _to_text(payload: Union[bytes, str]) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload


def _restore_floats(value: Any) -> Any:
    """
    Decimals are only wanted for the timestamp; everything else becomes a
    float, or a string when no finite float can hold it (NaN, 1e400).
    """
    if isinstance(value, Decimal):
        number = float(value)
        return number if math.isfinite(number) else str(value)
    if isinstance(value, dict):
        return {k: _restore_floats(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_restore_floats(v) for v in value]
    return value


def _lift_tags(event: Event) -> None:
    tags = event.get(TAGS_FIELD)
    if isinstance(tags, str):
        tags = [tags]
    if isinstance(tags, list) and all(isinstance(t, str) for t in tags):
        event.remove(TAGS_FIELD)
        for t in tags:
            event.add_tag(t)


def _event_from_object(obj: dict) -> Event:
    data = {
        k: v
        if k == TIMESTAMP_GELF_FIELD and isinstance(v, Decimal)
        else _restore_floats(v)
        for k, v in obj.items()
    }
    event = Event(data=data)
    _lift_tags(event)
    return event


def parse(payload: Union[bytes, str]) -> Optional[Event]:
    """
    Parse a JSON document into an Event.

    A JSON array is treated as a list of events of which only the first is
    kept; an empty array yields None. Anything that is not valid JSON, or
    not an object, becomes a plain-text event tagged with PARSE_FAILURE_TAG.
    """
    text = _to_text(payload)
    try:
        doc = json.loads(text, parse_float=Decimal, parse_constant=Decimal)
        if isinstance(doc, list):
            if not doc:
                return None
            doc = doc[0]
        if not isinstance(doc, dict):
            raise _NotAnObject(f"expected a JSON object, got {type(doc).__name__}")
    except (ValueError, RecursionError) as e:
        log.error(
            "JSON parse failure. Falling back to plain-text error=%s data=%r",
            e,
            text,
        )
        return Event(data={MESSAGE_FIELD: text}, tags=[PARSE_FAILURE_TAG])
    return _event_from_object(doc)


def new_event(payload: Union[bytes, str], host: str) -> Optional[Event]:
    """Build an event from GELF JSON, stamping the source host and timestamp."""
    event = parse(payload)
    if event is None:
        return None

    event.set(SOURCE_HOST_FIELD, host)

    gelf_timestamp = event.get(TIMESTAMP_GELF_FIELD)
    if is_numeric(gelf_timestamp):
        coerced = coerce_timestamp(gelf_timestamp)
        if coerced is not None:
            event.timestamp = coerced
            event.remove(TIMESTAMP_GELF_FIELD)
        else:
            # keep the receive time and the raw value for diagnosis
            log.warning("unrepresentable gelf timestamp=%s", gelf_timestamp)
            event.set(TIMESTAMP_GELF_FIELD, _restore_floats(gelf_timestamp))

    return event
