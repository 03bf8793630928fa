"""
Field passes applied to every event after it is built.

Each pass mutates the event in place. The listener runs them in the order
remap -> strip -> nest, so flattening sees the renamed field names.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Union

from gelfix_common.models import GELF_CORE_FIELDS
from gelfix_input.events import MESSAGE_FIELD, Event

FULL_MESSAGE_FIELD = "full_message"
SHORT_MESSAGE_FIELD = "short_message"

_INDEX_RE = re.compile(r"[0-9]+")
# largest list index a dotted segment may address; one datagram must not
# be able to allocate an arbitrarily long list
MAX_ARRAY_INDEX = 4096

Container = Union[Dict[str, Any], List[Any]]


class NestingError(TypeError):
    """Raised when a dotted path walks into a value that is not a container."""


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict)):
        return len(value) > 0
    return True


def remap_gelf(event: Event) -> None:
    """Promote full_message, or failing that short_message, to message."""
    full_message = event.get(FULL_MESSAGE_FIELD)
    if _present(full_message):
        event.set(MESSAGE_FIELD, full_message)
        event.remove(FULL_MESSAGE_FIELD)
        if event.get(SHORT_MESSAGE_FIELD) == event.get(MESSAGE_FIELD):
            event.remove(SHORT_MESSAGE_FIELD)
        return

    short_message = event.get(SHORT_MESSAGE_FIELD)
    if _present(short_message):
        event.set(MESSAGE_FIELD, short_message)
        event.remove(SHORT_MESSAGE_FIELD)


def strip_leading_underscore(
    event: Event, reserved: Iterable[str] = GELF_CORE_FIELDS
) -> None:
    """Map every '_foo' field to 'foo', leaving GELF core names alone."""
    reserved = frozenset(reserved)
    for key in list(event.data.keys()):
        if not key.startswith("_"):
            continue
        new_key = key[1:]
        if new_key in reserved:
            continue
        event.set(new_key, event.remove(key))


def _is_index(key: str, max_index: int) -> bool:
    """Numeric segments above max_index are treated as object keys."""
    if _INDEX_RE.fullmatch(key) is None:
        return False
    return len(key) <= len(str(max_index)) and int(key) <= max_index


def _has_element(container: Any, key: str, max_index: int) -> bool:
    if isinstance(container, list):
        if not _is_index(key, max_index):
            return False
        index = int(key)
        return index < len(container) and container[index] is not None
    if isinstance(container, dict):
        return key in container
    raise NestingError(f"not an array or object: {type(container).__name__}")


def _get_element(container: Any, key: str) -> Any:
    if isinstance(container, list):
        return container[int(key)]
    if isinstance(container, dict):
        return container[key]
    raise NestingError(f"not an array or object: {type(container).__name__}")


def _set_element(container: Any, key: str, value: Any, max_index: int) -> Container:
    """
    Store value under key and return the container now holding it.

    A list receiving a non-numeric key is replaced by a dict keyed by the
    stringified indices; callers must re-link the returned container.
    """
    if isinstance(container, list):
        if not _is_index(key, max_index):
            converted: Dict[str, Any] = {str(i): v for i, v in enumerate(container)}
            converted[key] = value
            return converted
        index = int(key)
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = value
        return container
    if isinstance(container, dict):
        container[key] = value
        return container
    raise NestingError(f"not an array or object: {type(container).__name__}")


def split_path(key: str) -> List[str]:
    segments = key.split(".")
    while len(segments) > 1 and segments[-1] == "":
        segments.pop()
    if key.endswith(".") and segments[-1] != "":
        segments.append("")
    return segments


def nest_value(
    tree: Dict[str, Any],
    segments: List[str],
    value: Any,
    max_index: int = MAX_ARRAY_INDEX,
) -> None:
    """
    Write value into tree at the path given by segments, creating lists for
    numeric segments and dicts for everything else.
    """
    target: Container = tree
    holder: Container = tree
    holder_key = segments[0]
    previous = segments[0]

    for segment in segments[1:]:
        if not _has_element(target, previous, max_index):
            empty: Container = [] if _is_index(segment, max_index) else {}
            updated = _set_element(target, previous, empty, max_index)
            if updated is not target:
                _set_element(holder, holder_key, updated, max_index)
                target = updated
        holder, holder_key = target, previous
        target = _get_element(target, previous)
        previous = segment

    updated = _set_element(target, previous, value, max_index)
    if updated is not target and target is not tree:
        _set_element(holder, holder_key, updated, max_index)


def nested_objects(event: Event, max_index: int = MAX_ARRAY_INDEX) -> None:
    """Expand dotted field names such as 'a.b.0' into nested objects and arrays."""
    tree = dict(event.data)
    for key in list(tree.keys()):
        if "." not in key:
            continue
        segments = split_path(key)
        nest_value(tree, segments, event.get(key), max_index)
        event.remove(key)
        event.set(segments[0], tree[segments[0]])
