"""Dotted path helpers for nested document trees.

Paths are dot-separated key sequences. An empty segment marks the following
key as expression-marked, so ``.bio`` addresses the root key ``.bio`` and
``user..bio`` addresses the key ``.bio`` inside ``user``.
"""

import copy
from typing import Any


class _Missing:
    """Sentinel for absent keys (distinct from a stored None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def split_path(path: str) -> list[str]:
    """Split a dotted path into keys.

    Example:
        split_path("users.alice..bio") == ["users", "alice", ".bio"]
    """
    if not path:
        return []

    segments: list[str] = []
    pending_marker = False
    for part in path.split("."):
        if part == "":
            pending_marker = True
            continue
        segments.append("." + part if pending_marker else part)
        pending_marker = False
    return segments


def join_path(segments: list[str]) -> str:
    """Inverse of split_path."""
    return ".".join(segments)


def get_in(data: Any, segments: list[str]) -> Any:
    """Walk ``segments`` into ``data``; return MISSING when any step is absent."""
    current = data
    for key in segments:
        if isinstance(current, dict):
            if key not in current:
                return MISSING
            current = current[key]
        elif isinstance(current, list) and key.isdigit():
            index = int(key)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def _list_index(container: list, key: str) -> int | None:
    """Position addressed by ``key`` in ``container``, or None when out of range."""
    if key.isdigit() and int(key) < len(container):
        return int(key)
    return None


def _child(container: Any, key: str) -> Any:
    if isinstance(container, dict):
        return container.get(key, MISSING)
    if isinstance(container, list):
        index = _list_index(container, key)
        return MISSING if index is None else container[index]
    return MISSING


def _assign(container: Any, key: str, value: Any) -> None:
    if isinstance(container, dict):
        container[key] = value
        return

    index = _list_index(container, key)
    if index is not None:
        container[index] = value
    elif key == str(len(container)):
        container.append(value)
    else:
        raise IndexError(f"Cannot set index {key!r} on a list of length {len(container)}")


def set_in(data: dict[str, Any], segments: list[str], value: Any) -> None:
    """Assign ``value`` at ``segments``, creating intermediate dicts as needed.

    List items are addressed by index; one past the end appends. A scalar
    sitting where a container is needed is replaced by a dict.
    """
    current: Any = data
    for key in segments[:-1]:
        child = _child(current, key)
        if not isinstance(child, (dict, list)):
            child = {}
            _assign(current, key, child)
        current = child
    _assign(current, segments[-1], value)


def delete_in(data: dict[str, Any], segments: list[str]) -> bool:
    """Remove the terminal key or list item. Returns True if something was removed."""
    current: Any = data
    for key in segments[:-1]:
        current = _child(current, key)
        if not isinstance(current, (dict, list)):
            return False

    key = segments[-1]
    if isinstance(current, dict) and key in current:
        del current[key]
        return True
    if isinstance(current, list):
        index = _list_index(current, key)
        if index is not None:
            del current[index]
            return True
    return False


def available_names(data: dict[str, Any], prefix: list[str] | None = None) -> list[str]:
    """Collect every property path in the tree, in document order.

    Expression-marked containers are not descended into.
    """
    prefix = prefix or []
    names: list[str] = []
    for key, value in data.items():
        segments = [*prefix, key]
        names.append(join_path(segments))
        if isinstance(value, dict) and not key.startswith("."):
            names.extend(available_names(value, segments))
    return names


def merge_initial(schema: dict[str, Any], initial: dict[str, Any]) -> dict[str, Any]:
    """Deep-copy ``schema`` and overlay ``initial`` on it.

    Dict-valued overrides merge one level key-wise; anything else replaces.
    """
    result = copy.deepcopy(schema)
    for key, value in initial.items():
        if isinstance(value, dict):
            base = result.get(key)
            merged = dict(base) if isinstance(base, dict) else {}
            merged.update(copy.deepcopy(value))
            result[key] = merged
        else:
            result[key] = copy.deepcopy(value)
    return result
