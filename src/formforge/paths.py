"""Property-path resolution against a model.

Paths are dotted (``address.city``), may index sequences (``items.0.name``)
and accept bracket notation (``items[0].name``).
"""

import re
from collections.abc import Mapping, MutableMapping, MutableSequence, Sequence
from dataclasses import dataclass
from typing import Any

from formforge.errors import InvalidPathError

_BRACKET = re.compile(r"\[(\w+)\]")


@dataclass
class PathRef:
    """Where a path lands: the container holding the last segment."""

    owner: Any
    key: str | int | None
    value: Any


def split_path(path: str) -> list[str]:
    """Split a property path into its segments."""
    normalized = _BRACKET.sub(r".\1", path).lstrip(".")
    if not normalized:
        return []
    return normalized.split(".")


def _step(container: Any, segment: str) -> tuple[bool, str | int | None, Any]:
    if isinstance(container, Mapping):
        if segment in container:
            return True, segment, container[segment]
        return False, segment, None
    if isinstance(container, Sequence) and not isinstance(container, str):
        if segment.isdigit() and int(segment) < len(container):
            index = int(segment)
            return True, index, container[index]
        return False, None, None
    return False, None, None


def resolve(obj: Any, path: str, strict: bool = False) -> PathRef:
    """Resolve *path* against *obj*.

    Args:
        obj: The model (any nesting of mappings and sequences)
        path: Property path
        strict: Raise instead of returning a dangling reference

    Returns:
        PathRef for the final segment; ``value`` is None when missing

    Raises:
        InvalidPathError: In strict mode, when a segment does not exist
    """
    segments = split_path(path)
    if not segments:
        return PathRef(owner=None, key=None, value=obj)

    owner = obj
    for i, segment in enumerate(segments):
        found, key, value = _step(owner, segment)
        if not found:
            if strict:
                raise InvalidPathError(
                    f"Path '{path}' does not resolve: missing segment '{segment}'"
                )
            if i == len(segments) - 1:
                return PathRef(owner=owner, key=key, value=None)
            return PathRef(owner=None, key=None, value=None)
        if i == len(segments) - 1:
            return PathRef(owner=owner, key=key, value=value)
        owner = value

    return PathRef(owner=None, key=None, value=None)  # pragma: no cover


def get_value(obj: Any, path: str) -> Any:
    """Read the value at *path*, or None when missing."""
    return resolve(obj, path).value


def set_value(obj: Any, path: str, value: Any) -> None:
    """Write *value* at *path*.

    Mapping owners gain missing final keys; intermediate containers are
    never created.

    Raises:
        InvalidPathError: If the parent of the final segment does not exist
    """
    ref = resolve(obj, path)
    owner, key = ref.owner, ref.key
    if owner is None:
        raise InvalidPathError(f"Cannot write to path '{path}': parent is missing")
    if isinstance(owner, MutableMapping):
        owner[key if key is not None else split_path(path)[-1]] = value
    elif isinstance(owner, MutableSequence) and isinstance(key, int):
        owner[key] = value
    else:
        raise InvalidPathError(f"Cannot write to path '{path}': parent is read-only")
