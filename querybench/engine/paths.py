"""
Dot-notation field access over documents.

Documents are treated as plain trees of mappings, lists and scalars. Any path
segment that lands on a list fans out over every element, to any depth, so
``addresses.postalCode`` reads the postal code of every address and
``accounts.holders.customerNumber`` flattens two levels of arrays.
"""

from __future__ import annotations

import json
from typing import Any, Hashable, Iterable, List, Mapping, Sequence

_MISSING = object()


def _split(path: str) -> Sequence[str]:
    if not path:
        raise ValueError("field path must not be empty")
    return path.split(".")


def _collect(current: Any, parts: Sequence[str], index: int, out: List[Any]) -> None:
    if current is None:
        return
    if isinstance(current, list):
        for item in current:
            _collect(item, parts, index, out)
        return
    if index == len(parts):
        out.append(current)
        return
    if isinstance(current, Mapping):
        child = current.get(parts[index], _MISSING)
        if child is not _MISSING:
            _collect(child, parts, index + 1, out)


def extract_values(document: Any, path: str) -> List[Any]:
    """
    Return every leaf value addressed by ``path``, arrays flattened.

    An empty list means the field is absent (or null) on this document.
    """
    out: List[Any] = []
    _collect(document, _split(path), 0, out)
    return out


def has_path(document: Any, path: str) -> bool:
    return bool(extract_values(document, path))


def dedup_key(value: Any) -> Hashable:
    """Hashable identity for a value, including dict/list values such as compound keys."""
    try:
        hash(value)
    except TypeError:
        return ("__json__", json.dumps(value, sort_keys=True, default=str))
    return (type(value).__name__, value)


def unique(values: Iterable[Any]) -> List[Any]:
    """Deduplicate while preserving first-seen order."""
    seen = set()
    out: List[Any] = []
    for value in values:
        key = dedup_key(value)
        if key in seen:
            continue
        seen.add(key)
        out.append(value)
    return out


__all__ = ["extract_values", "has_path", "dedup_key", "unique"]
