"""
Deterministic in-memory `DataAccess`.

Evaluates the subset of the MongoDB query language the engine emits (equality,
``$in``, ``$and``, dot-notation paths through arrays) plus a few common
comparison operators, over plain Python documents. Sampling returns the first
documents in insertion order, so runs are reproducible. Used for dry runs of a
query configuration and throughout the test suite.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from querybench.engine.abstract import Document
from querybench.engine.paths import extract_values

_MISSING = object()


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[List[Any], Any], bool]:
    def check(values: List[Any], operand: Any) -> bool:
        for value in values:
            try:
                if op(value, operand):
                    return True
            except TypeError:
                continue
        return False

    return check


_OPERATORS: Dict[str, Callable[[List[Any], Any], bool]] = {
    "$eq": lambda values, operand: operand in values,
    "$ne": lambda values, operand: operand not in values,
    "$in": lambda values, operand: any(value in operand for value in values),
    "$nin": lambda values, operand: not any(value in operand for value in values),
    "$exists": lambda values, operand: bool(values) == bool(operand),
    "$gt": _compare(lambda a, b: a > b),
    "$gte": _compare(lambda a, b: a >= b),
    "$lt": _compare(lambda a, b: a < b),
    "$lte": _compare(lambda a, b: a <= b),
}


def _is_operator_doc(condition: Any) -> bool:
    return isinstance(condition, Mapping) and bool(condition) and all(
        isinstance(key, str) and key.startswith("$") for key in condition
    )


def matches(document: Document, query: Mapping[str, Any]) -> bool:
    """True when ``document`` satisfies every clause of ``query``."""
    for key, condition in query.items():
        if key == "$and":
            if not all(matches(document, clause) for clause in condition):
                return False
            continue
        if key == "$or":
            if not any(matches(document, clause) for clause in condition):
                return False
            continue

        values = extract_values(document, key)
        if _is_operator_doc(condition):
            for op, operand in condition.items():
                check = _OPERATORS.get(op)
                if check is None:
                    raise ValueError(f"unsupported query operator: {op}")
                if not check(values, operand):
                    return False
        elif condition not in values:
            return False
    return True


class InMemoryDataAccess:
    """
    `DataAccess` over dictionaries held in memory.

    Documents are shared read-only between threads. Every call is appended to
    ``calls`` as ``(operation, collection, filter)`` for inspection.
    """

    def __init__(self, collections: Optional[Mapping[str, Iterable[Document]]] = None) -> None:
        self._collections: Dict[str, Tuple[Document, ...]] = {
            name: tuple(documents) for name, documents in (collections or {}).items()
        }
        self._lock = threading.Lock()
        self.calls: List[Tuple[str, str, Any]] = []

    def _log_call(self, operation: str, collection: str, payload: Any) -> None:
        with self._lock:
            self.calls.append((operation, collection, payload))

    def documents(self, collection: str) -> Sequence[Document]:
        return self._collections.get(collection, ())

    def calls_for(self, collection: str, operation: str = "find") -> List[Any]:
        with self._lock:
            return [payload for op, name, payload in self.calls if op == operation and name == collection]

    def find(self, collection: str, filter: Document, limit: int = 0) -> List[Document]:
        self._log_call("find", collection, filter)
        found: List[Document] = []
        for document in self.documents(collection):
            if matches(document, filter):
                found.append(document)
                if limit and len(found) >= limit:
                    break
        return found

    def count(self, collection: str, filter: Document) -> int:
        self._log_call("count", collection, filter)
        return sum(1 for document in self.documents(collection) if matches(document, filter))

    def sample_field(self, collection: str, field_path: str, sample_size: int) -> List[Any]:
        self._log_call("sample_field", collection, field_path)
        documents = self.documents(collection)[:sample_size]
        return [value for document in documents for value in extract_values(document, field_path)]

    def sample_records(self, collection: str, sample_size: int) -> List[Document]:
        self._log_call("sample_records", collection, sample_size)
        return list(self.documents(collection)[:sample_size])


__all__ = ["InMemoryDataAccess", "matches"]
