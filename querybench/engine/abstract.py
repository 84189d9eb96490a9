"""
Data-access contract consumed by the query engine.

The engine never talks to a database directly. Join steps, value-pool loading
and correlation sampling all go through an object implementing `DataAccess`;
`querybench.infrastructure` provides a MongoDB implementation and a
deterministic in-memory one.
"""

from __future__ import annotations

from typing import Any, Dict, List, Protocol, runtime_checkable

Document = Dict[str, Any]


@runtime_checkable
class DataAccess(Protocol):
    """
    Minimal single-collection lookup interface.

    Filters are plain documents and must support equality, ``{"$in": [...]}``
    and dot-notation nested fields. Implementations raise
    `querybench.domain.errors.DataAccessError` on failure and enforce their own
    per-call timeout.
    """

    def find(self, collection: str, filter: Document, limit: int = 0) -> List[Document]:
        """
        Return documents of ``collection`` matching ``filter``.

        Parameters
        ----------
        limit : int
            Maximum number of documents; 0 means no limit.
        """
        ...

    def sample_field(self, collection: str, field_path: str, sample_size: int) -> List[Any]:
        """Return up to ``sample_size`` documents' worth of values at ``field_path``."""
        ...

    def sample_records(self, collection: str, sample_size: int) -> List[Document]:
        """Return up to ``sample_size`` whole documents."""
        ...

    def count(self, collection: str, filter: Document) -> int:
        """Server-side count of documents matching ``filter``."""
        ...


__all__ = ["DataAccess", "Document"]
