"""
Error taxonomy for the query benchmark.

ConfigError and its subclasses are fatal for the affected query definition.
MissingFieldError and DataAccessError are recoverable per iteration.
"""

from __future__ import annotations

from typing import Optional


class BenchmarkError(Exception):
    """Root of every error raised by the benchmark engine."""


class ConfigError(BenchmarkError):
    """Malformed or missing query/parameter configuration."""


class UnknownParameterError(ConfigError):
    """A filter placeholder references a parameter with no spec."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown parameter '{name}' referenced by filter placeholder")
        self.name = name


class EmptyParameterSetError(ConfigError):
    """A filter uses placeholders but the definition declares no parameters at all."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Placeholder '{name}' cannot be resolved: no parameters are defined for this query"
        )
        self.name = name


class NotConfiguredError(ConfigError):
    """sample_from_store was requested without a value store or data-access collaborator."""


class MissingFieldError(BenchmarkError):
    """A sampled record does not carry the requested field."""

    def __init__(self, field: str, parameter: Optional[str] = None) -> None:
        where = f" for parameter '{parameter}'" if parameter else ""
        super().__init__(f"Field '{field}' missing from sampled record{where}")
        self.field = field
        self.parameter = parameter


class DataAccessError(BenchmarkError):
    """A call to the data-access collaborator failed."""

    def __init__(self, operation: str, collection: str, message: str) -> None:
        super().__init__(f"{operation} on '{collection}' failed: {message}")
        self.operation = operation
        self.collection = collection


__all__ = [
    "BenchmarkError",
    "ConfigError",
    "UnknownParameterError",
    "EmptyParameterSetError",
    "NotConfiguredError",
    "MissingFieldError",
    "DataAccessError",
]
