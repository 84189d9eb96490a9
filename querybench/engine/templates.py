"""
Filter templates.

A template is any tree of mappings, lists and scalars. A string that is
exactly ``${param:NAME}`` is a placeholder and gets replaced by a generated
value; everything else is copied as-is, map key order included.
"""

from __future__ import annotations

import re
from typing import Any, Iterator, List, Mapping, Optional

from querybench.domain.errors import EmptyParameterSetError, MissingFieldError, UnknownParameterError
from querybench.engine.parameters import CorrelationScope, ParameterGenerator
from querybench.utils.logging import get_logger

log = get_logger(__name__)

PLACEHOLDER = re.compile(r"^\$\{param:([^}]+)\}$")

_OMIT = object()


def placeholder_name(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    match = PLACEHOLDER.match(value)
    return match.group(1) if match else None


def iter_placeholders(template: Any) -> Iterator[str]:
    """Yield every placeholder name in ``template``, depth first, duplicates included."""
    if isinstance(template, Mapping):
        for value in template.values():
            yield from iter_placeholders(value)
    elif isinstance(template, (list, tuple)):
        for item in template:
            yield from iter_placeholders(item)
    else:
        name = placeholder_name(template)
        if name is not None:
            yield name


def validate_template(template: Any, specs: Mapping[str, Any]) -> None:
    """
    Check that every placeholder has a spec, without generating anything.

    Raises
    ------
    EmptyParameterSetError
        If the template has placeholders and ``specs`` is empty.
    UnknownParameterError
        If a placeholder names a parameter missing from a non-empty ``specs``.
    """
    for name in iter_placeholders(template):
        if not specs:
            raise EmptyParameterSetError(name)
        if name not in specs:
            raise UnknownParameterError(name)


class FilterTemplateResolver:
    """
    Substitutes placeholders with values from a `ParameterGenerator`.

    A placeholder whose sampled record lacks the field is dropped from the
    enclosing map or list and reported through ``missing``. An operator
    clause or list left empty by that goes with it, so the query runs with
    fewer effective filters instead of one that matches nothing.
    """

    def __init__(self, generator: ParameterGenerator) -> None:
        self.generator = generator

    def resolve(
        self,
        template: Any,
        scope: CorrelationScope,
        missing: Optional[List[MissingFieldError]] = None,
    ) -> Any:
        value = self._resolve(template, scope, missing)
        if value is not _OMIT:
            return value
        if isinstance(template, Mapping):
            return {}
        if isinstance(template, (list, tuple)):
            return []
        return None

    def _resolve(self, node: Any, scope: CorrelationScope, missing: Optional[List[MissingFieldError]]) -> Any:
        if isinstance(node, Mapping):
            resolved = {}
            for key, value in node.items():
                item = self._resolve(value, scope, missing)
                if item is not _OMIT:
                    resolved[key] = item
            return _OMIT if node and not resolved else resolved
        if isinstance(node, (list, tuple)):
            items = [self._resolve(item, scope, missing) for item in node]
            kept = [item for item in items if item is not _OMIT]
            return _OMIT if node and not kept else kept

        name = placeholder_name(node)
        if name is None:
            return node
        try:
            return self.generator.generate(name, scope)
        except MissingFieldError as exc:
            log.warning(
                f"Omitting filter value for parameter '{name}': {exc}",
                extra={"parameter": name, "field": exc.field},
            )
            if missing is not None:
                missing.append(exc)
            return _OMIT


__all__ = [
    "PLACEHOLDER",
    "FilterTemplateResolver",
    "iter_placeholders",
    "placeholder_name",
    "validate_template",
]
