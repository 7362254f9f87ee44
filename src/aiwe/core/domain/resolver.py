"""
Parameter Resolver

Substitutes references to earlier action outputs into a parameter map.

A string value starting with `$outputs.` is a reference. The remainder is split
on `.`, `[` and `]` into a path; the first segment names an output key, the
rest are applied as successive key/index accesses. Only top-level values are
inspected; nested objects and arrays pass through untouched.
"""

import re
from collections.abc import Mapping
from typing import Any

from aiwe.core.domain.errors import UnresolvedReferenceError
from aiwe.core.domain.models import OUTPUT_REFERENCE_PREFIX, OutputStore

_PATH_DELIMITERS = re.compile(r"[.\[\]]+")
_MISSING = object()


def parse_reference(value: str) -> list[str]:
    """Split a `$outputs.` reference into its path segments."""
    remainder = value[len(OUTPUT_REFERENCE_PREFIX):]
    return [segment for segment in _PATH_DELIMITERS.split(remainder) if segment]


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment, _MISSING)
    if isinstance(current, (list, tuple, str)) and segment.isdigit():
        index = int(segment)
        return current[index] if index < len(current) else _MISSING
    return _MISSING


class ParameterResolver:
    """Resolves `$outputs.` references against a run's output store."""

    def resolve(self, params: dict[str, Any], outputs: OutputStore) -> dict[str, Any]:
        """
        Resolve every top-level reference in a parameter map.

        Args:
            params: Parameter map as planned
            outputs: Output store of the current run

        Returns:
            New parameter map with references replaced by their values

        Raises:
            UnresolvedReferenceError: If an output key is missing or a path
                segment is undefined; names the parameter and the reference
        """
        resolved: dict[str, Any] = {}
        for key, value in params.items():
            if isinstance(value, str) and value.startswith(OUTPUT_REFERENCE_PREFIX):
                resolved[key] = self._resolve_reference(key, value, outputs)
            else:
                resolved[key] = value
        return resolved

    def _resolve_reference(self, key: str, reference: str, outputs: OutputStore) -> Any:
        path = parse_reference(reference)
        if not path:
            raise UnresolvedReferenceError(
                f"Cannot resolve parameter {key}: empty reference {reference}",
                parameter=key,
                reference=reference,
            )

        output_key = path[0]
        if output_key not in outputs:
            raise UnresolvedReferenceError(
                f"Cannot resolve parameter {key}: missing required output {output_key}",
                parameter=key,
                reference=reference,
            )

        current = outputs[output_key]
        for segment in path[1:]:
            current = _step(current, segment)
            if current is _MISSING:
                raise UnresolvedReferenceError(
                    f"Cannot resolve parameter {key}: invalid path {reference}",
                    parameter=key,
                    reference=reference,
                )
        return current
