"""Metadata filter evaluation shared by the exact-search backends.

A filter is a mapping of metadata key to either a literal (equality) or
an operator dict, e.g. ``{"document_type": "pdf", "word_count": {"$gte": 50}}``.
All keys must match.
"""

from __future__ import annotations

from typing import Any

from docvec.utils.errors import ConfigurationError

_MISSING = object()


def _compare(op: str, actual: Any, expected: Any) -> bool:
    if op == "$eq":
        return actual == expected
    if op == "$ne":
        return actual != expected
    if op == "$in":
        return actual in expected
    if op == "$nin":
        return actual not in expected
    if op == "$exists":
        return (actual is not _MISSING) == bool(expected)
    if actual is _MISSING or actual is None:
        return False
    if op == "$contains":
        if isinstance(actual, (list, tuple, set, str)):
            return expected in actual
        return False
    try:
        if op == "$gt":
            return actual > expected
        if op == "$gte":
            return actual >= expected
        if op == "$lt":
            return actual < expected
        if op == "$lte":
            return actual <= expected
    except TypeError:
        return False
    raise ConfigurationError(message=f"Unknown filter operator: {op}")


def validate_filter(metadata_filter: dict[str, Any] | None) -> None:
    """Reject unknown operators and ``$in``/``$nin`` without a list of values."""
    if not metadata_filter:
        return
    for key, condition in metadata_filter.items():
        if isinstance(condition, dict):
            for op, expected in condition.items():
                if op not in SUPPORTED_OPERATORS:
                    raise ConfigurationError(
                        message=f"Unknown filter operator {op!r} for key {key!r}"
                    )
                if op in ("$in", "$nin") and not isinstance(expected, (list, tuple, set, frozenset)):
                    raise ConfigurationError(
                        message=f"{op} for key {key!r} needs a list of values, got {type(expected).__name__}"
                    )


def matches_filter(metadata: dict[str, Any], metadata_filter: dict[str, Any] | None) -> bool:
    """Return True when *metadata* satisfies every condition in *metadata_filter*."""
    if not metadata_filter:
        return True
    for key, condition in metadata_filter.items():
        actual = metadata.get(key, _MISSING)
        if isinstance(condition, dict):
            for op, expected in condition.items():
                if op not in SUPPORTED_OPERATORS:
                    raise ConfigurationError(message=f"Unknown filter operator: {op}")
                if op != "$exists" and op not in ("$ne", "$nin") and actual is _MISSING:
                    return False
                if not _compare(op, actual, expected):
                    return False
        elif actual is _MISSING or actual != condition:
            return False
    return True


SUPPORTED_OPERATORS = frozenset(
    {"$eq", "$ne", "$in", "$nin", "$gt", "$gte", "$lt", "$lte", "$contains", "$exists"}
)
