"""Shared rule/condition evaluator.

Lead scoring rules and workflow conditions both describe a comparison
between one field of a flat record and a literal (``field_value``) or a
list of literals (``field_values``).  This module is the single place
those comparisons are implemented.

All string comparisons are case-insensitive.  A field that is allowlisted
for the entity but absent from the record is treated as ``None``, which:

* satisfies ``not_exists``, ``not_contains`` and ``not_in``;
* fails ``exists``, ``contains`` and ``in``;
* compares as ``""`` for ``equals`` / ``not_equals``;
* compares as ``0`` for ``greater_than`` / ``less_than``.

A field name outside the allowlist raises ``UnknownFieldError``.
"""

import logging
import math
from typing import Any, List, Mapping, Optional, Sequence

from app.core.entity_fields import EntityType, get_field_value

logger = logging.getLogger(__name__)

# Workflow conditions accept these spellings too
_OPERATOR_ALIASES = {
    "is_null": "not_exists",
    "is_not_null": "exists",
}


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).lower()


def _as_number(value: Any) -> float:
    """Coerce to a float; anything unparseable becomes 0."""
    if value is None or isinstance(value, bool):
        return float(value or 0)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) else number


def split_candidates(field_value: Optional[str]) -> List[str]:
    """Split a comma-separated rule value into trimmed, lower-cased candidates."""
    if not field_value:
        return []
    return [part.strip().lower() for part in str(field_value).split(",") if part.strip()]


def compare(
    value: Any,
    operator: str,
    field_value: Optional[str] = None,
    field_values: Optional[Sequence[str]] = None,
) -> bool:
    """Apply *operator* to an already-resolved record *value*."""
    op = _OPERATOR_ALIASES.get(operator, operator)

    if op == "equals":
        return _as_text(value) == _as_text(field_value)

    if op == "not_equals":
        return _as_text(value) != _as_text(field_value)

    if op == "contains":
        candidates = split_candidates(field_value)
        if _is_empty(value) or not candidates:
            return False
        text = _as_text(value)
        return any(c in text for c in candidates)

    if op == "not_contains":
        candidates = split_candidates(field_value)
        if _is_empty(value) or not candidates:
            return True
        text = _as_text(value)
        return not any(c in text for c in candidates)

    if op == "greater_than":
        return _as_number(value) > _as_number(field_value)

    if op == "less_than":
        return _as_number(value) < _as_number(field_value)

    if op == "in":
        if _is_empty(value) or not field_values:
            return False
        return _as_text(value) in {_as_text(v) for v in field_values}

    if op == "not_in":
        if _is_empty(value) or not field_values:
            return True
        return _as_text(value) not in {_as_text(v) for v in field_values}

    if op == "exists":
        return not _is_empty(value)

    if op == "not_exists":
        return _is_empty(value)

    logger.warning("Unknown rule operator %r, treating as no match", operator)
    return False


def evaluate_rule(
    record: Mapping[str, Any],
    field_name: str,
    operator: str,
    field_value: Optional[str] = None,
    field_values: Optional[Sequence[str]] = None,
    entity_type: Any = EntityType.lead,
) -> bool:
    """Evaluate one rule against *record*.

    Raises ``UnknownFieldError`` when *field_name* is not allowlisted for
    *entity_type*.
    """
    value = get_field_value(record, entity_type, field_name)
    return compare(value, operator, field_value, field_values)
