"""Reference values and their normalization to media ids.

A relationship field may hold a raw id, a numeric string, or a populated
document (depth > 0). Every shape is first converted to a ReferenceValue and
then reduced to an integer id, or None when nothing usable is present.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Union


@dataclass(frozen=True)
class IdRef:
    """Bare id stored in a relationship field."""
    id: int


@dataclass(frozen=True)
class PopulatedRef:
    """Populated related document; only ``id`` matters."""
    id: int
    fields: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Absent:
    """No reference, or one that cannot be read as an id."""


ABSENT = Absent()

ReferenceValue = Union[IdRef, PopulatedRef, Absent]

_NUMERIC_ID = re.compile(r"\s*[+-]?\d+\s*")


def _parse_id(value: Any) -> int | None:
    # bool is an int subclass but never an id
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _NUMERIC_ID.fullmatch(value):
        return int(value)
    return None


def to_reference_value(raw: Any) -> ReferenceValue:
    """Classify a raw relationship value.

    Args:
        raw: Field value as stored on a document

    Returns:
        IdRef, PopulatedRef or ABSENT
    """
    if raw is None:
        return ABSENT

    if isinstance(raw, dict):
        ref_id = _parse_id(raw.get("id"))
        if ref_id is None:
            return ABSENT
        return PopulatedRef(id=ref_id, fields={k: v for k, v in raw.items() if k != "id"})

    ref_id = _parse_id(raw)
    if ref_id is None:
        # ORM rows and other objects exposing an id attribute
        ref_id = _parse_id(getattr(raw, "id", None))
        if ref_id is None:
            return ABSENT
        return PopulatedRef(id=ref_id)

    return IdRef(id=ref_id)


def normalize_reference(raw: Any) -> int | None:
    """Extract a canonical integer id from a relationship value.

    Args:
        raw: Integer, numeric string, or object exposing ``id``

    Returns:
        The referenced id, or None for absent/unparseable input
    """
    value = to_reference_value(raw)
    if isinstance(value, (IdRef, PopulatedRef)):
        return value.id
    return None
