"""Server-side sorting of semi-structured records by a named field.

Comparison policy:
- str vs str: code point order
- number vs number: numeric value (int and float mix freely)
- bool vs bool: False < True
- anything else (missing field, mixed types): equal

The sort is stable in both directions. Descending negates the comparator
instead of reversing the output, so records that compare equal keep
their input order.
"""

from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Sequence, Union


class SortDirection(str, Enum):
    """Sort order."""
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in ("ascending", "asc"):
                return cls.ASC
            if normalized in ("descending", "desc"):
                return cls.DESC
        return None


_MISSING = object()


def _is_number(value: Any) -> bool:
    # bool is an int subclass but ranks in its own category
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compare_values(a: Any, b: Any) -> int:
    """Three-way compare two field values under the sorting policy."""
    if isinstance(a, bool) and isinstance(b, bool):
        return int(a) - int(b)
    if isinstance(a, str) and isinstance(b, str):
        return (a > b) - (a < b)
    if _is_number(a) and _is_number(b):
        # NaN compares unordered, which falls through to equal
        return (a > b) - (a < b)
    return 0


def _field_comparator(field: str, direction: SortDirection) -> Callable[[Any, Any], int]:
    sign = -1 if direction is SortDirection.DESC else 1

    def compare(left: Any, right: Any) -> int:
        a = left.get(field, _MISSING) if isinstance(left, dict) else _MISSING
        b = right.get(field, _MISSING) if isinstance(right, dict) else _MISSING
        return sign * compare_values(a, b)

    return compare


def sort(
    items: Sequence[Dict[str, Any]],
    field: str,
    direction: Union[SortDirection, str] = SortDirection.ASC,
) -> List[Dict[str, Any]]:
    """Return a new list of items ordered by ``field``.

    Args:
        items: Records to sort; non-dict entries compare equal to everything
        field: Name of the field to compare on
        direction: "asc"/"ascending" or "desc"/"descending"

    Raises:
        ValueError: If direction is not recognised
    """
    direction = SortDirection(direction)
    return sorted(items, key=cmp_to_key(_field_comparator(field, direction)))
