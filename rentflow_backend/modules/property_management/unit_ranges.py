"""Unit range parsing.

A unit-type declaration such as ``{"type": "bedsitter", "start_unit": "A1",
"end_unit": "A10"}`` expands to the units A1..A10, each with a billing
reference ``<account_prefix>#<unit_number>``. Everything here is pure.
"""

import re
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any, Protocol

from ...core.exceptions import OverlappingUnitRangesError, ValidationError
from ...core.utils import to_money

_PREFIX_RE = re.compile(r"^([A-Za-z]*)")
_NUMBER_RE = re.compile(r"(\d+)\D*$")

BILLING_REFERENCE_SEPARATOR = "#"


class UnitTypeLike(Protocol):
    type: str
    start_unit: str
    end_unit: str
    rent_amount: Decimal
    description: str | None


def extract_unit_prefix(label: str) -> str:
    """Leading alphabetic run of a unit label ("A10" -> "A", "10" -> "")."""
    match = _PREFIX_RE.match(label.strip())
    return match.group(1) if match else ""


def extract_unit_number(label: str) -> int:
    """Trailing integer of a unit label ("F2-10" -> 10); no digits counts as 1."""
    match = _NUMBER_RE.search(label)
    return int(match.group(1)) if match else 1


def build_billing_reference(account_prefix: str, unit_number: str) -> str:
    return f"{account_prefix}{BILLING_REFERENCE_SEPARATOR}{unit_number}"


def unit_range(declaration: UnitTypeLike) -> tuple[str, int, int]:
    """(prefix, start, end) for a declaration."""
    return (
        extract_unit_prefix(declaration.start_unit),
        extract_unit_number(declaration.start_unit),
        extract_unit_number(declaration.end_unit),
    )


def generate_units(
    declaration: UnitTypeLike, account_prefix: str, start_order: int = 0
) -> list[dict[str, Any]]:
    """Expand one declaration into unit rows, in ascending unit number.

    An inverted range (end before start) yields no units; callers validate
    declarations before generating.
    """
    prefix, start_num, end_num = unit_range(declaration)
    rent_amount = to_money(declaration.rent_amount)
    description = declaration.description or f"{declaration.type} unit"

    units = []
    for offset, number in enumerate(range(start_num, end_num + 1)):
        unit_number = f"{prefix}{number}"
        units.append(
            {
                "unit_number": unit_number,
                "unit_type": declaration.type,
                "rent_amount": rent_amount,
                "billing_reference": build_billing_reference(
                    account_prefix, unit_number
                ),
                "description": description,
                "sort_order": start_order + offset,
                "is_occupied": False,
                "tenant_id": None,
            }
        )
    return units


def generate_units_from_types(
    declarations: Iterable[UnitTypeLike], account_prefix: str
) -> list[dict[str, Any]]:
    """Expand every declaration, keeping declaration order."""
    units: list[dict[str, Any]] = []
    for declaration in declarations:
        units.extend(generate_units(declaration, account_prefix, len(units)))
    return units


def find_overlapping_ranges(
    declarations: Sequence[UnitTypeLike],
) -> list[tuple[int, int]]:
    """Index pairs of declarations that would generate the same unit numbers.

    Two ranges clash when they share the alphabetic prefix and their numeric
    intervals intersect.
    """
    ranges = [unit_range(d) for d in declarations]
    clashes = []
    for i, (prefix_a, start_a, end_a) in enumerate(ranges):
        for j in range(i + 1, len(ranges)):
            prefix_b, start_b, end_b = ranges[j]
            if prefix_a != prefix_b:
                continue
            if start_a <= end_b and start_b <= end_a:
                clashes.append((i, j))
    return clashes


def validate_unit_types(declarations: Sequence[UnitTypeLike]) -> None:
    """Reject declaration lists that cannot be expanded into a clean inventory.

    Raises:
        ValidationError: empty list, or an inverted range
        OverlappingUnitRangesError: two declarations share unit numbers
    """
    if not declarations:
        raise ValidationError("At least one unit type is required", field="unit_types")

    for declaration in declarations:
        _, start_num, end_num = unit_range(declaration)
        if end_num < start_num:
            raise ValidationError(
                f"Unit range {declaration.start_unit}-{declaration.end_unit} "
                f"ends before it starts",
                field="unit_types",
                value=declaration.type,
            )

    clashes = find_overlapping_ranges(declarations)
    if clashes:
        first, second = clashes[0]
        a, b = declarations[first], declarations[second]
        raise OverlappingUnitRangesError(
            f"Unit range {a.start_unit}-{a.end_unit} ({a.type}) overlaps "
            f"{b.start_unit}-{b.end_unit} ({b.type})",
            details={"overlaps": clashes},
        )
