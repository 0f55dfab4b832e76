"""Unit selection and occupancy aggregates.

Pure functions over an already-loaded unit inventory; the store side of
assign/release lives in services.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any, Protocol

from ...core.exceptions import NoAvailableUnitsError, UnitNotAvailableError
from ...core.utils import to_money
from .schemas import OccupancySnapshot, UnitTypeSummary


class UnitLike(Protocol):
    unit_number: str
    unit_type: str
    rent_amount: Decimal
    is_occupied: bool
    sort_order: int


def _in_generation_order(units: Iterable[UnitLike]) -> list[UnitLike]:
    return sorted(units, key=lambda u: u.sort_order)


def available_units(
    units: Iterable[UnitLike], unit_type: str | None = None
) -> list[UnitLike]:
    """Free units, optionally of one type, in generation order."""
    free = [u for u in _in_generation_order(units) if not u.is_occupied]
    if unit_type is not None:
        free = [u for u in free if u.unit_type == unit_type]
    return free


def select_unit(
    units: Iterable[UnitLike],
    unit_type: str,
    preferred_unit_number: str | None = None,
) -> UnitLike:
    """Pick the unit a new occupant gets.

    The preferred unit when it is free and of the requested type, otherwise
    the first free unit of the type in generation order.

    Raises:
        NoAvailableUnitsError: no free unit of the type exists
        UnitNotAvailableError: the preferred unit is occupied, of another
            type, or does not exist
    """
    candidates = available_units(units, unit_type)
    if not candidates:
        raise NoAvailableUnitsError(unit_type)

    if preferred_unit_number:
        for unit in candidates:
            if unit.unit_number == preferred_unit_number:
                return unit
        raise UnitNotAvailableError(preferred_unit_number)

    return candidates[0]


def compute_occupancy(units: Iterable[UnitLike]) -> OccupancySnapshot:
    """Recompute the property aggregates from scratch."""
    total = 0
    occupied = 0
    revenue = Decimal("0.00")
    for unit in units:
        total += 1
        if unit.is_occupied:
            occupied += 1
            revenue += to_money(unit.rent_amount)
    return OccupancySnapshot(
        total_units=total,
        occupied_units=occupied,
        available_units=total - occupied,
        monthly_revenue=to_money(revenue),
    )


def occupancy_is_consistent(property_obj: Any, units: Iterable[UnitLike]) -> bool:
    """Whether a property's cached aggregates match its units."""
    snapshot = compute_occupancy(units)
    return (
        property_obj.total_units == snapshot.total_units
        and property_obj.occupied_units == snapshot.occupied_units
        and property_obj.available_units == snapshot.available_units
        and to_money(property_obj.monthly_revenue) == snapshot.monthly_revenue
    )


def summarize_unit_types(
    declarations: Sequence[Any], units: Sequence[UnitLike]
) -> list[UnitTypeSummary]:
    """Per declared type: rent, free and total counts."""
    summaries = []
    seen: set[str] = set()
    for declaration in declarations:
        type_name = _field(declaration, "type")
        if type_name in seen:
            continue
        seen.add(type_name)
        of_type = [u for u in units if u.unit_type == type_name]
        summaries.append(
            UnitTypeSummary(
                type=type_name,
                rent_amount=to_money(_field(declaration, "rent_amount")),
                available_count=sum(1 for u in of_type if not u.is_occupied),
                total_count=len(of_type),
            )
        )
    return summaries


def _field(declaration: Any, name: str) -> Any:
    # Declarations are pydantic models in memory and plain dicts once stored
    if isinstance(declaration, dict):
        return declaration[name]
    return getattr(declaration, name)
