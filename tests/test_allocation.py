"""Tests for unit selection and occupancy aggregates."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from rentflow_backend.core.exceptions import (
    NoAvailableUnitsError,
    UnitNotAvailableError,
)
from rentflow_backend.modules.property_management.allocation import (
    available_units,
    compute_occupancy,
    occupancy_is_consistent,
    select_unit,
    summarize_unit_types,
)


def unit(number: str, type_: str, rent: str, order: int, occupied: bool = False):
    return SimpleNamespace(
        unit_number=number,
        unit_type=type_,
        rent_amount=Decimal(rent),
        is_occupied=occupied,
        sort_order=order,
    )


@pytest.fixture
def inventory() -> list[SimpleNamespace]:
    # Deliberately out of generation order
    return [
        unit("B2", "1bedroom", "20000", 4),
        unit("A1", "bedsitter", "8000", 0, occupied=True),
        unit("A3", "bedsitter", "8000", 2),
        unit("A2", "bedsitter", "8000", 1),
        unit("B1", "1bedroom", "20000", 3, occupied=True),
    ]


class TestSelectUnit:
    """Choosing the unit a new occupant gets."""

    def test_first_free_in_generation_order(self, inventory) -> None:
        assert select_unit(inventory, "bedsitter").unit_number == "A2"

    def test_preferred_unit_when_free(self, inventory) -> None:
        chosen = select_unit(inventory, "bedsitter", preferred_unit_number="A3")
        assert chosen.unit_number == "A3"

    def test_preferred_unit_occupied(self, inventory) -> None:
        with pytest.raises(UnitNotAvailableError) as exc_info:
            select_unit(inventory, "bedsitter", preferred_unit_number="A1")
        assert exc_info.value.unit_number == "A1"

    def test_preferred_unit_of_other_type(self, inventory) -> None:
        with pytest.raises(UnitNotAvailableError):
            select_unit(inventory, "bedsitter", preferred_unit_number="B2")

    def test_no_free_unit_of_type(self, inventory) -> None:
        inventory[0].is_occupied = True
        with pytest.raises(NoAvailableUnitsError) as exc_info:
            select_unit(inventory, "1bedroom")
        assert exc_info.value.unit_type == "1bedroom"

    def test_unknown_type(self, inventory) -> None:
        with pytest.raises(NoAvailableUnitsError):
            select_unit(inventory, "penthouse")

    def test_available_units_filtered_by_type(self, inventory) -> None:
        assert [u.unit_number for u in available_units(inventory)] == ["A2", "A3", "B2"]
        assert [u.unit_number for u in available_units(inventory, "1bedroom")] == ["B2"]


class TestOccupancy:
    """Aggregates derived from a unit inventory."""

    def test_compute_occupancy(self, inventory) -> None:
        snapshot = compute_occupancy(inventory)

        assert snapshot.total_units == 5
        assert snapshot.occupied_units == 2
        assert snapshot.available_units == 3
        assert snapshot.monthly_revenue == Decimal("28000.00")

    def test_empty_inventory(self) -> None:
        snapshot = compute_occupancy([])
        assert (snapshot.total_units, snapshot.occupied_units) == (0, 0)
        assert snapshot.monthly_revenue == Decimal("0.00")

    def test_consistency_check(self, inventory) -> None:
        cached = SimpleNamespace(
            total_units=5,
            occupied_units=2,
            available_units=3,
            monthly_revenue=Decimal("28000"),
        )
        assert occupancy_is_consistent(cached, inventory)

        cached.occupied_units = 3
        cached.available_units = 2
        assert not occupancy_is_consistent(cached, inventory)

    def test_summarize_unit_types(self, inventory) -> None:
        declarations = [
            {"type": "bedsitter", "rent_amount": "8000.00"},
            {"type": "1bedroom", "rent_amount": "20000.00"},
        ]
        summaries = summarize_unit_types(declarations, inventory)

        assert [(s.type, s.available_count, s.total_count) for s in summaries] == [
            ("bedsitter", 2, 3),
            ("1bedroom", 1, 2),
        ]
        assert summaries[1].rent_amount == Decimal("20000.00")
