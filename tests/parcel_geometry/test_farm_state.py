"""Tests for the in-memory farm state."""

from __future__ import annotations

import pytest

from farmmap.core.farm_state import (
    DrawTarget,
    FarmState,
    ParcelCategory,
    farm_state_from_record,
)
from farmmap.core.ring import Coordinate

BOUNDARY = [(0, 0), (0, 10), (10, 10), (10, 0)]


def test_new_parcel_starts_without_ring() -> None:
    state = FarmState()
    parcel_id = state.add_parcel(ParcelCategory.FRUIT, "Dates")
    parcel = state.get_parcel(parcel_id)
    assert parcel.ring == ()
    assert parcel.has_ring is False
    assert state.committed_parcel_rings() == []


def test_write_ring_replaces_boundary_and_parcel_wholesale() -> None:
    state = FarmState(boundary_ring=BOUNDARY)
    parcel_id = state.add_parcel("vegetable")
    state.write_ring(DrawTarget.parcel(parcel_id), [(1, 1), (1, 2), (2, 2)])
    state.write_ring(DrawTarget.parcel(parcel_id), [(3, 3), (3, 4), (4, 4), (4, 3)])
    assert len(state.get_parcel(parcel_id).ring) == 4

    state.write_ring(DrawTarget.boundary(), [(0, 0), (0, 20), (20, 20)])
    assert state.boundary_ring[-1] == Coordinate(20, 20)


def test_write_ring_rejects_short_rings_and_missing_parcels() -> None:
    state = FarmState()
    with pytest.raises(ValueError):
        state.write_ring(DrawTarget.boundary(), [(0, 0), (0, 1)])
    with pytest.raises(KeyError):
        state.write_ring(DrawTarget.parcel(42), BOUNDARY)
    assert state.boundary_ring == ()


def test_listeners_fire_on_every_change() -> None:
    state = FarmState()
    calls = []
    state.add_listener(lambda: calls.append("changed"))
    parcel_id = state.add_parcel(ParcelCategory.LIVESTOCK)
    state.write_ring(DrawTarget.boundary(), BOUNDARY)
    state.remove_parcel(parcel_id)
    assert calls == ["changed", "changed", "changed"]
    assert state.remove_parcel(parcel_id) is False
    assert len(calls) == 3


def test_committed_parcel_rings_can_exclude_one_parcel() -> None:
    state = FarmState(boundary_ring=BOUNDARY)
    first = state.add_parcel(ParcelCategory.FRUIT)
    second = state.add_parcel(ParcelCategory.FODDER)
    state.write_ring(DrawTarget.parcel(first), [(1, 1), (1, 2), (2, 2)])
    state.write_ring(DrawTarget.parcel(second), [(5, 5), (5, 6), (6, 6)])

    assert len(state.committed_parcel_rings()) == 2
    remaining = state.committed_parcel_rings(exclude_parcel_id=first)
    assert remaining == [state.get_parcel(second).ring]


def test_preview_rings_lists_boundary_first() -> None:
    state = FarmState(boundary_ring=BOUNDARY)
    parcel_id = state.add_parcel(ParcelCategory.GREENHOUSE)
    state.add_parcel(ParcelCategory.FRUIT)
    state.write_ring(DrawTarget.parcel(parcel_id), [(1, 1), (1, 2), (2, 2)])

    rings = state.preview_rings()
    assert len(rings) == 2
    assert rings[0] == state.boundary_ring


def test_record_round_trip_keeps_ring_fields() -> None:
    record = {
        "id": 7,
        "farmName": "Al Ain",
        "coordinates": {"lat": 5, "lng": 5},
        "boundaryRing": [{"lat": lat, "lng": lng} for lat, lng in BOUNDARY],
        "parcels": [
            {
                "category": "fruit",
                "name": "Dates",
                "parcelRing": [{"lat": 1, "lng": 1}, {"lat": 1, "lng": 2}, {"lat": 2, "lng": 2}],
            },
            {"category": "fodder", "name": "Alfalfa", "parcelRing": []},
            {"category": "spaceship", "name": "Unknown"},
        ],
    }
    state = farm_state_from_record(record)

    assert state.farm_id == 7
    assert state.name == "Al Ain"
    assert state.center == Coordinate(5, 5)
    assert [parcel.name for parcel in state.parcels] == ["Dates", "Alfalfa"]
    exported = state.to_record()
    assert exported["boundaryRing"] == record["boundaryRing"]
    assert exported["parcels"][0]["parcelRing"] == record["parcels"][0]["parcelRing"]
    assert exported["parcels"][1]["parcelRing"] == []


def test_to_geodataframe_holds_boundary_and_committed_parcels() -> None:
    state = FarmState(name="Farm", boundary_ring=BOUNDARY)
    parcel_id = state.add_parcel(ParcelCategory.FRUIT, "Dates")
    state.add_parcel(ParcelCategory.FODDER, "Empty")
    state.write_ring(DrawTarget.parcel(parcel_id), [(1, 1), (1, 2), (2, 2)])

    gdf = state.to_geodataframe()

    assert list(gdf["role"]) == ["boundary", "parcel"]
    assert gdf.crs.to_epsg() == 4326
    assert gdf.geometry.iloc[0].bounds == (0.0, 0.0, 10.0, 10.0)
