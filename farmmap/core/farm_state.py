"""In-memory farm form state owning the boundary and parcel rings."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import geopandas as gpd
from loguru import logger
from shapely.geometry import Polygon

from farmmap.core.ring import (
    Coordinate,
    Ring,
    is_polygon_ring,
    normalize_ring,
    parse_coordinate,
    ring_to_records,
    ring_to_xy,
)


class ParcelCategory(str, Enum):
    """Crop or livestock category a parcel belongs to."""

    FRUIT = "fruit"
    VEGETABLE = "vegetable"
    FODDER = "fodder"
    GREENHOUSE = "greenhouse"
    LIVESTOCK = "livestock"


class TargetKind(str, Enum):
    """Kind of entity a drawing session writes into."""

    BOUNDARY = "boundary"
    PARCEL = "parcel"


@dataclass(frozen=True)
class DrawTarget:
    """Reference to the entity that receives a committed ring."""

    kind: TargetKind
    parcel_id: int | None = None

    @classmethod
    def boundary(cls) -> "DrawTarget":
        return cls(TargetKind.BOUNDARY)

    @classmethod
    def parcel(cls, parcel_id: int) -> "DrawTarget":
        return cls(TargetKind.PARCEL, int(parcel_id))

    @property
    def is_boundary(self) -> bool:
        return self.kind == TargetKind.BOUNDARY


@dataclass
class Parcel:
    """Crop/livestock entry optionally carrying its own ring.

    Parameters
    ----------
    parcel_id : int
        Unique id within the farm.
    category : ParcelCategory
        Crop or livestock category.
    name : str
        Free label, e.g. crop or stock type.
    ring : Ring
        Committed ring, empty until a drawing session commits one.
    """

    parcel_id: int
    category: ParcelCategory
    name: str = ""
    ring: Ring = field(default_factory=tuple)

    @property
    def has_ring(self) -> bool:
        return len(self.ring) > 0


class FarmState:
    """Farm geometry state with a single ring writer.

    Only :meth:`write_ring` mutates rings. Parcels are added and removed
    independently by the user; a new parcel always starts with an empty ring.

    Examples
    --------
    >>> state = FarmState()
    >>> pid = state.add_parcel(ParcelCategory.FRUIT, "Dates")
    >>> state.get_parcel(pid).ring
    ()
    """

    def __init__(
        self,
        farm_id: Any = None,
        name: str = "",
        center: Coordinate | None = None,
        boundary_ring: Iterable[Any] | None = None,
    ) -> None:
        self.farm_id = farm_id
        self.name = name
        self.center = center
        self._boundary_ring: Ring = normalize_ring(boundary_ring)
        self._parcels: dict[int, Parcel] = {}
        self._next_parcel_id: int = 0
        self._listeners: list[Callable[[], None]] = []

    @property
    def boundary_ring(self) -> Ring:
        return self._boundary_ring

    @property
    def parcels(self) -> list[Parcel]:
        """Parcels in creation order."""
        return list(self._parcels.values())

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a callback fired after every state change."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def add_parcel(self, category: ParcelCategory | str, name: str = "") -> int:
        """Create a parcel with an empty ring and return its id."""
        parcel = Parcel(
            parcel_id=self._next_parcel_id,
            category=ParcelCategory(category),
            name=name,
        )
        self._parcels[parcel.parcel_id] = parcel
        self._next_parcel_id += 1
        logger.debug(f"Parcel added: {parcel.parcel_id} ({parcel.category.value})")
        self._notify()
        return parcel.parcel_id

    def remove_parcel(self, parcel_id: int) -> bool:
        parcel = self._parcels.pop(parcel_id, None)
        if parcel is None:
            return False
        logger.debug(f"Parcel removed: {parcel_id}")
        self._notify()
        return True

    def get_parcel(self, parcel_id: int) -> Parcel | None:
        return self._parcels.get(parcel_id)

    def has_target(self, target: DrawTarget) -> bool:
        """Return True when the target entity still exists."""
        if target.is_boundary:
            return True
        return target.parcel_id in self._parcels

    def committed_parcel_rings(self, exclude_parcel_id: int | None = None) -> list[Ring]:
        """Return committed parcel rings, optionally skipping one parcel.

        Parameters
        ----------
        exclude_parcel_id : int, optional
            Parcel whose own previous ring is left out, used when re-drawing
            that parcel.
        """
        return [
            parcel.ring
            for parcel in self._parcels.values()
            if parcel.has_ring and parcel.parcel_id != exclude_parcel_id
        ]

    def write_ring(self, target: DrawTarget, ring: Iterable[Any]) -> None:
        """Replace the ring of ``target`` wholesale.

        Raises
        ------
        ValueError
            When the ring is not a polygon.
        KeyError
            When the target parcel does not exist.
        """
        normalized = normalize_ring(ring)
        if not is_polygon_ring(normalized):
            raise ValueError("ring must hold at least three valid points")
        if target.is_boundary:
            self._boundary_ring = normalized
            logger.info(f"Farm boundary set ({len(normalized)} points)")
        else:
            parcel = self._parcels.get(target.parcel_id)
            if parcel is None:
                raise KeyError(f"parcel {target.parcel_id} not found")
            parcel.ring = normalized
            logger.info(f"Parcel {parcel.parcel_id} ring set ({len(normalized)} points)")
        self._notify()

    def preview_rings(self) -> list[Ring]:
        """Return boundary followed by every committed parcel ring."""
        rings = [self._boundary_ring] if self._boundary_ring else []
        rings.extend(self.committed_parcel_rings())
        return rings

    def to_record(self) -> dict[str, Any]:
        """Export the ring fields of the farm record contract."""
        return {
            "boundaryRing": ring_to_records(self._boundary_ring),
            "parcels": [
                {
                    "id": parcel.parcel_id,
                    "category": parcel.category.value,
                    "name": parcel.name,
                    "parcelRing": ring_to_records(parcel.ring),
                }
                for parcel in self._parcels.values()
            ],
        }

    def to_geodataframe(self) -> gpd.GeoDataFrame:
        """Build a WGS84 GeoDataFrame of the boundary and committed parcels.

        Returns
        -------
        geopandas.GeoDataFrame
            Columns ``role, parcel_id, category, name, geometry``.
        """
        rows: list[dict[str, Any]] = []
        geometries: list[Polygon] = []
        if self._boundary_ring:
            rows.append(
                {"role": "boundary", "parcel_id": -1, "category": "", "name": self.name}
            )
            geometries.append(Polygon(ring_to_xy(self._boundary_ring)))
        for parcel in self._parcels.values():
            if not parcel.has_ring:
                continue
            rows.append(
                {
                    "role": "parcel",
                    "parcel_id": parcel.parcel_id,
                    "category": parcel.category.value,
                    "name": parcel.name,
                }
            )
            geometries.append(Polygon(ring_to_xy(parcel.ring)))
        columns = ["role", "parcel_id", "category", "name"]
        return gpd.GeoDataFrame(
            {col: [row[col] for row in rows] for col in columns},
            geometry=geometries,
            crs="EPSG:4326",
        )

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()


def farm_state_from_record(record: Mapping[str, Any]) -> FarmState:
    """Build a :class:`FarmState` from a farm record mapping.

    Only ``boundaryRing`` and per-entry ``parcelRing`` are read for geometry;
    ``id``, ``farmName`` and ``coordinates`` identify and center the farm.
    Unknown parcel categories are skipped with a warning.
    """
    state = FarmState(
        farm_id=record.get("id"),
        name=str(record.get("farmName", "")),
        center=parse_coordinate(record.get("coordinates")),
        boundary_ring=record.get("boundaryRing"),
    )
    for entry in record.get("parcels", []) or []:
        try:
            category = ParcelCategory(entry.get("category"))
        except ValueError:
            logger.warning(f"Skipping parcel with unknown category: {entry.get('category')}")
            continue
        parcel_id = state.add_parcel(category, str(entry.get("name", "")))
        ring = normalize_ring(entry.get("parcelRing"))
        if is_polygon_ring(ring):
            state.write_ring(DrawTarget.parcel(parcel_id), ring)
    return state
