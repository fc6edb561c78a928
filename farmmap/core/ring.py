"""Coordinate and ring normalization helpers.

A ring is an ordered tuple of unique :class:`Coordinate` values describing a
simple polygon. It is never explicitly closed: the last point is implicitly
connected to the first.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

import numpy as np

MIN_RING_POINTS = 3


class Coordinate(NamedTuple):
    """Geographic coordinate in degrees."""

    lat: float
    lng: float

    def to_dict(self) -> dict[str, float]:
        """Return the ``{"lat", "lng"}`` mapping used by farm records."""
        return {"lat": self.lat, "lng": self.lng}


Ring = tuple[Coordinate, ...]


def parse_coordinate(raw: Any) -> Coordinate | None:
    """Convert one raw coordinate into a finite :class:`Coordinate`.

    Parameters
    ----------
    raw : Any
        ``Coordinate``, ``(lat, lng)`` pair, or mapping with ``lat``/``lng``
        (or ``latitude``/``longitude``) keys. Values may be numeric strings.

    Returns
    -------
    Coordinate | None
        Parsed coordinate, or ``None`` when the input is missing, non-numeric
        or not finite.

    Examples
    --------
    >>> parse_coordinate({"lat": "25.1", "lng": 55})
    Coordinate(lat=25.1, lng=55.0)
    >>> parse_coordinate({"lat": "not-a-number", "lng": 55}) is None
    True
    """
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        lat_value = raw.get("lat", raw.get("latitude"))
        lng_value = raw.get("lng", raw.get("longitude"))
    else:
        try:
            lat_value, lng_value = raw
        except (TypeError, ValueError):
            return None
    try:
        lat = float(lat_value)
        lng = float(lng_value)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    return Coordinate(lat, lng)


def normalize_ring(raw_points: Iterable[Any] | None) -> Ring:
    """Build a ring from raw points, discarding invalid and repeated points.

    Parameters
    ----------
    raw_points : Iterable[Any] | None
        Raw coordinates accepted by :func:`parse_coordinate`.

    Returns
    -------
    Ring
        Tuple of unique finite coordinates in input order. An explicit closing
        point equal to the first point is dropped. The result may hold fewer
        than three points; use :func:`is_polygon_ring` before treating it as a
        polygon.
    """
    if raw_points is None:
        return ()
    ring: list[Coordinate] = []
    seen: set[Coordinate] = set()
    for raw in raw_points:
        coord = parse_coordinate(raw)
        if coord is None or coord in seen:
            continue
        seen.add(coord)
        ring.append(coord)
    return tuple(ring)


def is_polygon_ring(ring: Iterable[Any] | None) -> bool:
    """Return True when the ring holds at least three valid unique points."""
    return len(normalize_ring(ring)) >= MIN_RING_POINTS


def ring_to_xy(ring: Iterable[Any] | None) -> np.ndarray:
    """Convert a ring to an ``(N, 2)`` array of ``(lng, lat)`` rows.

    Map surfaces draw longitude on x and latitude on y.
    """
    normalized = normalize_ring(ring)
    if not normalized:
        return np.zeros((0, 2), dtype=np.float64)
    return np.asarray([(c.lng, c.lat) for c in normalized], dtype=np.float64)


def ring_to_records(ring: Iterable[Any] | None) -> list[dict[str, float]]:
    """Serialize a ring into the ``[{"lat", "lng"}, ...]`` record contract."""
    return [coord.to_dict() for coord in normalize_ring(ring)]
