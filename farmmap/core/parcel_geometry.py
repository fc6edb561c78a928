"""Pure geometric predicates for farm boundary and parcel rings.

All predicates are deterministic and side-effect free. Undersized or empty
rings are treated as non-containing and non-overlapping; no predicate raises.

Conventions
-----------
- Points lying exactly on an edge or a vertex count as inside for
  containment checks.
- Two rings that only touch along an edge or at a vertex do not overlap.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import Any, Iterable, Sequence

import numpy as np
import shapely
from loguru import logger
from shapely.errors import GEOSException
from shapely.geometry import Polygon

from farmmap.core.errors import BoundsFitError
from farmmap.core.ring import MIN_RING_POINTS, parse_coordinate, ring_to_xy

_EPS = 1e-12


@dataclass(frozen=True)
class RingBounds:
    """Union bounding box of one or more rings in degrees."""

    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    @property
    def center(self) -> tuple[float, float]:
        """Return center as ``(lat, lng)``."""
        return (
            (self.min_lat + self.max_lat) / 2.0,
            (self.min_lng + self.max_lng) / 2.0,
        )


def point_in_polygon(point: Any, ring: Iterable[Any]) -> bool:
    """Crossing-number point test; edge-touching points count as inside.

    Parameters
    ----------
    point : Any
        Coordinate accepted by :func:`farmmap.core.ring.parse_coordinate`.
    ring : Iterable[Any]
        Polygon ring.

    Returns
    -------
    bool
        True when the point is inside the ring or on its boundary.

    Examples
    --------
    >>> square = [(0, 0), (0, 10), (10, 10), (10, 0)]
    >>> point_in_polygon((5, 5), square)
    True
    >>> point_in_polygon((0, 5), square)
    True
    >>> point_in_polygon((11, 5), square)
    False
    """
    coord = parse_coordinate(point)
    ring_xy = ring_to_xy(ring)
    if coord is None or ring_xy.shape[0] < MIN_RING_POINTS:
        return False
    return _point_in_xy(np.asarray([coord.lng, coord.lat]), ring_xy, strict=False)


def polygon_inside_polygon(inner: Iterable[Any], outer: Iterable[Any]) -> bool:
    """Return True when ``inner`` lies entirely within ``outer``.

    Every vertex of ``inner`` must pass :func:`point_in_polygon` and no edge
    of ``inner`` may cross an edge of ``outer``. Edge midpoints are checked as
    well so that an inner edge cannot span a notch of a non-convex outer ring
    through one of its vertices.
    """
    inner_xy = ring_to_xy(inner)
    outer_xy = ring_to_xy(outer)
    if inner_xy.shape[0] < MIN_RING_POINTS or outer_xy.shape[0] < MIN_RING_POINTS:
        return False
    for vertex in inner_xy:
        if not _point_in_xy(vertex, outer_xy, strict=False):
            return False
    if _edges_cross(inner_xy, outer_xy):
        return False
    for midpoint in _edge_midpoints(inner_xy):
        if not _point_in_xy(midpoint, outer_xy, strict=False):
            return False
    return True


def polygons_overlap(ring_a: Iterable[Any], ring_b: Iterable[Any]) -> bool:
    """Return True when two rings share interior area.

    True iff an edge of one ring crosses an edge of the other, a vertex of
    one lies strictly inside the other, or the polygon interiors intersect.
    The relation is symmetric.
    """
    return _overlap_xy(ring_to_xy(ring_a), ring_to_xy(ring_b))


def any_polygons_overlap(rings: Sequence[Iterable[Any]]) -> bool:
    """Return True when any pair among ``rings`` overlaps."""
    ring_list = [ring_to_xy(ring) for ring in rings]
    for ring_a, ring_b in combinations(ring_list, 2):
        if _overlap_xy(ring_a, ring_b):
            return True
    return False


def _overlap_xy(a_xy: np.ndarray, b_xy: np.ndarray) -> bool:
    if a_xy.shape[0] < MIN_RING_POINTS or b_xy.shape[0] < MIN_RING_POINTS:
        return False
    if _edges_cross(a_xy, b_xy):
        return True
    if any(_point_in_xy(vertex, b_xy, strict=True) for vertex in a_xy):
        return True
    if any(_point_in_xy(vertex, a_xy, strict=True) for vertex in b_xy):
        return True
    return _interiors_intersect(a_xy, b_xy)


def ring_bounds(rings: Sequence[Iterable[Any]]) -> RingBounds:
    """Compute the union bounding box of all rings.

    Raises
    ------
    BoundsFitError
        When no ring holds a point, or the box is non-finite or collapses to
        a single point.
    """
    arrays = [ring_to_xy(ring) for ring in rings]
    arrays = [array for array in arrays if array.shape[0] > 0]
    if not arrays:
        raise BoundsFitError("no coordinates to fit")
    stacked = np.vstack(arrays)
    min_lng, min_lat = np.min(stacked, axis=0)
    max_lng, max_lat = np.max(stacked, axis=0)
    values = np.asarray([min_lat, min_lng, max_lat, max_lng], dtype=np.float64)
    if not np.all(np.isfinite(values)):
        raise BoundsFitError("bounds are not finite")
    if max_lng - min_lng <= _EPS and max_lat - min_lat <= _EPS:
        raise BoundsFitError("bounds collapse to a single point")
    return RingBounds(
        min_lat=float(min_lat),
        min_lng=float(min_lng),
        max_lat=float(max_lat),
        max_lng=float(max_lng),
    )


def _point_in_xy(point_xy: np.ndarray, ring_xy: np.ndarray, strict: bool) -> bool:
    """Crossing-number test on ``(x, y)`` arrays with explicit edge handling."""
    if _point_on_boundary(point_xy, ring_xy):
        return not strict
    x_value, y_value = float(point_xy[0]), float(point_xy[1])
    xi, yi = ring_xy[:, 0], ring_xy[:, 1]
    xj, yj = np.roll(xi, 1), np.roll(yi, 1)
    straddles = (yi > y_value) != (yj > y_value)
    with np.errstate(divide="ignore", invalid="ignore"):
        x_cross = (xj - xi) * (y_value - yi) / (yj - yi) + xi
    crossings = np.count_nonzero(straddles & (x_value < x_cross))
    return bool(crossings % 2 == 1)


def _point_on_boundary(point_xy: np.ndarray, ring_xy: np.ndarray) -> bool:
    """Return True when the point lies on any ring edge."""
    start = ring_xy
    end = np.roll(ring_xy, -1, axis=0)
    edge = end - start
    rel = point_xy - start
    cross = edge[:, 0] * rel[:, 1] - edge[:, 1] * rel[:, 0]
    scale = np.maximum(np.hypot(edge[:, 0], edge[:, 1]), 1.0)
    collinear = np.abs(cross) <= _EPS * scale * scale
    dot = np.einsum("ij,ij->i", rel, edge)
    length_sq = np.einsum("ij,ij->i", edge, edge)
    within = (dot >= -_EPS) & (dot <= length_sq + _EPS)
    return bool(np.any(collinear & within))


def _orientation(
    origin: np.ndarray, target: np.ndarray, probe: np.ndarray
) -> np.ndarray:
    """Signed orientation of ``probe`` relative to ``origin -> target``."""
    value = (target[..., 0] - origin[..., 0]) * (probe[..., 1] - origin[..., 1]) - (
        target[..., 1] - origin[..., 1]
    ) * (probe[..., 0] - origin[..., 0])
    value = np.where(np.abs(value) <= _EPS, 0.0, value)
    return np.sign(value)


def _edges_cross(ring_a: np.ndarray, ring_b: np.ndarray) -> bool:
    """Return True when any edge of ``ring_a`` properly crosses one of ``ring_b``.

    Touching at an endpoint or running collinear is not a proper crossing.
    """
    a_start = ring_a[:, None, :]
    a_end = np.roll(ring_a, -1, axis=0)[:, None, :]
    b_start = ring_b[None, :, :]
    b_end = np.roll(ring_b, -1, axis=0)[None, :, :]
    o1 = _orientation(a_start, a_end, b_start)
    o2 = _orientation(a_start, a_end, b_end)
    o3 = _orientation(b_start, b_end, a_start)
    o4 = _orientation(b_start, b_end, a_end)
    proper = (o1 * o2 < 0) & (o3 * o4 < 0)
    return bool(np.any(proper))


def _edge_midpoints(ring_xy: np.ndarray) -> np.ndarray:
    return (ring_xy + np.roll(ring_xy, -1, axis=0)) / 2.0


def _interiors_intersect(ring_a: np.ndarray, ring_b: np.ndarray) -> bool:
    """Shapely interior-interior test for identical or vertex-sharing rings."""
    try:
        poly_a = Polygon(ring_a)
        poly_b = Polygon(ring_b)
        if not (shapely.is_valid(poly_a) and shapely.is_valid(poly_b)):
            poly_a = shapely.make_valid(poly_a)
            poly_b = shapely.make_valid(poly_b)
        return bool(poly_a.relate_pattern(poly_b, "T********"))
    except GEOSException as exc:
        logger.warning(f"Interior overlap test failed: {exc}")
        return False
