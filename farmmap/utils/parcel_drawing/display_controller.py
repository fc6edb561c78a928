"""Read-only rendering of farm boundary and parcel rings on a map canvas."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from farmmap.core.errors import BoundsFitError
from farmmap.core.parcel_geometry import ring_bounds
from farmmap.core.ring import (
    Coordinate,
    Ring,
    is_polygon_ring,
    normalize_ring,
    parse_coordinate,
    ring_to_xy,
)

PARCEL_PALETTE: tuple[tuple[tuple[int, int, int, int], str], ...] = (
    ((239, 68, 68, 77), "#DC2626"),
    ((59, 130, 246, 77), "#2563EB"),
    ((16, 185, 129, 77), "#059669"),
    ((245, 158, 11, 77), "#D97706"),
    ((139, 92, 246, 77), "#7C3AED"),
    ((236, 72, 153, 77), "#DB2777"),
    ((6, 182, 212, 77), "#0891B2"),
    ((132, 204, 22, 77), "#65A30D"),
    ((249, 115, 22, 77), "#EA580C"),
    ((20, 184, 166, 77), "#0D9488"),
)

POLYGON_BORDER_WIDTH = 3
CENTER_MARKER_COLOR = ((234, 67, 53, 230), "#B31412")


def stable_parcel_color(index: int) -> tuple[tuple[int, int, int, int], str]:
    """Return the fill/border color pair for the ``index``-th ring."""
    return PARCEL_PALETTE[index % len(PARCEL_PALETTE)]


def as_ring_list(coords: Any) -> list[Any]:
    """Accept either one ring or a list of rings and return a list of rings.

    The input is one ring when its first item parses as a single coordinate
    (mapping, :class:`Coordinate` or numeric ``(lat, lng)`` pair).

    Examples
    --------
    >>> len(as_ring_list([{"lat": 1, "lng": 2}, {"lat": 1, "lng": 3}]))
    1
    >>> len(as_ring_list([(1, 2), (1, 3), (2, 3)]))
    1
    >>> len(as_ring_list([[(1, 2), (1, 3), (2, 3)], [(5, 6), (5, 7), (6, 7)]]))
    2
    >>> as_ring_list(None)
    []
    """
    if not coords:
        return []
    items = list(coords)
    first = items[0]
    if isinstance(first, (Mapping, Coordinate)) or parse_coordinate(first) is not None:
        return [items]
    return items


class PolygonDisplayController:
    """Draw rings as colored polygons and fit the viewport around them.

    Parameters
    ----------
    map_canvas : Any
        Map canvas exposing ``get_layer_names``, ``remove_layer``,
        ``add_polygon_layer``, ``add_point_layer`` and ``fit_bounds``.
    layer_prefix : str, optional
        Prefix of every layer this controller owns.
    fit_padding : int, optional
        Viewport padding in screen pixels around the fitted rings.
    """

    def __init__(
        self,
        map_canvas: Any,
        layer_prefix: str = "parcel_display",
        fit_padding: int = 50,
    ) -> None:
        self._map_canvas = map_canvas
        self._layer_prefix = layer_prefix
        self._fit_padding = int(fit_padding)
        self._marker_layer_name = f"{layer_prefix}_marker"

    def render(self, center: Any, rings: Iterable[Any] | None) -> dict[str, Any]:
        """Replace displayed rings and return a render payload.

        Parameters
        ----------
        center : Any
            Farm center accepted by :func:`parse_coordinate`; shown as a
            marker when no ring is drawable.
        rings : Iterable[Any] | None
            One ring or a list of rings. Rings with fewer than three valid
            points are skipped but still consume a palette slot.

        Returns
        -------
        dict[str, Any]
            ``has_polygon`` and the ``layer_names`` added by this call.
        """
        self._remove_existing_layers()
        drawn: list[Ring] = []
        layer_names: list[str] = []
        for index, raw_ring in enumerate(as_ring_list(rings)):
            ring = normalize_ring(raw_ring)
            if not is_polygon_ring(ring):
                continue
            layer_name = self._add_one_ring_layer(index, ring)
            if layer_name is None:
                continue
            drawn.append(ring)
            layer_names.append(layer_name)

        if not drawn:
            marker_name = self._show_center_marker(center)
            if marker_name is not None:
                layer_names.append(marker_name)
            return {"has_polygon": False, "layer_names": layer_names}

        self._fit_to_rings(drawn)
        return {"has_polygon": True, "layer_names": layer_names}

    def clear(self) -> None:
        """Remove every layer owned by this controller."""
        self._remove_existing_layers()

    def _add_one_ring_layer(self, index: int, ring: Ring) -> str | None:
        fill_rgba, border_hex = stable_parcel_color(index)
        layer_name = f"{self._layer_prefix}_{index}"
        ok = self._map_canvas.add_polygon_layer(
            ring_to_xy(ring),
            layer_name,
            fill_color=fill_rgba,
            border_color=border_hex,
            border_width=POLYGON_BORDER_WIDTH,
            z_value=600 + index,
            replace=True,
        )
        return layer_name if ok else None

    def _show_center_marker(self, center: Any) -> str | None:
        coord = parse_coordinate(center)
        if coord is None:
            return None
        fill_rgba, border_hex = CENTER_MARKER_COLOR
        ok = self._map_canvas.add_point_layer(
            ring_to_xy([coord]),
            self._marker_layer_name,
            size=14,
            fill_color=fill_rgba,
            border_color=border_hex,
            border_width=1.5,
            z_value=700,
            replace=True,
        )
        return self._marker_layer_name if ok else None

    def _fit_to_rings(self, rings: list[Ring]) -> None:
        try:
            bounds = ring_bounds(rings)
            self._map_canvas.fit_bounds(
                bounds.min_lng,
                bounds.min_lat,
                bounds.max_lng,
                bounds.max_lat,
                padding_px=self._fit_padding,
            )
        except BoundsFitError as exc:
            logger.warning(f"Skipping viewport fit: {exc}")
        except Exception as exc:
            logger.error(f"Failed to fit viewport to rings: {exc}")

    def _remove_existing_layers(self) -> None:
        """Remove previously rendered display layers by prefix."""
        for layer_name in list(self._map_canvas.get_layer_names()):
            if layer_name.startswith(f"{self._layer_prefix}_"):
                self._map_canvas.remove_layer(layer_name)
