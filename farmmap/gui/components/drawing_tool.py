"""Single-polygon drawing tool and editable polygon overlay for the map canvas."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np
import pyqtgraph as pg
from loguru import logger
from PySide6.QtCore import QPointF

from farmmap.core.ring import MIN_RING_POINTS, Coordinate
from farmmap.gui.components.map_canvas import CustomViewBox, MapCanvas

PathListener = Callable[[str, int, list[Coordinate]], None]


class _EditableRingROI(pg.PolyLineROI):
    """Closed polyline ROI reporting vertex inserts to its overlay."""

    def __init__(self, positions, on_insert: Callable[[], None], **kwargs) -> None:
        super().__init__(positions, closed=True, **kwargs)
        self._on_insert = on_insert

    def segmentClicked(self, segment, ev=None, pos=None):
        super().segmentClicked(segment, ev=ev, pos=pos)
        self._on_insert()


class EditablePolygonOverlay:
    """
    Editable closed polygon left on the map after a shape is completed.

    Vertices can be dragged and new ones inserted by clicking an edge. Each
    edit notifies path listeners with ``(kind, index, path)`` where ``kind``
    is ``"set_at"`` for a moved vertex or ``"insert_at"`` for a new one.

    Parameters
    ----------
    map_canvas : MapCanvas
        Canvas the overlay is drawn on.
    points_xy : array-like
        Initial ``(lng, lat)`` vertices.
    """

    def __init__(self, map_canvas: MapCanvas, points_xy: Any) -> None:
        self._map_canvas = map_canvas
        xy = np.asarray(points_xy, dtype=np.float64).reshape(-1, 2)
        self.roi = _EditableRingROI(
            [QPointF(float(x), float(y)) for x, y in xy],
            on_insert=self._on_vertex_inserted,
            pen=pg.mkPen("#2563EB", width=2),
            movable=False,
        )
        self.roi.setZValue(950)
        self.roi.sigRegionChangeFinished.connect(self._on_region_change_finished)
        self._map_canvas.add_overlay_item(self.roi)
        self._last_path = self.path()
        self._listeners: dict[int, PathListener] = {}
        self._next_token = 0
        self._removed = False

    def path(self) -> list[Coordinate]:
        """Return the vertices as ``Coordinate(lat, lng)`` in drawing order."""
        points = []
        for _name, local_pos in self.roi.getLocalHandlePositions():
            parent_pos = self.roi.mapToParent(local_pos)
            points.append(Coordinate(float(parent_pos.y()), float(parent_pos.x())))
        return points

    def add_path_listener(self, callback: PathListener) -> int:
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = callback
        return token

    def remove_path_listener(self, token: int) -> None:
        self._listeners.pop(token, None)

    def move_vertex(self, index: int, lng: float, lat: float) -> None:
        """Move one vertex, notifying listeners like a user drag."""
        handle = self.roi.getHandles()[index]
        self.roi.movePoint(handle, QPointF(float(lng), float(lat)), finish=True)

    def insert_vertex(self, segment_index: int, lng: float, lat: float) -> None:
        """Split one edge at ``(lng, lat)``, notifying listeners like a user click."""
        segment = self.roi.segments[segment_index]
        pos = self.roi.mapFromParent(QPointF(float(lng), float(lat)))
        self.roi.segmentClicked(segment, pos=pos)

    def remove(self) -> None:
        if self._removed:
            return
        self._removed = True
        self._listeners.clear()
        self.roi.sigRegionChangeFinished.disconnect(self._on_region_change_finished)
        self._map_canvas.remove_overlay_item(self.roi)

    def _on_region_change_finished(self, *_args) -> None:
        self._emit("set_at")

    def _on_vertex_inserted(self) -> None:
        self._emit("insert_at")

    def _emit(self, kind: str) -> None:
        if self._removed:
            return
        path = self.path()
        index = _first_changed_index(self._last_path, path)
        if index is None:
            return
        self._last_path = path
        for callback in list(self._listeners.values()):
            callback(kind, index, list(path))


def _first_changed_index(before: list[Coordinate], after: list[Coordinate]) -> int | None:
    for index, (old, new) in enumerate(zip(before, after)):
        if old != new:
            return index
    if len(before) != len(after):
        return min(len(before), len(after))
    return None


class PolygonDrawingTool:
    """
    Click-to-add-vertex polygon tool; a double click closes the shape.

    Only one polygon is drawn per :meth:`start`. Shapes with fewer than three
    vertices are not completed and drawing continues.

    Parameters
    ----------
    map_canvas : MapCanvas
        Canvas emitting ``sigDrawPointAdded`` and ``sigDrawFinished``.
    """

    def __init__(self, map_canvas: MapCanvas) -> None:
        self._map_canvas = map_canvas
        self._on_complete: Callable[[EditablePolygonOverlay], None] | None = None
        self._points: list[tuple[float, float]] = []
        self._preview = pg.PlotCurveItem(pen=pg.mkPen("#2563EB", width=2))
        self._preview.setZValue(940)
        self._preview_attached = False

    @property
    def is_active(self) -> bool:
        return self._on_complete is not None

    @property
    def points(self) -> list[tuple[float, float]]:
        return list(self._points)

    def start(self, on_complete: Callable[[EditablePolygonOverlay], None]) -> None:
        """Enter draw mode; ``on_complete`` receives the finished overlay."""
        if self.is_active:
            self.stop()
        self._on_complete = on_complete
        self._points = []
        self._map_canvas.sigDrawPointAdded.connect(self.add_vertex)
        self._map_canvas.sigDrawFinished.connect(self.finish)
        self._map_canvas.set_mode(CustomViewBox.MODE_DRAW)
        logger.debug("Polygon drawing tool enabled")

    def stop(self) -> None:
        """Leave draw mode and drop the unfinished shape."""
        if not self.is_active:
            return
        self._on_complete = None
        self._points = []
        self._map_canvas.sigDrawPointAdded.disconnect(self.add_vertex)
        self._map_canvas.sigDrawFinished.disconnect(self.finish)
        self._map_canvas.set_mode(CustomViewBox.MODE_PAN)
        self._detach_preview()
        logger.debug("Polygon drawing tool disabled")

    def add_vertex(self, lng: float, lat: float) -> None:
        if not self.is_active:
            return
        point = (float(lng), float(lat))
        if self._points and self._points[-1] == point:
            return
        self._points.append(point)
        self._refresh_preview()

    def finish(self) -> None:
        """Close the shape and hand an editable overlay to the callback."""
        if not self.is_active:
            return
        if len(set(self._points)) < MIN_RING_POINTS:
            logger.debug(f"Polygon needs {MIN_RING_POINTS} vertices, keep drawing")
            return
        callback = self._on_complete
        points = list(self._points)
        self.stop()
        callback(EditablePolygonOverlay(self._map_canvas, points))

    def _refresh_preview(self) -> None:
        xy = np.asarray(self._points, dtype=np.float64)
        self._preview.setData(x=xy[:, 0], y=xy[:, 1])
        if not self._preview_attached:
            self._map_canvas.add_overlay_item(self._preview)
            self._preview_attached = True

    def _detach_preview(self) -> None:
        if self._preview_attached:
            self._map_canvas.remove_overlay_item(self._preview)
            self._preview_attached = False
        self._preview.setData(x=[], y=[])
