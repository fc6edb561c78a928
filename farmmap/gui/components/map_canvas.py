"""
Map Canvas component for the farm map GUI.

This module provides a lng/lat map surface based on PyQtGraph with support for:
- Polygon, point and text layers drawn in degrees (x = longitude, y = latitude)
- Clickable markers and floating info overlays
- Web-Mercator style zoom levels and viewport fitting with pixel padding
- Optional GeoTiff basemap lazily read with rasterio
"""

import math
from typing import Optional, Dict, List, Any, Callable, NamedTuple, Sequence
from pathlib import Path

import numpy as np
import pyqtgraph as pg

pg.setConfigOptions(
    antialias=True,
    background='w',
    foreground='k'
)

from PySide6.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QFrame,
    QLabel,
    QPushButton,
    QGraphicsPolygonItem,
)
from PySide6.QtCore import Qt, Signal, QTimer, QRectF, QPointF
from PySide6.QtGui import QPolygonF
from loguru import logger

import rasterio
import rasterio.enums
import rasterio.errors
from rasterio.vrt import WarpedVRT

TILE_SIZE = 256
MIN_ZOOM = 1.0
MAX_ZOOM = 22.0
FALLBACK_VIEW_SIZE = (800, 600)


class LayerBounds(NamedTuple):
    """Layer extent in map coordinates."""

    left: float
    bottom: float
    right: float
    top: float


class CustomViewBox(pg.ViewBox):
    """
    Custom ViewBox with enhanced mouse handling.

    Supports mode switching between Pan and Draw modes.
    Emits signals for canvas interactions.

    Signals
    -------
    sigCoordinateHover : Signal(float, float)
        Emitted when mouse moves over the canvas.
    sigDrawClicked : Signal(float, float)
        Emitted with view coordinates on a single click in draw mode.
    sigDrawDoubleClicked : Signal()
        Emitted on a double click in draw mode.
    """

    sigCoordinateHover = Signal(float, float)
    sigDrawClicked = Signal(float, float)
    sigDrawDoubleClicked = Signal()

    # Mode constants
    MODE_PAN = 0
    MODE_DRAW = 2

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.setMouseMode(pg.ViewBox.PanMode)
        self._current_mode = self.MODE_PAN

    @property
    def mode(self) -> int:
        return self._current_mode

    def set_mode(self, mode: int) -> None:
        """
        Set the interaction mode.

        Parameters
        ----------
        mode : int
            MODE_PAN or MODE_DRAW.
        """
        self._current_mode = mode
        if mode == self.MODE_PAN:
            self.setMouseMode(pg.ViewBox.PanMode)
        else:
            self.setMouseMode(pg.ViewBox.RectMode)

    def mouseDragEvent(self, ev) -> None:
        """Pan in every mode; rectangle zoom is never used."""
        ev.accept()
        p_now = self.mapToView(ev.pos())
        p_last = self.mapToView(ev.lastPos())
        delta = p_now - p_last

        if delta.x() == 0 and delta.y() == 0:
            return

        current_rect = self.viewRect()
        new_center = current_rect.center() - delta
        current_rect.moveCenter(new_center)
        self.setRange(current_rect, padding=0)

    def mouseClickEvent(self, ev) -> None:
        """Report left clicks as draw vertices while in draw mode."""
        if ev.button() != Qt.MouseButton.LeftButton or self._current_mode != self.MODE_DRAW:
            super().mouseClickEvent(ev)
            return
        ev.accept()
        if ev.double():
            self.sigDrawDoubleClicked.emit()
        else:
            pos = self.mapToView(ev.pos())
            self.sigDrawClicked.emit(pos.x(), pos.y())

    def mouseMoveEvent(self, ev) -> None:
        """Handle mouse move events for coordinate tracking."""
        pos = self.mapToView(ev.pos())
        self.sigCoordinateHover.emit(pos.x(), pos.y())
        super().mouseMoveEvent(ev)


class MarkerHandle:
    """
    Single clickable marker drawn above every layer.

    Parameters
    ----------
    canvas : MapCanvas
        Owning canvas.
    item : pg.ScatterPlotItem
        Scatter item holding exactly one spot.
    on_click : Callable[[], None], optional
        Called when the marker is clicked.
    """

    def __init__(
        self,
        canvas: "MapCanvas",
        item: pg.ScatterPlotItem,
        title: str = "",
        on_click: Optional[Callable[[], None]] = None,
    ) -> None:
        self._canvas = canvas
        self.item = item
        self.title = title
        self._on_click = on_click
        self._removed = False
        self.item.sigClicked.connect(self._handle_clicked)

    @property
    def is_visible(self) -> bool:
        return bool(self.item.isVisible()) and not self._removed

    def set_visible(self, visible: bool) -> None:
        if not self._removed:
            self.item.setVisible(bool(visible))

    def click(self) -> None:
        """Run the click handler as if the marker had been clicked."""
        if not self._removed and self._on_click is not None:
            self._on_click()

    def remove(self) -> None:
        if self._removed:
            return
        self._removed = True
        self.item.sigClicked.disconnect(self._handle_clicked)
        self._canvas.remove_overlay_item(self.item)

    def _handle_clicked(self, *_args) -> None:
        self.click()


class InfoOverlay(QFrame):
    """
    Floating info panel anchored to a map position.

    The action control only exists while the overlay is open, so
    :meth:`find_control` returns ``None`` for a closed overlay.
    """

    def __init__(
        self,
        canvas: "MapCanvas",
        anchor_xy: Sequence[float],
        title: str,
        lines: Sequence[str],
        control_id: str,
        control_text: str,
    ) -> None:
        super().__init__(canvas)
        self._canvas = canvas
        self.anchor_xy = (float(anchor_xy[0]), float(anchor_xy[1]))
        self.control_id = control_id
        self._is_open = False
        self._removed = False

        self.setObjectName("infoOverlay")
        self.setStyleSheet(
            "#infoOverlay { background: white; border: 1px solid #D1D5DB; border-radius: 6px; }"
        )
        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 10, 12, 10)
        layout.setSpacing(4)

        self.title_label = QLabel(title, self)
        self.title_label.setStyleSheet("color: #059669; font-weight: bold; font-size: 15px;")
        layout.addWidget(self.title_label)
        for line in lines:
            layout.addWidget(QLabel(line, self))

        self.control = QPushButton(control_text, self)
        self.control.setObjectName(control_id)
        layout.addWidget(self.control)

        close_button = QPushButton("x", self)
        close_button.setFlat(True)
        close_button.setFixedSize(18, 18)
        close_button.clicked.connect(self.close_overlay)
        layout.addWidget(close_button, alignment=Qt.AlignmentFlag.AlignRight)

        self.hide()

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self) -> None:
        if self._removed:
            return
        self._is_open = True
        self.adjustSize()
        self.move(self._canvas.map_to_widget(self.anchor_xy, self.size()))
        self.show()
        self.raise_()

    def close_overlay(self) -> None:
        self._is_open = False
        self.hide()

    def close(self) -> bool:
        self.close_overlay()
        return True

    def find_control(self, control_id: str) -> Optional[QPushButton]:
        """Return the action control with ``control_id`` while open."""
        if not self._is_open or self._removed:
            return None
        return self.findChild(QPushButton, control_id)

    def remove(self) -> None:
        if self._removed:
            return
        self._removed = True
        self._is_open = False
        self.hide()
        self.setParent(None)
        self.deleteLater()


class MapCanvas(QWidget):
    """
    Lng/lat map widget with PyQtGraph backend.

    Features:
    - Named polygon, point, text and raster layers with z-order control
    - Web-Mercator zoom levels (``1`` whole world .. ``22`` street level)
    - Markers, info overlays and text labels for farm overviews
    - Optional GeoTiff basemap

    Signals
    -------
    sigCoordinateChanged : Signal(float, float)
        Emitted when cursor moves, providing ``(lng, lat)``.
    sigZoomChanged : Signal(float)
        Emitted with the zoom level when the view range changes.
    sigDrawPointAdded : Signal(float, float)
        Emitted with ``(lng, lat)`` for each click in draw mode.
    sigDrawFinished : Signal()
        Emitted on a double click in draw mode.

    Examples
    --------
    >>> canvas = MapCanvas()
    >>> canvas.set_center_zoom(25.403027, 55.523542, 9)
    >>> canvas.add_polygon_layer([[55.0, 25.0], [55.1, 25.0], [55.1, 25.1]], "farm")
    True
    """

    sigCoordinateChanged = Signal(float, float)
    sigZoomChanged = Signal(float)
    sigDrawPointAdded = Signal(float, float)
    sigDrawFinished = Signal()

    sigLayerRemoved = Signal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        """
        Initialize the Map Canvas.

        Parameters
        ----------
        parent : QWidget, optional
            Parent widget.
        """
        super().__init__(parent)

        # Layer registry: {name: {'item': GraphicsItem, 'bounds': LayerBounds, ...}}
        self._layers: Dict[str, Dict[str, Any]] = {}
        self._layer_order: List[str] = []

        # Debounce timer for basemap updates
        self._update_timer = QTimer()
        self._update_timer.setSingleShot(True)
        self._update_timer.setInterval(150)
        self._update_timer.timeout.connect(self._update_visible_tiles)

        self._init_ui()

        logger.debug("MapCanvas initialized")

    def _init_ui(self) -> None:
        """Initialize the UI components."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self._view_box = CustomViewBox()
        self._view_box.sigCoordinateHover.connect(self._on_coordinate_hover)
        self._view_box.sigDrawClicked.connect(self.sigDrawPointAdded.emit)
        self._view_box.sigDrawDoubleClicked.connect(self.sigDrawFinished.emit)

        self._plot_widget = pg.PlotWidget(viewBox=self._view_box)
        self._plot_widget.setBackground('w')
        self._plot_widget.setAspectLocked(True)

        # Hide axes for map-like view
        plot_item = self._plot_widget.getPlotItem()
        plot_item.hideAxis('left')
        plot_item.hideAxis('bottom')
        plot_item.hideButtons()

        self._plot_widget.sigRangeChanged.connect(self._on_view_changed)

        layout.addWidget(self._plot_widget)

        self._item_group = pg.ItemGroup()
        self._view_box.addItem(self._item_group)

    # ------------------------------------------------------------------
    # Viewport
    # ------------------------------------------------------------------

    def _view_pixel_size(self) -> tuple:
        width = int(self._view_box.width())
        height = int(self._view_box.height())
        if width <= 1 or height <= 1:
            return FALLBACK_VIEW_SIZE
        return width, height

    def set_center_zoom(self, lat: float, lng: float, zoom: float) -> None:
        """
        Center the view on ``(lat, lng)`` at a Web-Mercator zoom level.

        Parameters
        ----------
        lat, lng : float
            Center in degrees.
        zoom : float
            Zoom level; the world is ``256 * 2**zoom`` pixels wide.
        """
        zoom = min(max(float(zoom), MIN_ZOOM), MAX_ZOOM)
        width_px, height_px = self._view_pixel_size()
        width_deg = 360.0 * width_px / (TILE_SIZE * 2.0 ** zoom)
        height_deg = width_deg * height_px / width_px
        rect = QRectF(lng - width_deg / 2.0, lat - height_deg / 2.0, width_deg, height_deg)
        self._view_box.setRange(rect, padding=0)
        logger.debug(f"View centered at ({lat:.6f}, {lng:.6f}) zoom {zoom:.1f}")

    def get_zoom_level(self) -> float:
        """Return the current zoom level derived from the visible width."""
        view_rect = self._view_box.viewRect()
        width_deg = view_rect.width()
        if width_deg <= 0:
            return MIN_ZOOM
        width_px, _ = self._view_pixel_size()
        zoom = math.log2(360.0 * width_px / (TILE_SIZE * width_deg))
        return min(max(zoom, MIN_ZOOM), MAX_ZOOM)

    def set_zoom_level(self, zoom: float) -> None:
        """Zoom around the current view center."""
        center = self._view_box.viewRect().center()
        self.set_center_zoom(center.y(), center.x(), zoom)

    def fit_bounds(
        self,
        left: float,
        bottom: float,
        right: float,
        top: float,
        padding_px: int = 0,
    ) -> bool:
        """
        Fit the view to a box, keeping ``padding_px`` screen pixels around it.

        Parameters
        ----------
        left, bottom, right, top : float
            Box in map coordinates.
        padding_px : int, optional
            Screen padding on every side.

        Returns
        -------
        bool
            False when the box is not finite.
        """
        values = np.asarray([left, bottom, right, top], dtype=np.float64)
        if not np.all(np.isfinite(values)):
            logger.warning(f"Cannot fit non-finite bounds: {values.tolist()}")
            return False
        width = max(right - left, 0.0)
        height = max(top - bottom, 0.0)
        width_px, height_px = self._view_pixel_size()
        inner_w = width_px - 2 * padding_px
        inner_h = height_px - 2 * padding_px
        if inner_w <= 0 or inner_h <= 0:
            padding_px, inner_w, inner_h = 0, width_px, height_px
        scale = max(width / inner_w, height / inner_h)
        if scale <= 0:
            scale = 360.0 / (TILE_SIZE * 2.0 ** MAX_ZOOM)
        pad = padding_px * scale
        rect = QRectF(left - pad, bottom - pad, width + 2 * pad, height + 2 * pad)
        self._view_box.setRange(rect, padding=0)
        return True

    def map_to_widget(self, anchor_xy: Sequence[float], popup_size=None) -> Any:
        """Map a map-coordinate anchor to a widget position above it."""
        scene_pos = self._view_box.mapViewToScene(QPointF(anchor_xy[0], anchor_xy[1]))
        view_pos = self._plot_widget.mapFromScene(scene_pos)
        pos = self._plot_widget.mapTo(self, view_pos)
        if popup_size is not None:
            pos.setX(pos.x() - popup_size.width() // 2)
            pos.setY(pos.y() - popup_size.height() - 12)
        return pos

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def _register_layer(
        self,
        layer_name: str,
        item: Any,
        bounds: Optional[LayerBounds],
        layer_type: str,
        **extra: Any,
    ) -> None:
        if layer_name in self._layers:
            self.remove_layer(layer_name)
        self._layers[layer_name] = {
            'item': item,
            'bounds': bounds,
            **extra,
        }
        self._layer_order.append(layer_name)
        self._item_group.addItem(item)
        logger.debug(f"{layer_type} layer added: {layer_name}")

    def add_polygon_layer(
        self,
        data: Any,
        layer_name: str,
        fill_color: Any = (59, 130, 246, 77),
        border_color: Any = "#2563EB",
        border_width: float = 3,
        z_value: float = 600,
        replace: bool = True,
    ) -> bool:
        """
        Add one filled polygon layer.

        Parameters
        ----------
        data : Any
            ``(N, 2)`` array-like of ``(lng, lat)`` rows, N >= 3.
        layer_name : str
            Name for the layer.
        fill_color, border_color : Any
            Anything accepted by ``pg.mkBrush`` / ``pg.mkColor``.
        border_width : float
            Outline width in screen pixels.
        z_value : float
            Drawing order.
        replace : bool
            Replace an existing layer with the same name; otherwise keep it
            and return False.

        Returns
        -------
        bool
            Success status.
        """
        if layer_name in self._layers and not replace:
            return False
        xy = np.asarray(data, dtype=np.float64)
        if xy.ndim != 2 or xy.shape[1] != 2 or xy.shape[0] < 3:
            logger.error(f"Polygon layer needs (N>=3, 2) coordinates: {layer_name}")
            return False
        if not np.all(np.isfinite(xy)):
            logger.error(f"Polygon layer has non-finite coordinates: {layer_name}")
            return False

        polygon = QPolygonF([QPointF(float(x), float(y)) for x, y in xy])
        item = QGraphicsPolygonItem(polygon)
        pen = pg.mkPen(color=border_color, width=border_width)
        pen.setCosmetic(True)
        item.setPen(pen)
        item.setBrush(pg.mkBrush(fill_color))
        item.setZValue(z_value)

        min_x, min_y = np.min(xy, axis=0)
        max_x, max_y = np.max(xy, axis=0)
        self._register_layer(
            layer_name,
            item,
            LayerBounds(float(min_x), float(min_y), float(max_x), float(max_y)),
            "Polygon",
            data=xy,
        )
        return True

    def add_point_layer(
        self,
        data: Any,
        layer_name: str,
        size: Any = 8,
        fill_color: Any = "#10B981",
        border_color: Any = "#059669",
        border_width: float = 1.0,
        z_value: float = 650,
        replace: bool = True,
    ) -> bool:
        """
        Add a scatter point layer.

        Parameters
        ----------
        data : Any
            ``(N, 2)`` array-like of ``(x, y)`` rows.
        layer_name : str
            Name for the layer.
        size : float or Sequence[float]
            Marker size in pixels, scalar or one per point.
        fill_color, border_color : Any
            Anything accepted by ``pg.mkBrush`` / ``pg.mkPen``.
        border_width : float
            Border width in pixels.
        z_value : float
            Drawing order.
        replace : bool
            Replace an existing layer with the same name.

        Returns
        -------
        bool
            Success status.
        """
        if layer_name in self._layers and not replace:
            return False
        xy = np.asarray(data, dtype=np.float64)
        if xy.ndim != 2 or xy.shape[1] != 2 or xy.shape[0] == 0:
            logger.error(f"Point layer needs (N, 2) coordinates: {layer_name}")
            return False

        if not np.isscalar(size):
            sizes = [float(value) for value in size]
            if len(sizes) != len(xy):
                logger.error(f"Invalid point sizes for {layer_name}")
                return False
        else:
            sizes = float(size)

        item = pg.ScatterPlotItem(
            x=xy[:, 0],
            y=xy[:, 1],
            size=sizes,
            pen=pg.mkPen(border_color, width=border_width),
            brush=pg.mkBrush(fill_color),
        )
        item.setZValue(z_value)

        min_x, min_y = np.min(xy, axis=0)
        max_x, max_y = np.max(xy, axis=0)
        self._register_layer(
            layer_name,
            item,
            LayerBounds(float(min_x), float(min_y), float(max_x), float(max_y)),
            "Point",
            data=xy,
        )
        return True

    def add_text_layer(
        self,
        data: Any,
        labels: Sequence[str],
        layer_name: str,
        color: Any = "#000000",
        z_value: float = 700,
    ) -> bool:
        """Add centered text labels at ``(x, y)`` positions."""
        xy = np.asarray(data, dtype=np.float64).reshape(-1, 2)
        if len(xy) != len(labels) or len(xy) == 0:
            logger.error(f"Text layer needs one label per point: {layer_name}")
            return False
        group = pg.ItemGroup()
        for (x, y), label in zip(xy, labels):
            text_item = pg.TextItem(text=str(label), color=color, anchor=(0.5, 0.5))
            text_item.setPos(float(x), float(y))
            group.addItem(text_item)
        group.setZValue(z_value)
        min_x, min_y = np.min(xy, axis=0)
        max_x, max_y = np.max(xy, axis=0)
        self._register_layer(
            layer_name,
            group,
            LayerBounds(float(min_x), float(min_y), float(max_x), float(max_y)),
            "Text",
            labels=list(labels),
        )
        return True

    def add_basemap(self, filepath: str, layer_name: Optional[str] = None) -> bool:
        """
        Load a GeoTiff orthophoto as the bottom layer.

        Rasters outside EPSG:4326 are warped on the fly.

        Parameters
        ----------
        filepath : str
            Path to the GeoTiff file.
        layer_name : str, optional
            Name for the layer. If None, uses filename.

        Returns
        -------
        bool
            True if loading was successful, False otherwise.
        """
        filepath = Path(filepath)
        if not filepath.exists():
            logger.error(f"File not found: {filepath}")
            return False

        if layer_name is None:
            layer_name = filepath.stem

        try:
            source = rasterio.open(filepath)
            dataset = source
            if source.crs is not None and source.crs.to_epsg() != 4326:
                dataset = WarpedVRT(source, crs="EPSG:4326")
            logger.info(f"Loading basemap: {filepath}")
            logger.debug(f"  Size: {dataset.width} x {dataset.height}")
            logger.debug(f"  Bounds: {dataset.bounds}")

            image_item = pg.ImageItem()
            image_item.setZValue(-100)

            bounds = dataset.bounds
            self._register_layer(
                layer_name,
                image_item,
                LayerBounds(bounds.left, bounds.bottom, bounds.right, bounds.top),
                "Raster",
                dataset=dataset,
                source=source,
                filepath=str(filepath),
            )
            self._update_visible_tiles()
            return True

        except Exception as e:
            logger.error(f"Failed to load basemap: {e}")
            return False

    def add_overlay_item(self, item: Any) -> None:
        """Add a free graphics item in map coordinates."""
        self._item_group.addItem(item)

    def remove_overlay_item(self, item: Any) -> None:
        """Detach a graphics item added with :meth:`add_overlay_item`."""
        item.setParentItem(None)
        if item.scene():
            item.scene().removeItem(item)

    def create_marker(
        self,
        anchor_xy: Sequence[float],
        title: str = "",
        on_click: Optional[Callable[[], None]] = None,
        fill_color: Any = (16, 185, 129, 230),
        border_color: Any = "#059669",
        size: float = 20,
    ) -> MarkerHandle:
        """Create a clickable marker at ``(lng, lat)``."""
        item = pg.ScatterPlotItem(
            x=[float(anchor_xy[0])],
            y=[float(anchor_xy[1])],
            size=size,
            pen=pg.mkPen(border_color, width=2),
            brush=pg.mkBrush(fill_color),
        )
        item.setZValue(900)
        item.setToolTip(title)
        self.add_overlay_item(item)
        return MarkerHandle(self, item, title=title, on_click=on_click)

    def create_info_overlay(
        self,
        anchor_xy: Sequence[float],
        title: str,
        lines: Sequence[str],
        control_id: str,
        control_text: str,
    ) -> InfoOverlay:
        """Create a hidden info overlay anchored at ``(lng, lat)``."""
        return InfoOverlay(self, anchor_xy, title, lines, control_id, control_text)

    def remove_layer(self, layer_name: str) -> bool:
        """
        Remove a layer from the canvas.

        Parameters
        ----------
        layer_name : str
            Name of the layer to remove.

        Returns
        -------
        bool
            True if layer was removed, False if not found.
        """
        if layer_name not in self._layers:
            return False

        layer_info = self._layers.pop(layer_name)
        self.remove_overlay_item(layer_info['item'])

        if layer_info.get('dataset') is not None:
            layer_info['dataset'].close()
        source = layer_info.get('source')
        if source is not None and source is not layer_info.get('dataset'):
            source.close()

        if layer_name in self._layer_order:
            self._layer_order.remove(layer_name)

        logger.debug(f"Layer removed: {layer_name}")
        self.sigLayerRemoved.emit(layer_name)
        return True

    def get_layer_bounds(self, layer_name: str) -> Optional[LayerBounds]:
        layer = self._layers.get(layer_name)
        return None if layer is None else layer.get('bounds')

    def set_mode(self, mode: int) -> None:
        """
        Set the interaction mode.

        Parameters
        ----------
        mode : int
            0=Pan, 2=Draw
        """
        self._view_box.set_mode(mode)

        if mode == CustomViewBox.MODE_PAN:
            self._plot_widget.setCursor(Qt.CursorShape.OpenHandCursor)
        else:
            self._plot_widget.setCursor(Qt.CursorShape.CrossCursor)

    def get_mode(self) -> int:
        return self._view_box.mode

    def _on_view_changed(self) -> None:
        """Handle view range change (pan/zoom)."""
        self._update_timer.start()
        self.sigZoomChanged.emit(self.get_zoom_level())

    def _update_visible_tiles(self) -> None:
        """Re-read the visible region of every basemap layer."""
        view_rect = self._view_box.viewRect()
        for layer_info in self._layers.values():
            if layer_info.get('dataset') is None:
                continue
            self._load_visible_region(layer_info, view_rect)

    def _load_visible_region(self, layer_info: Dict, view_rect: QRectF) -> None:
        """
        Load the visible region of a basemap layer.

        Parameters
        ----------
        layer_info : Dict
            Layer information dictionary.
        view_rect : QRectF
            Current visible rectangle in map coordinates.
        """
        dataset = layer_info['dataset']
        image_item = layer_info['item']

        r_left = min(view_rect.left(), view_rect.right())
        r_right = max(view_rect.left(), view_rect.right())
        r_bottom = min(view_rect.top(), view_rect.bottom())
        r_top = max(view_rect.top(), view_rect.bottom())

        try:
            window = dataset.window(r_left, r_bottom, r_right, r_top)
        except rasterio.errors.WindowError:
            image_item.clear()
            return

        width_px, height_px = self._view_pixel_size()
        try:
            data = dataset.read(
                window=window,
                out_shape=(dataset.count, max(1, height_px), max(1, width_px)),
                resampling=rasterio.enums.Resampling.nearest,
                boundless=True,
            )
        except Exception as e:
            logger.error(f"Error loading visible region: {e}")
            return

        # (B, H, W) -> (W, H, B), flipped because rasterio rows run top-down
        data = np.flip(data.transpose((2, 1, 0)), axis=1)
        if data.shape[2] >= 3 and data.shape[2] != 4:
            data = data[:, :, :3]
        elif data.shape[2] == 1:
            data = data[:, :, 0]
        if data.dtype != np.uint8:
            peak = data.max()
            data = (data / peak * 255).astype(np.uint8) if peak > 0 else data.astype(np.uint8)

        image_item.clear()
        image_item.setImage(data)
        image_item.setRect(QRectF(r_left, r_bottom, r_right - r_left, r_top - r_bottom))

    def _on_coordinate_hover(self, x: float, y: float) -> None:
        """Handle coordinate hover updates."""
        self.sigCoordinateChanged.emit(x, y)

    def cleanup(self) -> None:
        """Clean up resources (close file handles)."""
        for name in list(self._layers.keys()):
            self.remove_layer(name)
        logger.debug("MapCanvas cleanup complete")

    def get_layer_names(self) -> List[str]:
        """Get list of layer names."""
        return list(self._layer_order)

    def zoom_to_layer(self, layer_name: str, padding_px: int = 0) -> bool:
        """
        Zoom to fit a specific layer.

        Parameters
        ----------
        layer_name : str
            Name of the layer to zoom to.
        padding_px : int, optional
            Screen padding around the layer.
        """
        bounds = self.get_layer_bounds(layer_name)
        if bounds is None:
            return False
        return self.fit_bounds(
            bounds.left, bounds.bottom, bounds.right, bounds.top, padding_px=padding_px
        )
