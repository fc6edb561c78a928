
from concurrent.futures import Future
from types import SimpleNamespace
from typing import Any, Optional

from PySide6.QtWidgets import QWidget, QVBoxLayout, QStackedWidget
from PySide6.QtCore import Qt, Signal, QTimer
from loguru import logger
from qfluentwidgets import BodyLabel, IndeterminateProgressRing, PushButton

from farmmap.core.errors import LoadError
from farmmap.gui.components.status_bar import StatusBar
from farmmap.gui.config import tr
from farmmap.utils.map_loading import MapLoadOptions, MapProvider, get_map_provider


class MapComponent(QWidget):
    """
    Composite component containing:
    - Loading placeholder shown until the map modules are loaded
    - Retry page shown when loading failed
    - Map Canvas (Center) with Status Bar (Bottom)

    The map canvas and drawing tool are created from the shared loaded
    modules, so ``map_canvas`` is ``None`` until :attr:`sigMapReady` fires.
    """

    sigMapReady = Signal()
    sigLoadFailed = Signal(str)
    sigCoordinateChanged = Signal(float, float)
    sigZoomChanged = Signal(float)

    PAGE_LOADING = 0
    PAGE_ERROR = 1
    PAGE_MAP = 2

    def __init__(
        self,
        parent: Optional[QWidget] = None,
        include_drawing: bool = False,
        provider: Optional[MapProvider] = None,
    ) -> None:
        super().__init__(parent)
        self._options = MapLoadOptions(include_drawing=include_drawing)
        self._provider = provider or get_map_provider()
        self._alive = True
        self.map_canvas: Any = None
        self.drawing_tool: Any = None
        self.modules: Optional[SimpleNamespace] = None

        self._init_ui()
        self.load()

    def _init_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self.stack = QStackedWidget(self)
        layout.addWidget(self.stack, 1)

        # 1. Loading placeholder
        self.loading_page = QWidget()
        loading_layout = QVBoxLayout(self.loading_page)
        loading_layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.progress_ring = IndeterminateProgressRing(self.loading_page)
        self.loading_label = BodyLabel(tr("map.loading"), self.loading_page)
        loading_layout.addWidget(self.progress_ring, alignment=Qt.AlignmentFlag.AlignCenter)
        loading_layout.addWidget(self.loading_label, alignment=Qt.AlignmentFlag.AlignCenter)
        self.stack.addWidget(self.loading_page)

        # 2. Retry page
        self.error_page = QWidget()
        error_layout = QVBoxLayout(self.error_page)
        error_layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.error_label = BodyLabel(tr("map.load_failed"), self.error_page)
        self.retry_button = PushButton(tr("map.retry"), self.error_page)
        self.retry_button.clicked.connect(self.load)
        error_layout.addWidget(self.error_label, alignment=Qt.AlignmentFlag.AlignCenter)
        error_layout.addWidget(self.retry_button, alignment=Qt.AlignmentFlag.AlignCenter)
        self.stack.addWidget(self.error_page)

        # 3. Map page, filled once the modules are loaded
        self.map_page = QWidget()
        self._map_layout = QVBoxLayout(self.map_page)
        self._map_layout.setContentsMargins(0, 0, 0, 0)
        self._map_layout.setSpacing(0)
        self.status_bar = StatusBar()
        self._map_layout.addWidget(self.status_bar)
        self.stack.addWidget(self.map_page)

        self.stack.setCurrentIndex(self.PAGE_LOADING)

    @property
    def is_ready(self) -> bool:
        return self.map_canvas is not None

    def load(self) -> None:
        """Await the shared map modules; a failed load is retried only from here."""
        if self.is_ready:
            return
        self.stack.setCurrentIndex(self.PAGE_LOADING)
        future = self._provider.ensure_loaded(self._options)
        future.add_done_callback(self._on_future_done)

    def _on_future_done(self, future: Future) -> None:
        QTimer.singleShot(0, self, lambda: self._apply_result(future))

    def _apply_result(self, future: Future) -> None:
        if not self._alive or self.is_ready:
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Map unavailable: {error}")
            self.stack.setCurrentIndex(self.PAGE_ERROR)
            message = str(error) if isinstance(error, LoadError) else repr(error)
            self.sigLoadFailed.emit(message)
            return
        self._build_map(future.result())

    def _build_map(self, modules: SimpleNamespace) -> None:
        self.modules = modules
        self.map_canvas = modules.map_canvas.MapCanvas()
        self._map_layout.insertWidget(0, self.map_canvas, 1)
        if self._options.include_drawing:
            self.drawing_tool = modules.drawing_tool.PolygonDrawingTool(self.map_canvas)
        self._connect_signals()
        self.stack.setCurrentIndex(self.PAGE_MAP)
        logger.debug(f"Map component ready ({self._options.key})")
        self.sigMapReady.emit()

    def _connect_signals(self) -> None:
        # Map Canvas -> Status Bar
        self.map_canvas.sigCoordinateChanged.connect(self.status_bar.update_coordinates)
        self.map_canvas.sigZoomChanged.connect(self.status_bar.update_zoom)

        # Status Bar -> Map Canvas
        self.status_bar.sigZoomChanged.connect(self.map_canvas.set_zoom_level)

        # Map Canvas -> Self (re-emit)
        self.map_canvas.sigCoordinateChanged.connect(self.sigCoordinateChanged.emit)
        self.map_canvas.sigZoomChanged.connect(self.sigZoomChanged.emit)

    def cleanup(self):
        """Cleanup resources."""
        self._alive = False
        if self.drawing_tool is not None:
            self.drawing_tool.stop()
        if self.map_canvas is not None:
            self.map_canvas.cleanup()
