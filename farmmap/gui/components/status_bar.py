from PySide6.QtWidgets import QFrame, QHBoxLayout, QWidget
from PySide6.QtCore import Signal, Qt
from qfluentwidgets import DoubleSpinBox, BodyLabel

from farmmap.gui.config import tr

class StatusBar(QFrame):
    """
    Status Bar with lat/lng display and an interactive zoom level control.
    """

    sigZoomChanged = Signal(float)

    def __init__(self, parent: QWidget = None):
        super().__init__(parent)
        self._init_ui()
        self._connect_signals()

    def _init_ui(self):
        self.setObjectName('statusBar')
        self.setFixedHeight(40)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        # --- Section 1: Coordinates ---
        self.coord_container = QWidget()
        coord_layout = QHBoxLayout(self.coord_container)
        coord_layout.setContentsMargins(16, 0, 16, 0)

        self.coord_label = BodyLabel(tr("status.coord").format(lat=0.0, lng=0.0))
        coord_layout.addWidget(self.coord_label, alignment=Qt.AlignmentFlag.AlignCenter)

        layout.addWidget(self.coord_container, 2)

        layout.addWidget(self._create_separator())

        # --- Section 2: Zoom level ---
        self.zoom_container = QWidget()
        zoom_layout = QHBoxLayout(self.zoom_container)
        zoom_layout.setContentsMargins(16, 0, 16, 0)
        zoom_layout.setSpacing(10)

        self.zoom_label = BodyLabel(tr("status.zoom_prefix").strip())

        self.zoom_sb = DoubleSpinBox()
        self.zoom_sb.setRange(1, 22)
        self.zoom_sb.setPrefix("")
        self.zoom_sb.setValue(9)
        self.zoom_sb.setSingleStep(1)
        self.zoom_sb.setDecimals(1)

        zoom_layout.addWidget(self.zoom_label)
        zoom_layout.addWidget(self.zoom_sb, 1)

        layout.addWidget(self.zoom_container, 1)

    def _create_separator(self) -> QFrame:
        line = QFrame()
        line.setFrameShape(QFrame.Shape.VLine)
        line.setFrameShadow(QFrame.Shadow.Sunken)
        line.setLineWidth(1)
        line.setMidLineWidth(0)
        line.setStyleSheet("QFrame { border: none; background-color: #E5E5E5; max-width: 1px; }")
        line.setFixedHeight(24)
        return line

    def _connect_signals(self):
        self.zoom_sb.valueChanged.connect(self._on_zoom_changed)

    def _on_zoom_changed(self, value: float):
        self.sigZoomChanged.emit(value)

    def update_coordinates(self, lng: float, lat: float) -> None:
        self.coord_label.setText(tr("status.coord").format(lat=lat, lng=lng))

    def update_zoom(self, zoom_level: float) -> None:
        # Block signals to prevent loop: Map -> StatusBar -> Map -> ...
        if abs(self.zoom_sb.value() - zoom_level) > 0.05:
            self.zoom_sb.blockSignals(True)
            self.zoom_sb.setValue(zoom_level)
            self.zoom_sb.blockSignals(False)
