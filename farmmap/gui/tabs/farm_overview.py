
import json
from typing import Any, Dict, List, Mapping, Optional
from pathlib import Path

from PySide6.QtWidgets import QWidget, QFileDialog
from PySide6.QtCore import Signal, Slot
from qfluentwidgets import (
    PushButton,
    InfoBar,
    BodyLabel,
    StrongBodyLabel,
)

from loguru import logger

from farmmap.core.farm_state import farm_state_from_record
from farmmap.gui.components.base_interface import TabInterface, PageGroup
from farmmap.gui.components.map_component import MapComponent
from farmmap.gui.config import cfg, tr
from farmmap.utils.farm_cluster import FarmClusterController, RadiusClusterAlgorithm
from farmmap.utils.parcel_drawing import PolygonDisplayController


class FarmOverviewTab(TabInterface):
    """
    Overview page: one clustered marker per farm.

    Clicking a marker opens its info popup; "view details" renders that
    farm's boundary and parcel rings in the side panel map.
    """

    sigFarmSelected = Signal(dict)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent, include_drawing=False)
        self.farms: List[Dict[str, Any]] = []
        self.cluster: Optional[FarmClusterController] = None
        self.details_display: Optional[PolygonDisplayController] = None
        self._pending_record: Optional[Mapping[str, Any]] = None
        self._details_farm_id: Any = None
        self._init_ui()

    def _init_ui(self) -> None:
        # --- Data Group ---
        data_group = PageGroup(tr("page.overview.group.data"))

        self.btn_load_farms = PushButton(tr("page.overview.btn.load_farms"))
        self.btn_load_farms.clicked.connect(self._on_load_farms)
        data_group.add_widget(self.btn_load_farms)

        self.count_label = BodyLabel(tr("page.overview.label.count").format(count=0))
        data_group.add_widget(self.count_label)

        self.add_group(data_group)
        self.add_stretch()

        # --- Details Panel ---
        self.details_title = StrongBodyLabel(tr("page.overview.label.details"))
        self.side_layout.addWidget(self.details_title)

        self.details_info = BodyLabel("")
        self.details_info.setWordWrap(True)
        self.side_layout.addWidget(self.details_info)

        self.no_polygon_label = BodyLabel(tr("display.no_polygon"))
        self.no_polygon_label.setWordWrap(True)
        self.no_polygon_label.setVisible(False)
        self.side_layout.addWidget(self.no_polygon_label)

        self.details_map = MapComponent(include_drawing=False)
        self.details_map.sigMapReady.connect(self._on_details_map_ready)
        self.side_layout.addWidget(self.details_map, 1)

        self.splitter.setSizes([700, 360])

    def _on_map_ready(self) -> None:
        canvas = self.map_component.map_canvas
        canvas.set_center_zoom(cfg.centerLat.value, cfg.centerLng.value, cfg.overviewZoom.value)
        self.cluster = FarmClusterController(
            canvas,
            on_farm_selected=self.show_farm_details,
            algorithm=RadiusClusterAlgorithm(
                radius=cfg.clusterRadius.value, max_zoom=cfg.clusterMaxZoom.value
            ),
            info_delay_ms=cfg.clusterInfoDelayMs.value,
            load_timeout_ms=cfg.clusterLoadTimeoutMs.value,
            details_label=tr("cluster.view_details"),
        )
        self.map_component.sigZoomChanged.connect(self.cluster.set_zoom)
        if self.farms:
            self._update_cluster()

    def _on_details_map_ready(self) -> None:
        canvas = self.details_map.map_canvas
        canvas.set_center_zoom(cfg.centerLat.value, cfg.centerLng.value, cfg.drawZoom.value)
        self.details_display = PolygonDisplayController(
            canvas, layer_prefix="farm_details", fit_padding=cfg.fitPadding.value
        )
        if self._pending_record is not None:
            record, self._pending_record = self._pending_record, None
            self._render_details(record)

    def set_farms(self, farms: List[Dict[str, Any]]) -> None:
        """Replace the farm list shown on the overview map."""
        self.farms = list(farms or [])
        self._update_cluster()

    def _update_cluster(self) -> None:
        if self.cluster is None:
            self.count_label.setText(
                tr("page.overview.label.count").format(count=len(self.farms))
            )
            return
        payload = self.cluster.update(self.farms)
        self.count_label.setText(
            tr("page.overview.label.count").format(count=payload["farm_count"])
        )
        if payload["skipped_count"]:
            InfoBar.warning(
                title=tr("warning"),
                content=tr("page.overview.msg.skipped").format(count=payload["skipped_count"]),
                parent=self
            )

    def show_farm_details(self, record: Mapping[str, Any]) -> None:
        """Show one farm in the details panel and announce the selection."""
        self._details_farm_id = record.get("id")
        self._render_details(record)
        self.sigFarmSelected.emit(dict(record))

    def update_farm(self, record: Mapping[str, Any]) -> bool:
        """Merge edited rings into the farm with the same ``id``.

        Returns
        -------
        bool
            False when no loaded farm has that id.
        """
        farm_id = record.get("id")
        if farm_id is None:
            return False
        farm = next((farm for farm in self.farms if farm.get("id") == farm_id), None)
        if farm is None:
            return False
        farm["boundaryRing"] = record.get("boundaryRing", [])
        farm["parcels"] = record.get("parcels", [])
        if self._details_farm_id == farm_id:
            self._render_details(farm)
        logger.debug(f"Farm {farm_id} updated from the editor")
        return True

    def _render_details(self, record: Mapping[str, Any]) -> None:
        """Render one farm's rings read-only in the details panel."""
        state = farm_state_from_record(record)
        self.details_title.setText(state.name or tr("page.overview.label.details"))
        area = record.get("totalArea")
        area_text = f"{area} acres" if area is not None else "N/A"
        self.details_info.setText(
            tr("page.overview.label.summary").format(
                area=area_text, parcels=len(state.parcels)
            )
        )

        if self.details_display is None:
            self._pending_record = record
            return
        payload = self.details_display.render(state.center, state.preview_rings())
        self.no_polygon_label.setVisible(not payload["has_polygon"])
        if not payload["has_polygon"] and state.center is not None:
            self.details_map.map_canvas.set_center_zoom(
                state.center.lat, state.center.lng, cfg.drawZoom.value
            )
        logger.debug(f"Farm details shown: {state.name} ({len(payload['layer_names'])} layers)")

    @Slot()
    def _on_load_farms(self):
        """Load a JSON list of farm records."""
        file_path, _ = QFileDialog.getOpenFileName(
            self, tr("page.overview.dialog.load_farms"), "", "JSON (*.json);;All Files (*)"
        )
        if not file_path:
            return
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                farms = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read farms from {file_path}: {e}")
            InfoBar.error(title=tr("error"), content=str(e), parent=self)
            return
        if not isinstance(farms, list):
            InfoBar.error(
                title=tr("error"),
                content=tr("page.overview.msg.invalid_file"),
                parent=self
            )
            return
        logger.info(f"Loaded {len(farms)} farms from {Path(file_path).name}")
        self.set_farms(farms)

    def cleanup(self) -> None:
        if self.cluster is not None:
            self.cluster.teardown()
        self.map_component.cleanup()
        self.details_map.cleanup()
