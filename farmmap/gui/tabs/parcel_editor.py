
from typing import Optional
from pathlib import Path

from PySide6.QtWidgets import QWidget, QFileDialog, QTreeWidgetItem
from PySide6.QtCore import Qt, Signal, Slot
from qfluentwidgets import (
    PushButton,
    PrimaryPushButton,
    ComboBox,
    LineEdit,
    InfoBar,
    BodyLabel,
    StrongBodyLabel,
    TreeWidget,
)

from loguru import logger

from farmmap.core.errors import CommitOutcome
from farmmap.core.farm_state import DrawTarget, FarmState, ParcelCategory
from farmmap.core.ring import Ring, parse_coordinate
from farmmap.gui.components.base_interface import TabInterface, PageGroup
from farmmap.gui.config import cfg, tr
from farmmap.utils.parcel_drawing import (
    DrawingSessionController,
    DrawingState,
    PolygonDisplayController,
)

PARCEL_ID_ROLE = Qt.ItemDataRole.UserRole


class ParcelEditorTab(TabInterface):
    """
    Farm form page: draw the farm boundary and one ring per parcel.

    The side panel lists parcels grouped by category; the selected parcel is
    the target of "draw parcel area". Committed rings are previewed through a
    :class:`PolygonDisplayController`.
    """

    sigFarmChanged = Signal(dict)

    def __init__(
        self,
        parent: Optional[QWidget] = None,
        farm_state: Optional[FarmState] = None,
    ) -> None:
        super().__init__(parent, include_drawing=True)
        self.farm_state = farm_state or FarmState()
        self.session: Optional[DrawingSessionController] = None
        self.display: Optional[PolygonDisplayController] = None
        self._init_ui()
        self.farm_state.add_listener(self._on_farm_state_changed)
        self._refresh_parcel_list()
        self._update_buttons()

    def _init_ui(self) -> None:
        # --- Parcel Group ---
        parcel_group = PageGroup(tr("page.editor.group.parcel"))

        self.combo_category = ComboBox()
        for category in ParcelCategory:
            self.combo_category.addItem(tr(f"parcel.category.{category.value}"), userData=category)
        parcel_group.add_widget(self.combo_category)

        self.edit_parcel_name = LineEdit()
        self.edit_parcel_name.setPlaceholderText(tr("page.editor.placeholder.parcel_name"))
        parcel_group.add_widget(self.edit_parcel_name)

        self.btn_add_parcel = PushButton(tr("page.editor.btn.add_parcel"))
        self.btn_add_parcel.clicked.connect(self._on_add_parcel)
        parcel_group.add_widget(self.btn_add_parcel)

        self.btn_remove_parcel = PushButton(tr("page.editor.btn.remove_parcel"))
        self.btn_remove_parcel.clicked.connect(self._on_remove_parcel)
        parcel_group.add_widget(self.btn_remove_parcel)

        self.add_group(parcel_group)

        # --- Drawing Group ---
        draw_group = PageGroup(tr("page.editor.group.draw"))

        self.btn_draw_farm = PushButton(tr("page.editor.btn.draw_farm"))
        self.btn_draw_farm.clicked.connect(self._on_draw_farm)
        draw_group.add_widget(self.btn_draw_farm)

        self.btn_draw_parcel = PushButton(tr("page.editor.btn.draw_parcel"))
        self.btn_draw_parcel.clicked.connect(self._on_draw_parcel)
        draw_group.add_widget(self.btn_draw_parcel)

        self.btn_cancel = PushButton(tr("page.editor.btn.cancel"))
        self.btn_cancel.clicked.connect(self._on_cancel)
        draw_group.add_widget(self.btn_cancel)

        self.btn_clear = PushButton(tr("page.editor.btn.clear"))
        self.btn_clear.clicked.connect(self._on_clear)
        draw_group.add_widget(self.btn_clear)

        self.btn_save = PrimaryPushButton(tr("page.editor.btn.save"))
        self.btn_save.clicked.connect(self._on_save)
        draw_group.add_widget(self.btn_save)

        self.add_group(draw_group)

        # --- File Group ---
        file_group = PageGroup(tr("page.editor.group.file"))

        self.btn_basemap = PushButton(tr("page.editor.btn.basemap"))
        self.btn_basemap.clicked.connect(self._on_load_basemap)
        file_group.add_widget(self.btn_basemap)

        self.btn_export = PushButton(tr("page.editor.btn.export"))
        self.btn_export.clicked.connect(self._on_export)
        file_group.add_widget(self.btn_export)

        self.add_group(file_group)
        self.add_stretch()

        # --- Side Panel ---
        self.hint_label = BodyLabel("")
        self.hint_label.setWordWrap(True)
        self.hint_label.setVisible(False)
        self.side_layout.addWidget(self.hint_label)

        self.side_layout.addWidget(StrongBodyLabel(tr("page.editor.label.parcels")))
        self.parcel_tree = TreeWidget()
        self.parcel_tree.setHeaderHidden(True)
        self.parcel_tree.itemSelectionChanged.connect(self._update_buttons)
        self.side_layout.addWidget(self.parcel_tree, 1)

    def set_farm_state(self, farm_state: FarmState) -> None:
        """Switch to editing another farm, discarding any drawing in progress."""
        self.farm_state.remove_listener(self._on_farm_state_changed)
        if self.session is not None:
            self.session.teardown()
            self.session = None
            self.hint_label.setVisible(False)
        self.farm_state = farm_state
        self.farm_state.add_listener(self._on_farm_state_changed)
        self._refresh_parcel_list()
        if self.map_component.is_ready:
            self._on_map_ready()
        self._update_buttons()
        logger.info(f"Editing farm: {farm_state.name or farm_state.farm_id}")

    def _on_map_ready(self) -> None:
        canvas = self.map_component.map_canvas
        center = parse_coordinate(self.farm_state.center)
        if center is None:
            lat, lng = cfg.centerLat.value, cfg.centerLng.value
        else:
            lat, lng = center.lat, center.lng
        canvas.set_center_zoom(lat, lng, cfg.drawZoom.value)

        self.display = PolygonDisplayController(
            canvas, layer_prefix="parcel_preview", fit_padding=cfg.fitPadding.value
        )
        self.session = DrawingSessionController(
            self.map_component.drawing_tool,
            self.farm_state,
            on_state_changed=self._on_session_state_changed,
            on_committed=self._on_ring_committed,
        )
        self._refresh_preview()
        self._update_buttons()

    # --- Parcel list ---

    def selected_parcel_id(self) -> Optional[int]:
        item = self.parcel_tree.currentItem()
        if item is None:
            return None
        return item.data(0, PARCEL_ID_ROLE)

    @Slot()
    def _on_add_parcel(self):
        category = self.combo_category.currentData()
        name = self.edit_parcel_name.text().strip()
        parcel_id = self.farm_state.add_parcel(category, name)
        self.edit_parcel_name.clear()
        self._select_parcel(parcel_id)

    @Slot()
    def _on_remove_parcel(self):
        parcel_id = self.selected_parcel_id()
        if parcel_id is None:
            return
        if self.session is not None and self.session.target == DrawTarget.parcel(parcel_id):
            logger.info(f"Removing parcel {parcel_id} cancels its drawing session")
            self.session.cancel_drawing()
        self.farm_state.remove_parcel(parcel_id)

    def _refresh_parcel_list(self) -> None:
        selected = self.selected_parcel_id()
        self.parcel_tree.clear()
        groups = {}
        for parcel in self.farm_state.parcels:
            group = groups.get(parcel.category)
            if group is None:
                group = QTreeWidgetItem([tr(f"parcel.category.{parcel.category.value}")])
                group.setFlags(group.flags() & ~Qt.ItemFlag.ItemIsSelectable)
                self.parcel_tree.addTopLevelItem(group)
                groups[parcel.category] = group
            label = parcel.name or tr("page.editor.label.unnamed")
            if parcel.has_ring:
                label = f"{label}  ✓"
            item = QTreeWidgetItem([label])
            item.setData(0, PARCEL_ID_ROLE, parcel.parcel_id)
            group.addChild(item)
        self.parcel_tree.expandAll()
        if selected is not None:
            self._select_parcel(selected)

    def _select_parcel(self, parcel_id: int) -> None:
        for i in range(self.parcel_tree.topLevelItemCount()):
            group = self.parcel_tree.topLevelItem(i)
            for j in range(group.childCount()):
                item = group.child(j)
                if item.data(0, PARCEL_ID_ROLE) == parcel_id:
                    self.parcel_tree.setCurrentItem(item)
                    return

    # --- Drawing ---

    @Slot()
    def _on_draw_farm(self):
        if self.session is None:
            return
        self.session.start_drawing(DrawTarget.boundary())

    @Slot()
    def _on_draw_parcel(self):
        if self.session is None:
            return
        parcel_id = self.selected_parcel_id()
        if parcel_id is None:
            InfoBar.warning(
                title=tr("warning"),
                content=tr("page.editor.msg.select_parcel"),
                parent=self
            )
            return
        if not self.farm_state.boundary_ring:
            InfoBar.warning(
                title=tr("warning"),
                content=tr("page.editor.msg.boundary_first"),
                parent=self
            )
            return
        self.session.start_drawing(DrawTarget.parcel(parcel_id))

    @Slot()
    def _on_cancel(self):
        if self.session is not None:
            self.session.cancel_drawing()

    @Slot()
    def _on_clear(self):
        """Drop the drawn shape and start over on the same target."""
        if self.session is None or not self.session.is_active:
            return
        target = self.session.target
        self.session.cancel_drawing()
        self.session.start_drawing(target)

    @Slot()
    def _on_save(self):
        if self.session is None:
            return
        try:
            outcome = self.session.commit()
        except KeyError as e:
            logger.error(f"Commit target vanished: {e}")
            self.session.cancel_drawing()
            InfoBar.error(
                title=tr("error"),
                content=tr("page.editor.msg.target_missing"),
                parent=self
            )
            return
        self._show_outcome(outcome)

    def _show_outcome(self, outcome: CommitOutcome) -> None:
        content = tr(outcome.message_key)
        if outcome == CommitOutcome.COMMITTED:
            InfoBar.success(title=tr("success"), content=content, parent=self, duration=3000)
        elif outcome == CommitOutcome.INVALID_RING:
            InfoBar.warning(title=tr("warning"), content=content, parent=self)
        else:
            InfoBar.error(title=tr("error"), content=content, parent=self)

    def _on_session_state_changed(self, state: DrawingState) -> None:
        hint_key = {
            DrawingState.DRAWING: "drawing.hint.drawing",
            DrawingState.COMPLETED: "drawing.hint.completed",
        }.get(state)
        if hint_key is None:
            self.hint_label.setVisible(False)
        else:
            self.hint_label.setText(tr(hint_key))
            self.hint_label.setVisible(True)
        self._update_buttons()

    def _on_ring_committed(self, target: DrawTarget, ring: Ring) -> None:
        logger.info(f"Committed {len(ring)} points to {target.kind.value}")
        self.sigFarmChanged.emit({"id": self.farm_state.farm_id, **self.farm_state.to_record()})

    def _on_farm_state_changed(self) -> None:
        self._refresh_parcel_list()
        self._refresh_preview()
        self._update_buttons()

    def _refresh_preview(self) -> None:
        if self.display is None:
            return
        self.display.render(self.farm_state.center, self.farm_state.preview_rings())

    def _update_buttons(self) -> None:
        ready = self.session is not None
        active = ready and self.session.is_active
        completed = ready and self.session.state == DrawingState.COMPLETED
        has_selection = self.selected_parcel_id() is not None
        self.btn_draw_farm.setEnabled(ready)
        self.btn_draw_parcel.setEnabled(ready and has_selection)
        self.btn_cancel.setEnabled(active)
        self.btn_clear.setEnabled(active)
        self.btn_save.setEnabled(completed)
        self.btn_remove_parcel.setEnabled(has_selection)
        self.btn_basemap.setEnabled(ready)

    # --- Files ---

    @Slot()
    def _on_load_basemap(self):
        """Load an orthophoto under the drawing layers."""
        file_path, _ = QFileDialog.getOpenFileName(
            self, tr("page.editor.dialog.basemap"), "", "GeoTIFF (*.tif *.tiff);;All Files (*)"
        )
        if not file_path:
            return
        if self.map_component.map_canvas.add_basemap(file_path):
            InfoBar.success(
                title=tr("success"),
                content=f"Loaded: {Path(file_path).name}",
                parent=self,
                duration=3000
            )
        else:
            InfoBar.error(
                title=tr("error"),
                content=f"Failed to load basemap: {file_path}",
                parent=self
            )

    @Slot()
    def _on_export(self):
        """Save the boundary and parcel rings as GeoJSON."""
        gdf = self.farm_state.to_geodataframe()
        if gdf.empty:
            InfoBar.warning(
                title=tr("warning"),
                content=tr("page.editor.msg.nothing_to_export"),
                parent=self
            )
            return
        file_path, _ = QFileDialog.getSaveFileName(
            self, tr("page.editor.dialog.export"), "", "GeoJSON (*.geojson)"
        )
        if not file_path:
            return
        try:
            gdf.to_file(file_path, driver="GeoJSON")
        except Exception as e:
            logger.error(f"Export failed: {e}")
            InfoBar.error(title=tr("error"), content=str(e), parent=self)
            return
        logger.info(f"Exported {len(gdf)} features to {file_path}")
        InfoBar.success(
            title=tr("success"),
            content=f"Saved: {Path(file_path).name}",
            parent=self,
            duration=3000
        )

    def cleanup(self) -> None:
        """Tear down the drawing session and map resources."""
        self.farm_state.remove_listener(self._on_farm_state_changed)
        if self.session is not None:
            self.session.teardown()
        self.map_component.cleanup()
