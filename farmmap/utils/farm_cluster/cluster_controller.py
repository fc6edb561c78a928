"""Farm marker clustering controller for the overview map."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from loguru import logger

from farmmap.core.ring import Coordinate, parse_coordinate
from farmmap.utils.farm_cluster.cluster_algorithm import Cluster, RadiusClusterAlgorithm
from farmmap.utils.farm_cluster.library import (
    ClusterLibrary,
    LibraryRequest,
    get_cluster_library,
)
from farmmap.utils.scheduling import Scheduler, qt_scheduler

MARKER_FILL = (16, 185, 129, 230)
MARKER_BORDER = "#059669"
CLUSTER_FILL = (37, 99, 235, 200)
CLUSTER_BORDER = "#1E40AF"


@dataclass(frozen=True)
class FarmLocation:
    """One farm that can be shown as a marker."""

    farm_id: Any
    name: str
    position: Coordinate
    total_area: Any = None
    record: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def control_id(self) -> str:
        return f"view-farm-{self.farm_id}"


def parse_farm_locations(farms: Iterable[Mapping[str, Any]] | None) -> list[FarmLocation]:
    """Keep farms with numeric coordinates, logging the skipped ones."""
    locations: list[FarmLocation] = []
    for farm in farms or []:
        name = str(farm.get("farmName", ""))
        position = parse_coordinate(farm.get("coordinates"))
        if position is None:
            logger.warning(f"Invalid coordinates for farm: {name}")
            continue
        locations.append(
            FarmLocation(
                farm_id=farm.get("id"),
                name=name,
                position=position,
                total_area=farm.get("totalArea"),
                record=farm,
            )
        )
    return locations


def _positions_xy(positions: Iterable[Coordinate]) -> np.ndarray:
    return np.asarray([(p.lng, p.lat) for p in positions], dtype=np.float64).reshape(-1, 2)


class FarmMarkerClusterer:
    """Show grouped markers as count bubbles and single markers as-is.

    Parameters
    ----------
    map_canvas : Any
        Map canvas exposing ``add_point_layer``, ``add_text_layer``,
        ``get_layer_names`` and ``remove_layer``.
    markers : list[Any]
        Marker handles exposing ``set_visible``; one per position.
    positions : list[Coordinate]
        Marker positions.
    algorithm : RadiusClusterAlgorithm
        Grouping algorithm.
    cluster_module : Any
        Loaded clustering module passed to the algorithm.
    layer_prefix : str, optional
        Prefix of the bubble and count layers.
    """

    def __init__(
        self,
        map_canvas: Any,
        markers: list[Any],
        positions: list[Coordinate],
        algorithm: RadiusClusterAlgorithm,
        cluster_module: Any,
        layer_prefix: str = "farm_cluster",
    ) -> None:
        self._map_canvas = map_canvas
        self._markers = markers
        self._positions = positions
        self._algorithm = algorithm
        self._cluster_module = cluster_module
        self._bubble_layer_name = f"{layer_prefix}_bubbles"
        self._count_layer_name = f"{layer_prefix}_counts"
        self.clusters: list[Cluster] = []

    def render(self, zoom: float) -> list[Cluster]:
        """Recompute clusters at ``zoom`` and refresh the map."""
        self._remove_layers()
        self.clusters = self._algorithm.calculate(self._positions, zoom, self._cluster_module)
        grouped = [cluster for cluster in self.clusters if not cluster.is_single]
        single_members = {cluster.members[0] for cluster in self.clusters if cluster.is_single}
        for index, marker in enumerate(self._markers):
            marker.set_visible(index in single_members)
        if grouped:
            centers = _positions_xy(cluster.center for cluster in grouped)
            counts = [cluster.count for cluster in grouped]
            self._map_canvas.add_point_layer(
                centers,
                self._bubble_layer_name,
                size=[_bubble_size(count) for count in counts],
                fill_color=CLUSTER_FILL,
                border_color=CLUSTER_BORDER,
                border_width=2,
                z_value=800,
                replace=True,
            )
            self._map_canvas.add_text_layer(
                centers,
                [str(count) for count in counts],
                self._count_layer_name,
                color="#FFFFFF",
                z_value=801,
            )
        logger.debug(
            f"Clustered {len(self._positions)} farms into {len(self.clusters)} groups at zoom {zoom:.1f}"
        )
        return self.clusters

    def clear(self) -> None:
        """Remove bubbles and show every marker again."""
        self._remove_layers()
        for marker in self._markers:
            marker.set_visible(True)
        self.clusters = []

    def _remove_layers(self) -> None:
        names = set(self._map_canvas.get_layer_names())
        for layer_name in (self._bubble_layer_name, self._count_layer_name):
            if layer_name in names:
                self._map_canvas.remove_layer(layer_name)


def _bubble_size(count: int) -> float:
    return 26.0 + 6.0 * float(np.log2(max(count, 1)))


class FarmClusterController:
    """Drive farm markers, info overlays and clustering on one map.

    Parameters
    ----------
    map_canvas : Any
        Map canvas exposing ``create_marker``, ``create_info_overlay``,
        ``get_zoom_level`` and the layer API used by
        :class:`FarmMarkerClusterer`.
    on_farm_selected : Callable[[Mapping[str, Any]], None], optional
        Receives the farm record when its "view details" control is clicked.
    algorithm : RadiusClusterAlgorithm, optional
        Defaults to ``RadiusClusterAlgorithm(radius=150, max_zoom=16)``.
    library : ClusterLibrary, optional
        Defaults to the process-wide loader.
    scheduler : Scheduler, optional
        Deferred-callback runner, defaults to ``QTimer.singleShot``.
    info_delay_ms : int, optional
        Delay between opening an info overlay and wiring its control.
    load_timeout_ms : int, optional
        Wait limit when the clustering library is already being loaded.
    details_label : str, optional
        Text of the "view details" control.
    """

    def __init__(
        self,
        map_canvas: Any,
        on_farm_selected: Callable[[Mapping[str, Any]], None] | None = None,
        algorithm: RadiusClusterAlgorithm | None = None,
        library: ClusterLibrary | None = None,
        scheduler: Scheduler | None = None,
        info_delay_ms: int = 50,
        load_timeout_ms: int = 5000,
        details_label: str = "View details",
        layer_prefix: str = "farm_cluster",
    ) -> None:
        self._map_canvas = map_canvas
        self._on_farm_selected = on_farm_selected
        self._algorithm = algorithm or RadiusClusterAlgorithm()
        self._library = library or get_cluster_library()
        self._scheduler = scheduler or qt_scheduler
        self._info_delay_ms = int(info_delay_ms)
        self._load_timeout_ms = int(load_timeout_ms)
        self._details_label = details_label
        self._layer_prefix = layer_prefix

        self._locations: list[FarmLocation] = []
        self._markers: list[Any] = []
        self._overlays: list[Any] = []
        self._wired: set[int] = set()
        self._clusterer: FarmMarkerClusterer | None = None
        self._request: LibraryRequest | None = None
        self._generation = 0
        self._alive = True

    @property
    def locations(self) -> list[FarmLocation]:
        return list(self._locations)

    @property
    def markers(self) -> list[Any]:
        return list(self._markers)

    @property
    def overlays(self) -> list[Any]:
        return list(self._overlays)

    @property
    def clusterer(self) -> FarmMarkerClusterer | None:
        return self._clusterer

    def update(self, farms: Iterable[Mapping[str, Any]] | None) -> dict[str, Any]:
        """Replace every marker with one per valid farm and cluster them.

        Returns
        -------
        dict[str, Any]
            ``farm_count`` shown and ``skipped_count`` of farms without
            usable coordinates.
        """
        if not self._alive:
            return {"farm_count": 0, "skipped_count": 0}
        self._clear()
        farm_list = list(farms or [])
        self._locations = parse_farm_locations(farm_list)
        generation = self._generation
        for index, location in enumerate(self._locations):
            self._add_farm(generation, index, location)
        payload = {
            "farm_count": len(self._locations),
            "skipped_count": len(farm_list) - len(self._locations),
        }
        if not self._locations:
            return payload
        self._request = self._library.acquire(
            on_ready=lambda module: self._on_library_ready(generation, module),
            on_failed=lambda exc: self._on_library_failed(generation, exc),
            timeout_ms=self._load_timeout_ms,
        )
        return payload

    def set_zoom(self, zoom: float) -> None:
        """Re-cluster at a new zoom level."""
        if not self._alive or self._clusterer is None:
            return
        self._clusterer.render(float(zoom))

    def teardown(self) -> None:
        """Remove every marker and overlay; pending callbacks become no-ops."""
        self._clear()
        self._alive = False

    def _add_farm(self, generation: int, index: int, location: FarmLocation) -> None:
        anchor = (location.position.lng, location.position.lat)
        marker = self._map_canvas.create_marker(
            anchor,
            title=location.name,
            on_click=lambda: self._on_marker_clicked(generation, index),
            fill_color=MARKER_FILL,
            border_color=MARKER_BORDER,
        )
        area = location.total_area if location.total_area not in (None, "") else "N/A"
        overlay = self._map_canvas.create_info_overlay(
            anchor,
            title=location.name,
            lines=[
                f"{area} acres",
                f"{location.position.lat:.4f}, {location.position.lng:.4f}",
            ],
            control_id=location.control_id,
            control_text=self._details_label,
        )
        self._markers.append(marker)
        self._overlays.append(overlay)

    def _on_marker_clicked(self, generation: int, index: int) -> None:
        if not self._is_current(generation):
            return
        for other_index, overlay in enumerate(self._overlays):
            if other_index != index:
                overlay.close()
        self._overlays[index].open()
        self._scheduler(
            self._info_delay_ms, lambda: self._wire_info_control(generation, index)
        )

    def _wire_info_control(self, generation: int, index: int) -> None:
        if not self._is_current(generation) or index in self._wired:
            return
        location = self._locations[index]
        control = self._overlays[index].find_control(location.control_id)
        if control is None:
            logger.warning(f"Info control not found: {location.control_id}")
            return
        control.clicked.connect(lambda *_: self._select_farm(generation, index))
        self._wired.add(index)

    def _select_farm(self, generation: int, index: int) -> None:
        if not self._is_current(generation) or self._on_farm_selected is None:
            return
        location = self._locations[index]
        logger.debug(f"Farm selected: {location.farm_id}")
        self._on_farm_selected(location.record)

    def _on_library_ready(self, generation: int, module: Any) -> None:
        if not self._is_current(generation):
            return
        self._request = None
        self._clusterer = FarmMarkerClusterer(
            self._map_canvas,
            self._markers,
            [location.position for location in self._locations],
            self._algorithm,
            module,
            layer_prefix=self._layer_prefix,
        )
        self._clusterer.render(self._map_canvas.get_zoom_level())
        logger.info(f"Clusterer initialized with {len(self._markers)} markers")

    def _on_library_failed(self, generation: int, exc: Exception) -> None:
        if not self._is_current(generation):
            return
        self._request = None
        logger.warning(f"Showing farms without clustering: {exc}")

    def _is_current(self, generation: int) -> bool:
        return self._alive and generation == self._generation

    def _clear(self) -> None:
        self._generation += 1
        if self._request is not None:
            self._request.cancel()
            self._request = None
        if self._clusterer is not None:
            self._clusterer.clear()
            self._clusterer = None
        for overlay in self._overlays:
            overlay.remove()
        for marker in self._markers:
            marker.remove()
        self._overlays = []
        self._markers = []
        self._locations = []
        self._wired = set()
