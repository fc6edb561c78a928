"""Screen-radius grouping of farm markers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from types import ModuleType
from typing import Any

import numpy as np

from farmmap.core.ring import Coordinate

TILE_SIZE = 256
MAX_MERCATOR_LAT = 85.05112878


@dataclass(frozen=True)
class Cluster:
    """Group of marker indices drawn as one bubble."""

    members: tuple[int, ...]
    center: Coordinate

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def is_single(self) -> bool:
        return len(self.members) == 1


def lnglat_to_pixels(positions_xy: np.ndarray, zoom: float) -> np.ndarray:
    """Project ``(lng, lat)`` rows to Web-Mercator world pixels at ``zoom``.

    Parameters
    ----------
    positions_xy : np.ndarray
        Array of shape ``(N, 2)`` holding longitude and latitude in degrees.
    zoom : float
        Map zoom level; the world is ``256 * 2**zoom`` pixels wide.

    Returns
    -------
    np.ndarray
        Array of shape ``(N, 2)`` with pixel x/y.
    """
    xy = np.asarray(positions_xy, dtype=np.float64).reshape(-1, 2)
    scale = TILE_SIZE * (2.0 ** float(zoom))
    lat = np.clip(xy[:, 1], -MAX_MERCATOR_LAT, MAX_MERCATOR_LAT)
    sin_lat = np.sin(np.radians(lat))
    px = (xy[:, 0] + 180.0) / 360.0 * scale
    py = (0.5 - np.log((1.0 + sin_lat) / (1.0 - sin_lat)) / (4.0 * np.pi)) * scale
    return np.column_stack((px, py))


class RadiusClusterAlgorithm:
    """Group markers lying within ``radius`` screen pixels of each other.

    Parameters
    ----------
    radius : float, optional
        Neighbourhood radius in screen pixels.
    max_zoom : float, optional
        Above this zoom level every marker is its own cluster.
    """

    def __init__(self, radius: float = 150, max_zoom: float = 16) -> None:
        if radius <= 0:
            raise ValueError("radius must be positive")
        self.radius = float(radius)
        self.max_zoom = float(max_zoom)

    def calculate(
        self,
        positions: Sequence[Coordinate],
        zoom: float,
        cluster_module: ModuleType | Any,
    ) -> list[Cluster]:
        """Group ``positions`` at ``zoom`` using ``cluster_module.DBSCAN``.

        Returns
        -------
        list[Cluster]
            Clusters ordered by their first member index.
        """
        if len(positions) == 0:
            return []
        xy = np.asarray([(p.lng, p.lat) for p in positions], dtype=np.float64)
        if zoom > self.max_zoom or len(positions) == 1:
            return [Cluster((index,), positions[index]) for index in range(len(positions))]

        pixels = lnglat_to_pixels(xy, zoom)
        labels = cluster_module.DBSCAN(eps=self.radius, min_samples=1).fit(pixels).labels_
        clusters: list[Cluster] = []
        seen: set[int] = set()
        for index, label in enumerate(labels):
            label = int(label)
            if label in seen:
                continue
            seen.add(label)
            members = tuple(int(i) for i in np.flatnonzero(labels == label))
            lng, lat = np.mean(xy[list(members)], axis=0)
            clusters.append(Cluster(members, Coordinate(float(lat), float(lng))))
        return clusters
