"""Tests for screen-radius marker grouping."""

from __future__ import annotations

import numpy as np
import pytest
import sklearn.cluster

from farmmap.core.ring import Coordinate
from farmmap.utils.farm_cluster import RadiusClusterAlgorithm, lnglat_to_pixels

POSITIONS = [
    Coordinate(25.400, 55.520),
    Coordinate(25.401, 55.521),
    Coordinate(24.000, 54.000),
]


def test_lnglat_to_pixels_maps_origin_to_world_center() -> None:
    pixels = lnglat_to_pixels(np.asarray([[0.0, 0.0], [180.0, 0.0]]), zoom=0)
    np.testing.assert_allclose(pixels[0], [128.0, 128.0])
    np.testing.assert_allclose(pixels[1], [256.0, 128.0])


def test_nearby_farms_group_at_low_zoom() -> None:
    algorithm = RadiusClusterAlgorithm(radius=150, max_zoom=16)

    clusters = algorithm.calculate(POSITIONS, zoom=9, cluster_module=sklearn.cluster)

    assert [cluster.members for cluster in clusters] == [(0, 1), (2,)]
    assert clusters[0].count == 2
    assert clusters[0].center.lat == pytest.approx(25.4005)
    assert clusters[1].is_single


def test_every_farm_stands_alone_above_max_zoom() -> None:
    algorithm = RadiusClusterAlgorithm(radius=150, max_zoom=16)

    clusters = algorithm.calculate(POSITIONS, zoom=17, cluster_module=sklearn.cluster)

    assert [cluster.members for cluster in clusters] == [(0,), (1,), (2,)]


def test_single_and_empty_inputs() -> None:
    algorithm = RadiusClusterAlgorithm()
    assert algorithm.calculate([], zoom=5, cluster_module=sklearn.cluster) == []
    only = algorithm.calculate(POSITIONS[:1], zoom=5, cluster_module=sklearn.cluster)
    assert only[0].members == (0,)


def test_radius_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RadiusClusterAlgorithm(radius=0)
