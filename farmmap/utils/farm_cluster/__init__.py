"""Farm marker clustering for the overview map."""

from farmmap.utils.farm_cluster.cluster_algorithm import (
    Cluster,
    RadiusClusterAlgorithm,
    lnglat_to_pixels,
)
from farmmap.utils.farm_cluster.cluster_controller import (
    FarmClusterController,
    FarmLocation,
    FarmMarkerClusterer,
    parse_farm_locations,
)
from farmmap.utils.farm_cluster.library import ClusterLibrary, get_cluster_library

__all__ = [
    "Cluster",
    "ClusterLibrary",
    "FarmClusterController",
    "FarmLocation",
    "FarmMarkerClusterer",
    "RadiusClusterAlgorithm",
    "get_cluster_library",
    "lnglat_to_pixels",
    "parse_farm_locations",
]
