"""Search and map-synchronization engine for the services directory."""

from .clustering import Cluster, ClusterOptions, cluster
from .distance import annotate_distances, haversine_km
from .engine import DirectorySearchEngine, SearchSettings, ViewportProvider
from .filters import apply_facet, filter_by_keyword, filter_by_radius, partition_by_radius
from .models import Facet, ProviderRecord, SearchMode, SearchQuery, Viewport
from .selection import SelectionState, SelectionSynchronizer
from .viewport import BoundingBox, WindowSummary, window_to_viewport
from .worker import DistanceWorker

__all__ = [
    "BoundingBox",
    "Cluster",
    "ClusterOptions",
    "DirectorySearchEngine",
    "DistanceWorker",
    "Facet",
    "ProviderRecord",
    "SearchMode",
    "SearchQuery",
    "SearchSettings",
    "SelectionState",
    "SelectionSynchronizer",
    "Viewport",
    "ViewportProvider",
    "WindowSummary",
    "annotate_distances",
    "apply_facet",
    "cluster",
    "filter_by_keyword",
    "filter_by_radius",
    "haversine_km",
    "partition_by_radius",
    "window_to_viewport",
]
