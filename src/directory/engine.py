"""Directory search engine: composes filters, windowing, clustering and selection.

The engine is owned by a single interaction thread. Distance annotation is the
only asynchronous step: it runs on the shared :class:`DistanceWorker` and its
result comes back through the engine's inbox. Every proximity dispatch gets a
monotonically increasing request id and a response is applied only when its
id is the latest one issued, so a slow, superseded query can never overwrite
a newer one. Debounced keyword commits travel through the same inbox, so
state is only ever changed by ``process_responses`` on the interaction thread.

Typical use::

    engine = DirectorySearchEngine(dataset, map_surface=surface)
    engine.search_near((-33.87, 151.21), radius_km=10)
    engine.wait_until_settled()
    engine.displayed          # list rows
    engine.markers()          # map markers
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Protocol, Tuple, Union

import pandas as pd

from src.directory.clustering import Cluster, ClusterOptions, cluster
from src.directory.debounce import Debouncer
from src.directory.distance import annotate_distances
from src.directory.filters import apply_facet, filter_by_keyword, partition_by_radius
from src.directory.models import (
    DEFAULT_RADIUS_KM,
    NEAREST_FALLBACK_SIZE,
    RADIUS_OPTIONS_KM,
    Facet,
    LatLng,
    ProviderRecord,
    SearchMode,
    SearchQuery,
    Viewport,
    is_valid_position,
    record_at,
)
from src.directory.selection import ListScroller, SelectionSynchronizer
from src.directory.viewport import BoundingBox, WindowSummary, window_to_viewport
from src.directory.worker import DistanceWorker

logger = logging.getLogger(__name__)

INITIAL_CENTER: LatLng = (-25.2744, 133.7751)

# Names of the sequences a selection index can refer to
VISIBLE = "visible"
FALLBACK = "fallback"


class ViewportProvider(Protocol):
    """Commands the engine sends to the map surface."""

    def fit_bounds(self, bounds: BoundingBox) -> None:
        ...

    def pan_to(self, center: LatLng) -> None:
        ...

    def set_zoom(self, zoom: float) -> None:
        ...


@dataclass(frozen=True)
class SearchSettings:
    radius_options_km: Tuple[float, ...] = RADIUS_OPTIONS_KM
    default_radius_km: float = DEFAULT_RADIUS_KM
    keyword_debounce_seconds: float = 0.3
    nearest_fallback_size: int = NEAREST_FALLBACK_SIZE
    initial_center: LatLng = INITIAL_CENTER
    initial_zoom: int = 4
    search_zoom: int = 12
    focus_zoom: int = 15

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SearchSettings":
        """Build settings from the ``search`` section returned by ``get_search_config``."""
        radius_options = tuple(float(r) for r in config.get("radius_options_km", cls.radius_options_km))
        center = config.get("initial_center", cls.initial_center)
        return cls(
            radius_options_km=radius_options,
            default_radius_km=float(config.get("default_radius_km", cls.default_radius_km)),
            keyword_debounce_seconds=float(config.get("keyword_debounce_ms", 300)) / 1000.0,
            nearest_fallback_size=int(config.get("nearest_fallback_size", cls.nearest_fallback_size)),
            initial_center=(float(center[0]), float(center[1])),
            initial_zoom=int(config.get("initial_zoom", cls.initial_zoom)),
            search_zoom=int(config.get("search_zoom", cls.search_zoom)),
            focus_zoom=int(config.get("focus_zoom", cls.focus_zoom)),
        )


@dataclass(frozen=True)
class DistanceResponse:
    request_id: int
    query: SearchQuery
    future: "Future[pd.DataFrame]"


@dataclass(frozen=True)
class KeywordCommit:
    term: str


InboxMessage = Union[DistanceResponse, KeywordCommit]


class DirectorySearchEngine:
    """Keeps the result list and the map in lock-step for one user session.

    Args:
        dataset: Normalized directory DataFrame. It is never modified.
        settings: Search behaviour; defaults match the public directory.
        cluster_options: Marker clustering parameters.
        worker: Shared distance worker. One is created (and owned) if omitted.
        map_surface: Optional :class:`ViewportProvider` receiving pan/zoom/fit commands.
        scroller: Optional list scroll provider used when a marker is clicked.
        timer_factory: Timer constructor for the keyword debounce.
    """

    def __init__(
        self,
        dataset: pd.DataFrame,
        *,
        settings: Optional[SearchSettings] = None,
        cluster_options: Optional[ClusterOptions] = None,
        worker: Optional[DistanceWorker] = None,
        map_surface: Optional[ViewportProvider] = None,
        scroller: Optional[ListScroller] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        self.settings = settings or SearchSettings()
        if self.settings.default_radius_km not in self.settings.radius_options_km:
            raise ValueError(f"Default radius {self.settings.default_radius_km} km is not a radius option")

        self.cluster_options = cluster_options or ClusterOptions()
        self.map_surface = map_surface
        self.selection = SelectionSynchronizer(scroller)

        self._dataset = dataset
        self._owns_worker = worker is None
        self._worker = worker or DistanceWorker()
        self._inbox: "queue.Queue[InboxMessage]" = queue.Queue()
        self._request_ids = itertools.count(1)
        self._latest_request_id = 0
        self._pending_request_id: Optional[int] = None
        self._keyword_debouncer = Debouncer(
            self.settings.keyword_debounce_seconds, self._enqueue_keyword, timer_factory=timer_factory
        )

        self.query = SearchQuery(radius_km=self.settings.default_radius_km)
        self.viewport: Optional[Viewport] = None
        self.result_set: pd.DataFrame = apply_facet(dataset, Facet.ALL)
        self.nearest_fallback: pd.DataFrame = dataset.iloc[0:0].copy()
        self.showing_fallback = False

        logger.info(f"Directory engine ready with {len(dataset)} services")

    # ------------------------------------------------------------------
    # Query changes
    # ------------------------------------------------------------------

    @property
    def dataset(self) -> pd.DataFrame:
        return self._dataset

    def set_mode(self, mode: Union[SearchMode, str]) -> None:
        """Switch between proximity and keyword search; clears the current term."""
        mode = SearchMode(mode)
        if mode is self.query.mode:
            return
        self._keyword_debouncer.cancel()
        self._invalidate_pending()
        self.query = self.query.with_changes(mode=mode, origin=None, keyword="")
        self._show_facet_only()

    def search_near(self, origin: LatLng, radius_km: Optional[float] = None) -> int:
        """Start a proximity search around ``origin``. Returns the request id."""
        if not is_valid_position(*origin):
            raise ValueError(f"Invalid search origin: {origin!r}")
        radius = self._checked_radius(self.query.radius_km if radius_km is None else radius_km)

        self._keyword_debouncer.cancel()
        origin = (float(origin[0]), float(origin[1]))
        self.query = self.query.with_changes(mode=SearchMode.PROXIMITY, origin=origin, radius_km=radius, keyword="")
        if self.map_surface is not None:
            self.map_surface.pan_to(origin)
            self.map_surface.set_zoom(self.settings.search_zoom)
        return self._dispatch_proximity()

    def set_radius(self, radius_km: float) -> Optional[int]:
        """Change the radius; re-runs the proximity search when an origin is set."""
        radius = self._checked_radius(radius_km)
        self.query = self.query.with_changes(radius_km=radius)
        if self.query.drives_proximity:
            return self._dispatch_proximity()
        if self.query.mode is SearchMode.PROXIMITY:
            self._show_facet_only()
        return None

    def set_facet(self, facet: Union[Facet, str]) -> Optional[int]:
        """Change the ownership facet and recompute the base result set.

        With an origin set this issues a new proximity request, because the
        nearest-fallback list depends on the facet.
        """
        facet = Facet.parse(facet)
        self.query = self.query.with_changes(facet=facet)
        if self.query.drives_proximity:
            return self._dispatch_proximity()
        if self.query.mode is SearchMode.KEYWORD:
            self.commit_keyword(self.query.keyword)
        else:
            self._show_facet_only()
        return None

    def set_keyword(self, term: str) -> None:
        """Feed a keystroke; the search runs once input has been quiet long enough."""
        if self.query.mode is not SearchMode.KEYWORD:
            logger.debug("Ignoring keyword input outside keyword mode")
            return
        self._keyword_debouncer(term or "")

    def flush_keyword(self) -> bool:
        """Commit a pending keyword immediately (e.g. on Enter)."""
        if not self._keyword_debouncer.flush():
            return False
        self.process_responses()
        return True

    def commit_keyword(self, term: str) -> bool:
        """Apply a keyword search now. Returns False if keyword mode is no longer active."""
        if self.query.mode is not SearchMode.KEYWORD:
            logger.debug(f"Dropping keyword commit {term!r}: search mode changed")
            return False

        self.query = self.query.with_changes(keyword=term or "")
        self.result_set = filter_by_keyword(self.query.keyword, self._dataset, self.query.facet)
        self.nearest_fallback = self._dataset.iloc[0:0].copy()
        self.showing_fallback = False
        self.selection.clear()
        logger.info(f"Keyword search {self.query.keyword!r} matched {len(self.result_set)} services")
        self._frame_keyword_results()
        return True

    def clear_search(self) -> None:
        """Drop the term/origin and return to the facet-filtered full directory."""
        self._keyword_debouncer.cancel()
        self._invalidate_pending()
        self.query = self.query.with_changes(origin=None, keyword="")
        self._show_facet_only()
        if self.map_surface is not None:
            self.map_surface.pan_to(self.settings.initial_center)
            self.map_surface.set_zoom(self.settings.initial_zoom)

    # ------------------------------------------------------------------
    # Async plumbing
    # ------------------------------------------------------------------

    @property
    def has_pending_request(self) -> bool:
        return self._pending_request_id is not None

    @property
    def latest_request_id(self) -> int:
        return self._latest_request_id

    def process_responses(self, timeout: Optional[float] = 0.0) -> int:
        """Apply queued worker responses and keyword commits.

        Args:
            timeout: How long to wait for the first message. ``0`` only drains
                what is already queued; ``None`` waits indefinitely.

        Returns:
            Number of messages that changed state (stale responses excluded).
        """
        applied = 0
        wait_first = timeout is None or timeout > 0
        while True:
            try:
                if wait_first:
                    message = self._inbox.get(timeout=timeout)
                    wait_first = False
                else:
                    message = self._inbox.get_nowait()
            except queue.Empty:
                break
            if self._apply(message):
                applied += 1
        return applied

    def wait_until_settled(self, timeout: float = 5.0) -> bool:
        """Block until the latest proximity request has been applied."""
        deadline = time.monotonic() + timeout
        self.process_responses()
        while self.has_pending_request:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(f"Proximity request {self._pending_request_id} still pending after {timeout}s")
                return False
            self.process_responses(timeout=remaining)
        return True

    def _enqueue_keyword(self, term: str) -> None:
        # Runs on the debounce timer thread
        self._inbox.put(KeywordCommit(term))

    def _dispatch_proximity(self) -> int:
        request_id = next(self._request_ids)
        self._latest_request_id = request_id
        self._pending_request_id = request_id
        query = self.query
        self.selection.clear()

        eligible = apply_facet(self._dataset, query.facet)
        future = self._worker.submit(query.origin, eligible)
        future.add_done_callback(lambda f: self._inbox.put(DistanceResponse(request_id, query, f)))
        logger.debug(f"Dispatched proximity request {request_id} for {len(eligible)} services")
        return request_id

    def _invalidate_pending(self) -> None:
        if self._pending_request_id is not None:
            logger.debug(f"Superseding proximity request {self._pending_request_id}")
        self._latest_request_id = next(self._request_ids)
        self._pending_request_id = None

    def _apply(self, message: InboxMessage) -> bool:
        if isinstance(message, KeywordCommit):
            return self.commit_keyword(message.term)
        return self._apply_distance_response(message)

    def _apply_distance_response(self, response: DistanceResponse) -> bool:
        if response.request_id != self._latest_request_id:
            logger.debug(
                f"Discarding stale proximity response {response.request_id} "
                f"(latest is {self._latest_request_id})"
            )
            return False

        query = response.query
        try:
            annotated = response.future.result()
        except Exception as e:
            logger.warning(f"Background distance annotation failed, recomputing in-process: {e}")
            annotated = annotate_distances(query.origin, apply_facet(self._dataset, query.facet))

        outcome = partition_by_radius(
            annotated, query.radius_km, query.facet, fallback_size=self.settings.nearest_fallback_size
        )
        self._pending_request_id = None
        self.result_set = outcome.matches
        self.nearest_fallback = outcome.nearest_fallback
        self.showing_fallback = outcome.showing_fallback
        self.selection.clear()

        if outcome.showing_fallback:
            logger.info(
                f"No services within {query.radius_km:g} km; showing {len(outcome.nearest_fallback)} nearest"
            )
        else:
            logger.info(f"Found {len(outcome.matches)} services within {query.radius_km:g} km")
            if self.map_surface is not None:
                bounds = BoundingBox.from_records(outcome.matches)
                if bounds is not None:
                    self.map_surface.fit_bounds(bounds)
        return True

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def on_viewport_changed(self, viewport: Optional[Viewport]) -> None:
        """Handle a pan/zoom/drag end from the map surface."""
        self.viewport = viewport
        if self.selection.is_selected and not self.showing_fallback:
            self.selection.reconcile(self.visible_subset, VISIBLE)

    @property
    def visible_subset(self) -> pd.DataFrame:
        return window_to_viewport(self.result_set, self.viewport)

    @property
    def displayed_source(self) -> str:
        return FALLBACK if self.showing_fallback else VISIBLE

    @property
    def displayed(self) -> pd.DataFrame:
        """Rows the list view should show right now."""
        return self.nearest_fallback.copy() if self.showing_fallback else self.visible_subset

    def window_summary(self) -> WindowSummary:
        return WindowSummary(
            visible=len(self.visible_subset),
            total=len(self.result_set),
            viewport_known=self.viewport is not None,
        )

    @property
    def empty_state_message(self) -> Optional[str]:
        if self.showing_fallback:
            if self.nearest_fallback.empty:
                return "No services with a map location match the selected program type."
            return "No services found within the selected radius. Nearest services:"
        if self.result_set.empty and self.query.mode is SearchMode.KEYWORD and self.query.keyword:
            return "No services found with that name."
        return None

    def marker_records(self) -> pd.DataFrame:
        """Rows that get a map marker: the result set, plus the fallback when it is shown."""
        if not self.showing_fallback:
            return self.result_set
        combined = pd.concat([self.result_set, self.nearest_fallback])
        return combined[~combined.index.duplicated(keep="first")]

    def markers(self, zoom: Optional[float] = None) -> List[Cluster]:
        if zoom is None:
            zoom = self.viewport.zoom if self.viewport is not None else self.settings.initial_zoom
        return cluster(self.marker_records(), zoom, self.cluster_options)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_from_list(self, index: int) -> Optional[ProviderRecord]:
        """Handle a click on the ``index``-th list row and focus the map on it."""
        if not self.selection.select_from_list(index, self.displayed, self.displayed_source):
            return None
        record = self.record(self.selection.record_key)
        if record.has_position and self.map_surface is not None:
            self.map_surface.pan_to(record.position)
            self.map_surface.set_zoom(self.settings.focus_zoom)
        return record

    def select_from_map(self, record_key: Any) -> Optional[ProviderRecord]:
        """Handle a click on a single-record marker.

        The key is resolved against the list that is on screen. A record that
        is in the result set but outside the viewport is panned to first, so
        the list re-windows around it before it is selected; if it is still
        not listed afterwards the selection is cleared.
        """
        if self.showing_fallback:
            candidates = [(FALLBACK, self.nearest_fallback)]
        else:
            if record_key in self.result_set.index and record_key not in self.visible_subset.index:
                self._bring_into_view(record_key)
            candidates = [(VISIBLE, self.visible_subset)]
        if not self.selection.select_from_map(record_key, candidates):
            return None
        return self.record(record_key)

    def _bring_into_view(self, record_key: Any) -> None:
        record = self.record(record_key)
        if not record.has_position or self.map_surface is None:
            return
        # The surface reports the pan back through on_viewport_changed
        self.map_surface.pan_to(record.position)

    def close_detail(self) -> None:
        self.selection.clear()

    @property
    def selected_record(self) -> Optional[ProviderRecord]:
        if not self.selection.is_selected:
            return None
        return self.record(self.selection.record_key)

    def record(self, key: Any) -> ProviderRecord:
        """Look up a record, preferring the copy that carries a distance."""
        for frame in (self.nearest_fallback, self.result_set):
            if key in frame.index:
                return record_at(frame, key)
        return record_at(self._dataset, key)

    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        self._keyword_debouncer.cancel()
        if self._owns_worker:
            self._worker.shutdown(wait=False)

    def _checked_radius(self, radius_km: float) -> float:
        radius = float(radius_km)
        if radius not in self.settings.radius_options_km:
            raise ValueError(
                f"Radius {radius_km} km is not one of {', '.join(f'{r:g}' for r in self.settings.radius_options_km)}"
            )
        return radius

    def _show_facet_only(self) -> None:
        self.result_set = apply_facet(self._dataset, self.query.facet)
        self.nearest_fallback = self._dataset.iloc[0:0].copy()
        self.showing_fallback = False
        self.selection.clear()

    def _frame_keyword_results(self) -> None:
        if self.map_surface is None:
            return
        bounds = BoundingBox.from_records(self.result_set)
        if bounds is None:
            return
        if self.viewport is None or window_to_viewport(self.result_set, self.viewport).empty:
            self.map_surface.fit_bounds(bounds)
