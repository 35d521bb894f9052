"""
Streamlit app entrypoint - Cardiac Services Directory.

The page keeps one DirectorySearchEngine per browser session. Sidebar
controls feed the engine (proximity or keyword search, ownership facet,
radius); the map and the result list are both rendered from engine state so
they always describe the same result set.

Map pans/zooms are owned by StreamlitMapSurface, which stores centre and zoom
in session state and reports every change back to the engine as a viewport
change.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import pandas as pd
import plotly.express as px
import streamlit as st

st.set_page_config(page_title="Cardiac Services Directory", page_icon=":anatomical_heart:", layout="wide")

from src.data.ingestion import DirectoryDataError, load_directory_data  # noqa: E402
from src.directory.clustering import ClusterOptions  # noqa: E402
from src.directory.engine import FALLBACK, DirectorySearchEngine, SearchSettings  # noqa: E402
from src.directory.models import Facet, LatLng, SearchMode  # noqa: E402
from src.directory.viewport import BoundingBox, fit_bounds, viewport_for_view  # noqa: E402
from src.directory.worker import DistanceWorker  # noqa: E402
from src.utils.cleaning import validate_directory_data  # noqa: E402
from src.utils.config import (  # noqa: E402
    get_app_config,
    get_cluster_config,
    get_directory_config,
    get_map_config,
    get_search_config,
    validate_configuration,
)
from src.utils.formatting import (  # noqa: E402
    handle_streamlit_error,
    hover_text,
    list_window_start,
    service_card_fields,
)
from src.utils.geocoding import geocode_place_with_feedback  # noqa: E402
from src.utils.performance import PerformanceTracker  # noqa: E402
from src.utils.validation import validate_location_input  # noqa: E402

logger = logging.getLogger(__name__)

PLOTLY_CONFIG = {"displayModeBar": False, "scrollZoom": True}
MAX_LIST_ROWS = 100
ENGINE_KEY = "directory_engine"
SURFACE_KEY = "directory_map_surface"


def configure_logging() -> None:
    level_name = str(get_app_config()["log_level"]).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class StreamlitMapSurface:
    """Map framing kept in session state; implements the engine's viewport provider."""

    def __init__(self, center: LatLng, zoom: float, width_px: int, height_px: int, padding_px: int):
        self.center = center
        self.zoom = zoom
        self.width_px = width_px
        self.height_px = height_px
        self.padding_px = padding_px
        self._engine: Optional[DirectorySearchEngine] = None

    def bind(self, engine: DirectorySearchEngine) -> None:
        self._engine = engine
        self._emit()

    def fit_bounds(self, bounds: BoundingBox) -> None:
        self.center, self.zoom = fit_bounds(bounds, self.width_px, self.height_px, self.padding_px)
        self._emit()

    def pan_to(self, center: LatLng) -> None:
        self.center = center
        self._emit()

    def set_zoom(self, zoom: float) -> None:
        self.zoom = zoom
        self._emit()

    def _emit(self) -> None:
        if self._engine is not None:
            self._engine.on_viewport_changed(
                viewport_for_view(self.center, self.zoom, self.width_px, self.height_px)
            )


class SessionListScroller:
    """Remembers which list row should be brought into view on the next render."""

    def scroll_to_index(self, index: int, align: str = "center", behavior: str = "smooth") -> None:
        st.session_state["scroll_to_index"] = index


@st.cache_resource(show_spinner=False)
def get_distance_worker() -> DistanceWorker:
    return DistanceWorker()


def get_engine(dataset: pd.DataFrame) -> DirectorySearchEngine:
    if ENGINE_KEY in st.session_state:
        return st.session_state[ENGINE_KEY]

    settings = SearchSettings.from_config(get_search_config())
    map_config = get_map_config()
    surface = StreamlitMapSurface(
        center=settings.initial_center,
        zoom=settings.initial_zoom,
        width_px=int(map_config["width_px"]),
        height_px=int(map_config["height_px"]),
        padding_px=int(map_config["fit_padding_px"]),
    )
    engine = DirectorySearchEngine(
        dataset,
        settings=settings,
        cluster_options=ClusterOptions.from_config(get_cluster_config()),
        worker=get_distance_worker(),
        map_surface=surface,
        scroller=SessionListScroller(),
    )
    surface.bind(engine)
    st.session_state[ENGINE_KEY] = engine
    st.session_state[SURFACE_KEY] = surface
    return engine


# --- widget callbacks -------------------------------------------------------


def _on_mode_change(engine: DirectorySearchEngine) -> None:
    engine.set_mode(st.session_state["search_mode"])
    st.session_state["keyword"] = ""


def _on_facet_change(engine: DirectorySearchEngine) -> None:
    engine.set_facet(st.session_state["facet"])
    engine.wait_until_settled()


def _on_radius_change(engine: DirectorySearchEngine) -> None:
    engine.set_radius(st.session_state["radius_km"])
    engine.wait_until_settled()


def _on_keyword_change(engine: DirectorySearchEngine) -> None:
    engine.set_keyword(st.session_state["keyword"])
    # Streamlit only reports the field once editing stops, so commit at once
    engine.flush_keyword()
    st.session_state["list_start"] = 0


def _on_location_search(engine: DirectorySearchEngine) -> None:
    text = st.session_state.get("location", "")
    is_valid, message = validate_location_input(text)
    if not is_valid:
        st.session_state["location_error"] = message
        return
    origin = geocode_place_with_feedback(text)
    if origin is None:
        st.session_state["location_error"] = f"Could not find '{text.strip()}'. Try a suburb name or postcode."
        return
    st.session_state.pop("location_error", None)
    st.session_state["list_start"] = 0
    engine.search_near(origin, st.session_state["radius_km"])
    if not engine.wait_until_settled():
        st.session_state["location_error"] = "Search is taking longer than expected. Please try again."


def _on_clear(engine: DirectorySearchEngine) -> None:
    engine.clear_search()
    st.session_state["list_start"] = 0
    st.session_state["keyword"] = ""
    st.session_state["location"] = ""
    st.session_state.pop("location_error", None)


def _on_zoom_change(surface: StreamlitMapSurface) -> None:
    surface.set_zoom(st.session_state["map_zoom"])


# --- rendering --------------------------------------------------------------


def render_sidebar(engine: DirectorySearchEngine) -> None:
    settings = engine.settings
    with st.sidebar:
        st.header("Find a service")
        st.radio(
            "Search by",
            options=[SearchMode.PROXIMITY.value, SearchMode.KEYWORD.value],
            format_func=lambda v: "Suburb or postcode" if v == SearchMode.PROXIMITY.value else "Service name",
            key="search_mode",
            on_change=_on_mode_change,
            args=(engine,),
        )
        st.radio(
            "Program type",
            options=[facet.value for facet in Facet],
            format_func=lambda v: Facet.parse(v).label,
            key="facet",
            horizontal=True,
            on_change=_on_facet_change,
            args=(engine,),
        )

        if engine.query.mode is SearchMode.PROXIMITY:
            st.selectbox(
                "Distance",
                options=list(settings.radius_options_km),
                format_func=lambda r: f"Within {r:g} km",
                key="radius_km",
                on_change=_on_radius_change,
                args=(engine,),
            )
            st.text_input("Suburb or postcode", key="location", placeholder="e.g. Parramatta or 2150")
            st.button("Search", type="primary", on_click=_on_location_search, args=(engine,))
            if st.session_state.get("location_error"):
                st.warning(st.session_state["location_error"])
        else:
            st.text_input(
                "Service name or address",
                key="keyword",
                placeholder="e.g. Heart Health",
                on_change=_on_keyword_change,
                args=(engine,),
            )

        st.button("Clear search", on_click=_on_clear, args=(engine,))


def _marker_frame(engine: DirectorySearchEngine) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    records = engine.marker_records()
    for marker in engine.markers():
        if marker.is_singleton:
            key = marker.record_keys[0]
            row = records.loc[key]
            rows.append(
                {
                    "lat": marker.center[0],
                    "lng": marker.center[1],
                    "label": hover_text(row),
                    "kind": row.get("Program Type") or "Unknown",
                    "size": 12,
                    "key": str(key),
                }
            )
        else:
            rows.append(
                {
                    "lat": marker.center[0],
                    "lng": marker.center[1],
                    "label": marker.title,
                    "kind": "Cluster",
                    "size": marker.tier.marker_size_px,
                    "key": "",
                }
            )
    return pd.DataFrame(rows, columns=["lat", "lng", "label", "kind", "size", "key"])


def render_map(engine: DirectorySearchEngine, surface: StreamlitMapSurface) -> None:
    markers = _marker_frame(engine)
    fig = px.scatter_map(
        markers,
        lat="lat",
        lon="lng",
        hover_name="label",
        color="kind",
        size="size",
        size_max=28,
        custom_data=["key"],
        color_discrete_map={"Public": "#1976d2", "Private": "#C8102E", "Cluster": "#555555"},
        map_style="open-street-map",
        height=surface.height_px,
    )
    fig.update_layout(
        map=dict(center=dict(lat=surface.center[0], lon=surface.center[1]), zoom=surface.zoom),
        margin=dict(l=0, r=0, t=0, b=0),
        showlegend=False,
    )
    event = st.plotly_chart(fig, config=PLOTLY_CONFIG, on_select="rerun", selection_mode="points", key="map")

    points = event.selection.points if event and event.selection else []
    signature = tuple(str(p.get("customdata")) for p in points)
    if points and signature != st.session_state.get("handled_map_selection"):
        st.session_state["handled_map_selection"] = signature
        key_text = (points[0].get("customdata") or [""])[0]
        if key_text:
            engine.select_from_map(int(key_text))
        else:
            # Cluster clicked: zoom towards it
            surface.pan_to((points[0]["lat"], points[0]["lon"]))
            surface.set_zoom(min(surface.zoom + 2, engine.cluster_options.max_zoom + 1))
        st.rerun()

    st.session_state["map_zoom"] = int(round(surface.zoom))
    st.slider("Zoom", min_value=3, max_value=18, key="map_zoom", on_change=_on_zoom_change, args=(surface,))


def render_detail(engine: DirectorySearchEngine) -> None:
    record = engine.selected_record
    if record is None:
        return
    fields = service_card_fields(record)
    with st.container(border=True):
        st.subheader(fields["name"])
        if fields["program_type"]:
            st.caption(fields["program_type"])
        st.write(f"📍 {fields['address']}")
        st.write(f"📞 {fields['phone']}")
        st.write(f"✉️ {fields['email']}")
        if fields["distance"]:
            st.write(fields["distance"])
        if fields["link"]:
            st.link_button("View service details", fields["link"])
        st.button("Close", on_click=engine.close_detail, key="close_detail")


def _page_list(delta: int) -> None:
    st.session_state["list_start"] = max(0, st.session_state.get("list_start", 0) + delta)


def render_list(engine: DirectorySearchEngine) -> None:
    message = engine.empty_state_message
    if message:
        st.info(message)

    summary = engine.window_summary()
    if engine.displayed_source != FALLBACK and summary.viewport_known:
        st.caption(summary.label)

    displayed = engine.displayed
    if displayed.empty:
        if not message:
            st.info("No services in the current map view. Zoom out or move the map to see more.")
        return

    # A marker click asks for its row; page the list so that row is rendered
    start = list_window_start(
        len(displayed),
        MAX_LIST_ROWS,
        current_start=st.session_state.get("list_start", 0),
        target_index=st.session_state.pop("scroll_to_index", None),
    )
    st.session_state["list_start"] = start
    page = displayed.index[start : start + MAX_LIST_ROWS]

    selected_index = engine.selection.index if engine.selection.source == engine.displayed_source else None
    for offset, key in enumerate(page):
        index = start + offset
        fields = service_card_fields(engine.record(key))
        with st.container(border=True):
            title = f"**{fields['name']}**"
            if index == selected_index:
                title = f"➡️ :red[{title}]"
            st.markdown(title)
            st.caption(" · ".join(v for v in (fields["program_type"], fields["distance"]) if v))
            st.write(fields["address"])
            st.button("Show on map", key=f"select_{key}", on_click=engine.select_from_list, args=(index,))

    if len(displayed) > MAX_LIST_ROWS:
        st.caption(f"Showing services {start + 1} to {start + len(page)} of {len(displayed)}")
        prev_col, next_col = st.columns(2)
        prev_col.button("Previous", disabled=start == 0, on_click=_page_list, args=(-MAX_LIST_ROWS,))
        next_col.button(
            "Next", disabled=start + MAX_LIST_ROWS >= len(displayed), on_click=_page_list, args=(MAX_LIST_ROWS,)
        )


def render_diagnostics(engine: DirectorySearchEngine) -> None:
    app_config = get_app_config()
    if not app_config["debug_mode"]:
        return
    with st.expander("Diagnostics"):
        quality = validate_directory_data(engine.dataset)
        st.json({k: v for k, v in quality.items() if k != "warnings"})
        for warning in quality["warnings"]:
            st.warning(warning)
        for component, issue in validate_configuration().items():
            st.warning(f"{component}: {issue}")
        summary = PerformanceTracker.get_performance_summary()
        if not summary.empty:
            st.dataframe(summary, hide_index=True)


def main() -> None:
    configure_logging()
    st.title("Cardiac Services Directory")

    directory_config = get_directory_config()
    try:
        dataset = load_directory_data(
            api_url=directory_config["api_url"],
            local_data_path=directory_config["local_data_path"],
            request_timeout=float(directory_config["request_timeout"]),
        )
    except (DirectoryDataError, FileNotFoundError) as e:
        logger.error(f"Failed to load directory data: {e}")
        handle_streamlit_error(e, "loading the directory")
        st.stop()

    engine = get_engine(dataset)
    surface: StreamlitMapSurface = st.session_state[SURFACE_KEY]

    st.session_state.setdefault("search_mode", engine.query.mode.value)
    st.session_state.setdefault("facet", engine.query.facet.value)
    st.session_state.setdefault("radius_km", engine.query.radius_km)

    engine.process_responses()
    render_sidebar(engine)

    map_col, list_col = st.columns([3, 2])
    with map_col:
        render_map(engine, surface)
    with list_col:
        render_detail(engine)
        render_list(engine)

    render_diagnostics(engine)


if __name__ == "__main__":
    main()
