import os
from contextlib import closing

import streamlit as st
from streamlit_autorefresh import st_autorefresh

from radarloop.config_store import connect as config_connect
from radarloop.pages import frames as page_frames
from radarloop.pages import radar as page_radar
from radarloop.providers import PROVIDERS
from radarloop.radar_config import (
    PROVIDER_NAMES,
    RadarCardConfig,
    load_radar_config,
    normalize_config,
    save_radar_config,
)
from radarloop.radar_loop import LOCAL_TZ, RadarLoop
from radarloop.ui.apply_styles import apply_styles
from radarloop.ui.radar_view import LeafletMapSurface
from radarloop.ui.shell import NAV_OPTIONS, render_left_rail

DB_PATH = os.getenv("RADAR_DB_PATH", "data/radar.db")

st.set_page_config(page_title="Radar", layout="wide")

with closing(config_connect(DB_PATH)) as conn:
    config = load_radar_config(conn)

apply_styles(config.map_style)

# Navigation/page state; a ?page= link only picks the first page of a session.
if "page" not in st.session_state:
    try:
        query_page = st.query_params.get("page")
    except Exception:
        query_page = None
    st.session_state.page = query_page if query_page in NAV_OPTIONS else "radar"


def ensure_radar_loop(cfg: RadarCardConfig) -> RadarLoop:
    radar_loop = st.session_state.get("radar_loop")
    if radar_loop is None:
        surface = LeafletMapSurface()
        radar_loop = RadarLoop(cfg, surface, tz_name=LOCAL_TZ)
        radar_loop.mount()
        st.session_state.radar_loop = radar_loop
        st.session_state.radar_surface = surface
    elif radar_loop.config != cfg:
        radar_loop.reconfigure(cfg)
    return radar_loop


def render_settings_ui():
    st.markdown("<div class='section-title'>Radar settings</div>", unsafe_allow_html=True)
    with st.form("radar_settings"):
        provider = st.selectbox(
            "Radar source",
            PROVIDER_NAMES,
            index=PROVIDER_NAMES.index(config.provider),
            format_func=lambda name: PROVIDERS[name].label,
        )
        card_title = st.text_input("Title", value=config.card_title or "")
        hide_header = st.checkbox("Hide header", value=config.hide_header)
        map_style = st.selectbox("Map style", ["Light", "Dark"], index=0 if config.map_style == "Light" else 1)
        zoom_level = st.slider("Zoom level", 3, 10, config.zoom_level)
        center_latitude = st.number_input("Center latitude", -90.0, 90.0, float(config.center_latitude), format="%.4f")
        center_longitude = st.number_input("Center longitude", -180.0, 180.0, float(config.center_longitude), format="%.4f")
        frame_count = st.number_input("Frame count", 1, 24, config.frame_count)
        frame_delay = st.number_input("Frame delay (ms)", 100, 5000, config.frame_delay, step=50)
        restart_delay = st.number_input("Restart delay (ms)", 100, 10000, config.restart_delay, step=50)
        overlay_transparency = st.slider("Overlay transparency (%)", 0, 90, int(config.overlay_transparency), step=5)
        show_zoom = st.checkbox("Show zoom control", value=config.show_zoom)
        show_recenter = st.checkbox("Show recenter control", value=config.show_recenter)
        show_scale = st.checkbox("Show scale", value=config.show_scale)
        submitted = st.form_submit_button("Save")

    if submitted:
        updated = normalize_config(
            {
                "provider": provider,
                "card_title": card_title,
                "hide_header": hide_header,
                "map_style": map_style,
                "zoom_level": zoom_level,
                "center_latitude": center_latitude,
                "center_longitude": center_longitude,
                "frame_count": frame_count,
                "frame_delay": frame_delay,
                "restart_delay": restart_delay,
                "overlay_transparency": overlay_transparency,
                "show_zoom": show_zoom,
                "show_recenter": show_recenter,
                "show_scale": show_scale,
            }
        )
        with closing(config_connect(DB_PATH)) as conn:
            save_radar_config(conn, updated)
        st.rerun()


render_left_rail(st.session_state.page, render_settings_ui)

radar_loop = ensure_radar_loop(config)
radar_loop.pump()

# The map animates itself; rerun when the next radar poll is due.
st_autorefresh(interval=int(radar_loop.rerun_delay_ms()), key="radar_autorefresh")

ctx = {
    "radar_loop": radar_loop,
    "config": config,
    "surface": st.session_state.radar_surface,
}

if st.session_state.page == "frames":
    page_frames.render(ctx)
else:
    page_radar.render(ctx)
