from collections import deque

import pandas as pd
import streamlit as st

from radarloop.grid import tile_at
from radarloop.radar_log import LOG_PATH
from radarloop.ui.components.cards import status_card


def frame_table(window, tz_name: str = "UTC") -> pd.DataFrame:
    rows = []
    if window is not None:
        for idx, frame in enumerate(window):
            rows.append(
                {
                    "index": idx,
                    "id": frame.id,
                    "time": frame.timestamp,
                    "source": frame.source_ref,
                    "visible": idx == window.visible_index,
                }
            )
    df = pd.DataFrame(rows, columns=["index", "id", "time", "source", "visible"])
    if not df.empty:
        df["time"] = pd.to_datetime(df["time"], utc=True).dt.tz_convert(tz_name)
    return df


def layer_table(radar_loop, surface) -> pd.DataFrame:
    """Overlay layers on the map, with what each one draws under the map centre."""
    config = radar_loop.config
    centre = tile_at(config.center_latitude, config.center_longitude, config.zoom_level)
    rows = []
    for handle, layer in surface.layers.items():
        composite = None
        if radar_loop.adapter is not None:
            composite = radar_loop.adapter.create_tile(layer.layer_id, centre, lambda tile: None)
        images = composite.images if composite is not None else []
        rows.append(
            {
                "handle": handle,
                "frame": layer.layer_id,
                "opacity": round(layer.opacity, 2),
                "centre_images": len(images),
                "centre_url": images[0].url if images else "",
            }
        )
    return pd.DataFrame(rows, columns=["handle", "frame", "opacity", "centre_images", "centre_url"])


def tail_log(limit: int = 50) -> list[str]:
    if not LOG_PATH.exists():
        return []
    with LOG_PATH.open("r", encoding="utf-8", errors="replace") as f:
        return list(deque(f, maxlen=limit))


def render(ctx):
    radar_loop = ctx["radar_loop"]
    surface = ctx["surface"]

    st.markdown("<div class='section-title'>Frames</div>", unsafe_allow_html=True)
    section = st.radio(
        "Frame sections",
        ["Window", "Layers", "Log"],
        horizontal=True,
        label_visibility="collapsed",
    )

    if section == "Window":
        df = frame_table(radar_loop.window, radar_loop.tz_name)
        if df.empty:
            st.info("No radar frames loaded yet.")
            return
        st.dataframe(df, use_container_width=True)
        return

    if section == "Layers":
        df = layer_table(radar_loop, surface)
        if df.empty:
            st.info("No overlay layers on the map.")
            return
        st.dataframe(df, use_container_width=True)
        return

    status = radar_loop.status()
    status_card(
        "Status",
        [
            ("Provider", status["provider"]),
            ("Playback", status["phase"]),
            ("Retries", str(status["retry_count"])),
            ("Last error", status["last_error"] or "--"),
        ],
    )
    lines = tail_log()
    if lines:
        st.code("".join(lines), language="text")
    else:
        st.info("Log is empty.")
