import html
from datetime import datetime
from zoneinfo import ZoneInfo

import streamlit as st
import streamlit.components.v1 as components

from radarloop.ui.components.cards import metric_card, status_card
from radarloop.ui.radar_view import MAP_HEIGHT_PX
from radarloop.ui.shell import render_header_strip, render_main_layout

# Progress bar and footer line under the map.
FOOTER_PX = 40


def fmt_next_poll(next_poll_ms, tz_name: str) -> str:
    if next_poll_ms is None:
        return "--"
    return datetime.fromtimestamp(next_poll_ms / 1000, tz=ZoneInfo(tz_name)).strftime("%H:%M:%S")


def render(ctx):
    radar_loop = ctx["radar_loop"]
    config = ctx["config"]
    surface = ctx["surface"]

    if not config.hide_header:
        title = config.card_title or "Radar"
        render_header_strip(f"<div class='section-title'>{html.escape(title)}</div>")

    status = radar_loop.status()
    main_col, right_col = render_main_layout()
    with main_col:
        map_html = surface.render_html(
            radar_loop.frame_labels(),
            config,
            provider_label=status["provider"],
            status_text=status["timestamp_label"],
        )
        components.html(map_html, height=MAP_HEIGHT_PX + FOOTER_PX)

    with right_col:
        metric_card("Frames", f"{status['frames']}/{status['capacity']}", subvalue=status["phase"].replace("_", " "))
        status_card(
            "Refresh",
            [
                ("Retries", str(status["retry_count"])),
                ("Next poll", fmt_next_poll(status["next_poll_ms"], radar_loop.tz_name)),
            ],
        )
        if status["last_error"]:
            st.markdown(
                f"<div class='radar-error'>{html.escape(status['last_error'])}</div>",
                unsafe_allow_html=True,
            )
