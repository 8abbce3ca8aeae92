import streamlit as st

from radarloop.ui.tokens import FONTS, RADII, SPACING, palette


def build_css(map_style: str) -> str:
    colors = palette(map_style)
    return f"""
    .card {{
      background: {colors["surface"]};
      border: 1px solid {colors["border"]};
      border-radius: {RADII["md"]}px;
      padding: {SPACING["md"]}px;
      margin-bottom: {SPACING["sm"]}px;
      font-family: {FONTS["base"]};
      color: {colors["text"]};
    }}
    .section-title {{ font-weight: 600; margin-bottom: {SPACING["sm"]}px; }}
    .status-line {{ display: flex; justify-content: space-between; color: {colors["text2"]}; }}
    .metric-label {{ color: {colors["text2"]}; font-size: 0.85rem; }}
    .metric-value {{ font-size: 1.4rem; font-family: {FONTS["mono"]}; }}
    .metric-sub {{ color: {colors["text2"]}; font-size: 0.8rem; }}
    .radar-progress-track {{ height: 8px; background: {colors["progress_track"]}; }}
    .radar-progress-bar {{ height: 8px; background: {colors["progress_bar"]}; }}
    .radar-footer {{ font-family: {FONTS["base"]}; color: {colors["text2"]}; padding: 2px 8px; }}
    .radar-error {{ color: {colors["bad"]}; }}
    """


def apply_styles(map_style: str = "Light"):
    st.markdown(f"<style>{build_css(map_style)}</style>", unsafe_allow_html=True)
