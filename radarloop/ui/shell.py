import streamlit as st

NAV_OPTIONS = ["radar", "frames"]


def render_left_rail(page: str, render_settings):
    with st.sidebar:
        def fmt(opt):
            return opt.title()

        selection = st.radio(
            "Navigation",
            NAV_OPTIONS,
            index=NAV_OPTIONS.index(page) if page in NAV_OPTIONS else 0,
            format_func=fmt,
            label_visibility="collapsed",
        )
        st.session_state.page = selection

        render_settings()


def render_header_strip(content_html: str):
    st.markdown(f"<div class='header-strip'>{content_html}</div>", unsafe_allow_html=True)


def render_main_layout():
    main_col, right_col = st.columns([3, 1], gap="large")
    return main_col, right_col
