import html

import streamlit as st


def metric_card(label: str, value: str, subvalue: str | None = None):
    sub_html = f"<div class=\"metric-sub\">{html.escape(subvalue)}</div>" if subvalue else ""
    st.markdown(
        f"""
        <div class="card metric-card">
          <div class="metric-body">
            <div class="metric-label">{html.escape(label)}</div>
            <div class="metric-value">{html.escape(value)}</div>
            {sub_html}
          </div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def status_card(title: str, items: list[tuple[str, str]]):
    lines = "".join(
        f"<div class=\"status-line\"><span>{html.escape(label)}</span><span>{html.escape(value)}</span></div>"
        for label, value in items
    )
    st.markdown(
        f"""
        <div class="card status-card">
          <div class="section-title">{html.escape(title)}</div>
          {lines}
        </div>
        """,
        unsafe_allow_html=True,
    )
