"""
CPT Viewer - Streamlit UI for GEF / BRO-XML cone penetration tests.
"""
from __future__ import annotations

import logging

import pandas as pd
import streamlit as st

from cptview.config import PREVIEW_MAX_ROWS
from cptview.cpt_chart import CptChart
from cptview.loader import load_many
from cptview.plots_cpt import plot_cpt
from cptview.reporting import build_info_items, build_status_text, format_hover, preview_frame
from cptview.robertson import ROBERTSON_ZONES, distribution_to_frame, layers_to_frame

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="CPT Viewer", layout="wide")


def _store_hover(info) -> None:
    st.session_state["hover"] = info


def _chart_for(key: str, record) -> CptChart:
    """One CptChart per loaded sounding, kept across reruns so the viewport survives."""
    charts = st.session_state.setdefault("charts", {})
    if key not in charts:
        chart = CptChart(width=900, height=640)
        chart.on_hover = _store_hover
        chart.set_data(record.data, record.columns, record.layers)
        charts[key] = chart
    return charts[key]


def _legend_frame(record) -> pd.DataFrame:
    pct = {d.zone.zone: d.percentage for d in record.distribution}
    return pd.DataFrame([
        {"Zone": z.zone, "Soil type": z.name, "Share (%)": round(pct[z.zone], 1) if z.zone in pct else None}
        for z in ROBERTSON_ZONES
    ])


# Sidebar
st.sidebar.title("CPT Viewer")
uploaded = st.sidebar.file_uploader("Upload GEF / BRO-XML", type=["gef", "xml"], accept_multiple_files=True)
min_thickness = st.sidebar.number_input("Min. layer thickness (m)", value=0.2, min_value=0.0, step=0.05, format="%.2f")
restart = st.sidebar.button("Close all", type="primary")

if restart:
    for k in ("records", "errors", "charts", "hover", "files"):
        st.session_state.pop(k, None)

if uploaded:
    files = tuple((up.name, up.getvalue()) for up in uploaded)
    file_key = (tuple(name for name, _ in files), min_thickness)
    if st.session_state.get("files") != file_key:
        records, errors = load_many(files, min_thickness=min_thickness)
        st.session_state.records = records
        st.session_state.errors = errors
        st.session_state.files = file_key
        st.session_state.pop("charts", None)
        st.session_state.pop("hover", None)

for err in st.session_state.get("errors", []):
    st.error(f"Error: {err}")

records = st.session_state.get("records", [])
if not records:
    st.info("Upload one or more .gef or .xml CPT files to start.")
    st.stop()

labels = [f"{r.header.get('name') or r.file_name} ({r.file_name})" for r in records]
choice = st.sidebar.selectbox("Sounding", range(len(records)), format_func=lambda i: labels[i])
record = records[choice]
st.caption(build_status_text(records, record))

tab_chart, tab_plotly, tab_info, tab_table = st.tabs(["Chart", "Interactive", "Info", "Data"])

with tab_chart:
    chart = _chart_for(record.file_name or str(choice), record)
    c_in, c_out, c_fit, c_up, c_down = st.columns(5)
    if c_in.button("Zoom in"):
        chart.zoom_in()
    if c_out.button("Zoom out"):
        chart.zoom_out()
    if c_fit.button("Zoom to fit"):
        chart.zoom_fit()
    pan_px = chart.plot_height / 4
    x_mid = chart.width / 2
    for col, label, direction in ((c_up, "Pan up", 1), (c_down, "Pan down", -1)):
        if col.button(label):
            y0 = chart.plot_top + chart.plot_height / 2
            chart.pointer_down(x_mid, y0)
            chart.pointer_move(x_mid, y0 + direction * pan_px)
            chart.pointer_up()

    view_min, view_max = chart.visible_range
    probe = st.slider("Probe depth (m)", min_value=0.0, max_value=float(chart.full_extent[1]),
                      value=float(max(0.0, min(view_min + (view_max - view_min) / 2, chart.full_extent[1]))),
                      step=0.01)
    if view_min <= probe <= view_max:
        chart.pointer_move(x_mid, chart.depth_to_y(probe))
    else:
        chart.pointer_leave()

    side, main = st.columns([1, 4], vertical_alignment="top")
    with side:
        for name, value in format_hover(st.session_state.get("hover")).items():
            st.metric(name, value)
    with main:
        st.image(chart.to_png(), use_container_width=True)

with tab_plotly:
    st.plotly_chart(plot_cpt(record), use_container_width=True)

with tab_info:
    st.dataframe(pd.DataFrame(build_info_items(record), columns=["Field", "Value"]),
                 use_container_width=True, hide_index=True)
    st.subheader("Soil behaviour type")
    st.dataframe(_legend_frame(record), use_container_width=True, hide_index=True)
    layers_df = layers_to_frame(record.layers)
    st.dataframe(layers_df, use_container_width=True, hide_index=True)
    st.download_button("Download layers.csv", layers_df.to_csv(index=False).encode(),
                       f"{record.header.get('name', 'cpt')}_layers.csv", "text/csv")
    dist_df = distribution_to_frame(record.distribution)
    st.download_button("Download distribution.csv", dist_df.to_csv(index=False).encode(),
                       f"{record.header.get('name', 'cpt')}_distribution.csv", "text/csv")

with tab_table:
    st.dataframe(preview_frame(record), use_container_width=True, height=600)
    if len(record.data) > PREVIEW_MAX_ROWS:
        st.caption(f"... {len(record.data) - PREVIEW_MAX_ROWS} rows not shown")
