"""
CPT plot for the browser: Plotly subplots sharing a reversed depth axis.
Soil-type strip on the left, one subplot per tracked parameter.
"""
from __future__ import annotations

import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .config import OPTIONAL_PANELS, PANEL_PARAMS
from .cpt_chart import nice_max
from .record import FormatRecord
from .robertson import ROBERTSON_ZONES, row_depth

STRIP_WEIGHT = 0.35


def _tracked_keys(record: FormatRecord) -> list[str]:
    keys = []
    for key in PANEL_PARAMS:
        if key in OPTIONAL_PANELS and not any(r.get(key) is not None for r in record.data):
            continue
        keys.append(key)
    return keys


def plot_cpt(record: FormatRecord, height: int = 800) -> go.Figure:
    """Build the interactive CPT figure for one classified record."""
    keys = _tracked_keys(record)
    weights = [STRIP_WEIGHT] + [PANEL_PARAMS[k][2] for k in keys]
    fig = make_subplots(
        rows=1,
        cols=1 + len(keys),
        shared_yaxes=True,
        horizontal_spacing=0.015,
        column_widths=weights,
    )

    depths = [row_depth(r) for r in record.data]

    # Soil strip: one rectangle per layer in the first subplot
    for layer in record.layers:
        fig.add_shape(
            type="rect",
            x0=0, x1=1, y0=layer.start_depth, y1=layer.end_depth,
            fillcolor=layer.zone.color,
            line=dict(width=0),
            row=1, col=1,
        )
    fig.update_xaxes(range=[0, 1], showticklabels=False, showgrid=False,
                     title_text="SBT", row=1, col=1)

    for idx, key in enumerate(keys, start=2):
        label, color, _weight = PANEL_PARAMS[key]
        # None keeps gaps in the line instead of bridging them
        xs = [r.get(key) if d is not None else None for r, d in zip(record.data, depths)]
        values = [v for v in xs if v is not None]
        fig.add_trace(go.Scatter(
            x=xs, y=depths,
            mode="lines",
            line=dict(color=color, width=1.2),
            connectgaps=False,
            name=label,
            hovertemplate=f"{label}: %{{x:.3f}}<br>depth %{{y:.2f}} m<extra></extra>",
        ), row=1, col=idx)
        fig.update_xaxes(range=[0, nice_max(max(values) if values else None)],
                         title_text=label, side="top", row=1, col=idx)

    # Legend entries for the zones present
    present = {d.zone.zone for d in record.distribution}
    for zone in ROBERTSON_ZONES:
        if zone.zone not in present:
            continue
        fig.add_trace(go.Scatter(
            x=[None], y=[None],
            mode="markers",
            marker=dict(size=10, color=zone.color, symbol="square"),
            name=f"{zone.zone}. {zone.name}",
            legendgroup="soil",
        ), row=1, col=1)

    max_depth = max([d for d in depths if d is not None], default=1.0)
    fig.update_yaxes(title_text="Depth (m)", autorange=False, range=[max_depth, 0],
                     gridcolor="rgba(0,0,0,0.1)", row=1, col=1)
    fig.update_layout(
        template="plotly_white",
        title=dict(text=record.header.get("name", ""), font=dict(size=14)),
        height=height,
        hovermode="y unified",
        dragmode="pan",
        legend=dict(title=dict(text="Soil behaviour type"), font=dict(size=9)),
        margin=dict(l=60, r=20, t=80, b=30),
    )
    return fig
