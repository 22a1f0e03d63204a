"""
CPT chart: depth-synchronised multi-panel plot of one sounding.

Drawn with matplotlib on a single axes laid out in pixel coordinates
(x to the right, y downwards), left to right:
  depth labels | soil strip | qc | fs | Rf | (u2)

Pan and zoom only change the viewport; plotted data and layers are untouched.
Interaction handlers take surface pixel coordinates and redraw synchronously,
so the chart can be driven by any event source (see connect() for matplotlib).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Callable

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.patches import Rectangle

from .config import (
    BUTTON_ZOOM_FACTOR,
    DEPTH_AXIS_WIDTH,
    DEPTH_HEADROOM,
    GRID_TARGET_STEPS,
    MARGIN_BOTTOM,
    MARGIN_RIGHT,
    MARGIN_TOP,
    MIN_VIEW_SPAN,
    NARROW_PANEL_WIDTH,
    OPTIONAL_PANELS,
    PANEL_GAP,
    PANEL_PARAMS,
    SOIL_STRIP_WIDTH,
    WHEEL_ZOOM_FACTOR,
)
from .robertson import Layer, classify, row_depth

logger = logging.getLogger(__name__)

NICE_FACTORS = (1, 1.5, 2, 3, 5, 10)
STEP_FACTORS = (1, 2, 5, 10)

GRID_MINOR = "#ececec"
GRID_MAJOR = "#c8c8c8"
FRAME_COLOR = "#888888"
TEXT_COLOR = "#333333"
CROSSHAIR_COLOR = "#555555"
UNDERLAY_ALPHA = 0.12


def nice_max(value: float | None) -> float:
    """Smallest 1/1.5/2/3/5/10 x 10^k that is >= value (1 for non-positive input)."""
    if value is None or not math.isfinite(value) or value <= 0:
        return 1.0
    base = 10.0 ** math.floor(math.log10(value))
    for f in NICE_FACTORS:
        if f * base >= value:
            return f * base
    return 10.0 * base * 10


def nice_step(raw: float) -> float:
    """Smallest 1/2/5/10 x 10^k that is >= raw."""
    if not math.isfinite(raw) or raw <= 0:
        return 1.0
    base = 10.0 ** math.floor(math.log10(raw))
    for f in STEP_FACTORS:
        if f * base >= raw:
            return f * base
    return 10.0 * base * 10


def grid_depths(view_min: float, view_max: float) -> list[tuple[float, bool]]:
    """Gridline depths inside the view as (depth, is_major); majors fall on whole metres."""
    span = view_max - view_min
    if span <= 0:
        return []
    step = nice_step(span / GRID_TARGET_STEPS)
    first = math.ceil(view_min / step) * step
    n = int(math.floor((view_max - first) / step + 1e-9))
    out = []
    for k in range(n + 1):
        d = round(first + k * step, 10)
        out.append((d, abs(d - round(d)) < 1e-9))
    return out


def vertical_divisions(width: float) -> int:
    return max(2, min(6, int(width // 50)))


@dataclass
class Panel:
    key: str
    label: str
    color: str
    weight: float
    axis_max: float = 1.0
    x0: float = 0.0
    width: float = 0.0


@dataclass
class PlotData:
    """Read-only plotted content, replaced as a whole by set_data()."""

    rows: list[dict[str, Any]]
    columns: list[Any]
    layers: list[Layer]
    depths: list[float | None]
    panels: list[Panel]
    depth_min: float = 0.0
    depth_max: float = 1.0


@dataclass
class PanAnchor:
    y: float
    view_min: float
    view_max: float
    span: float


@dataclass
class Viewport:
    view_min: float = 0.0
    view_max: float = 1.0
    hover_depth: float | None = None
    hover_index: int | None = None
    drag: PanAnchor | None = None

    @property
    def span(self) -> float:
        return self.view_max - self.view_min


def _has_values(rows: list[dict[str, Any]], key: str) -> bool:
    return any(r.get(key) is not None for r in rows)


def _is_value(v: Any) -> bool:
    return v is not None and not (isinstance(v, float) and math.isnan(v))


class CptChart:
    """Interactive depth plot for one sounding; owns its viewport exclusively."""

    def __init__(
        self,
        width: int = 900,
        height: int = 600,
        dpi: int = 100,
        figure: Figure | None = None,
        on_hover: Callable[[dict[str, Any] | None], None] | None = None,
    ):
        self.dpi = dpi
        self.on_hover = on_hover
        self.data: PlotData | None = None
        self.viewport = Viewport()
        self._cids: list[int] = []
        if figure is None:
            self.figure = Figure(figsize=(width / dpi, height / dpi), dpi=dpi)
            FigureCanvasAgg(self.figure)
            self._owns_figure = True
            self.width, self.height = int(width), int(height)
        else:
            self.figure = figure
            self._owns_figure = False
            self.width, self.height = self._measure()

    # --- geometry -----------------------------------------------------------

    def _measure(self) -> tuple[int, int]:
        w_in, h_in = self.figure.get_size_inches()
        return int(round(w_in * self.figure.dpi)), int(round(h_in * self.figure.dpi))

    @property
    def plot_top(self) -> float:
        return float(MARGIN_TOP)

    @property
    def plot_bottom(self) -> float:
        return float(self.height - MARGIN_BOTTOM)

    @property
    def plot_height(self) -> float:
        return self.plot_bottom - self.plot_top

    @property
    def strip_x0(self) -> float:
        return float(DEPTH_AXIS_WIDTH)

    @property
    def full_extent(self) -> tuple[float, float]:
        if self.data is None:
            return 0.0, 1.0
        return self.data.depth_min, self.data.depth_max

    @property
    def visible_range(self) -> tuple[float, float]:
        return self.viewport.view_min, self.viewport.view_max

    def _layout(self) -> None:
        if self.data is None:
            return
        panels = self.data.panels
        x = self.strip_x0 + SOIL_STRIP_WIDTH + PANEL_GAP
        available = self.width - x - MARGIN_RIGHT - PANEL_GAP * (len(panels) - 1)
        total_weight = sum(p.weight for p in panels) or 1.0
        for p in panels:
            p.x0 = x
            p.width = max(0.0, available * p.weight / total_weight)
            x += p.width + PANEL_GAP

    def depth_to_y(self, depth: float) -> float:
        vp = self.viewport
        return self.plot_top + (depth - vp.view_min) / vp.span * self.plot_height

    def y_to_depth(self, y: float) -> float:
        vp = self.viewport
        return vp.view_min + (y - self.plot_top) / self.plot_height * vp.span

    @staticmethod
    def value_to_x(panel: Panel, value: float) -> float:
        return panel.x0 + value / panel.axis_max * panel.width

    def panel(self, key: str) -> Panel | None:
        if self.data is None:
            return None
        return next((p for p in self.data.panels if p.key == key), None)

    def _in_plot(self, x: float, y: float) -> bool:
        if self.plot_height <= 0:
            return False
        return 0 <= x <= self.width and self.plot_top <= y <= self.plot_bottom

    # --- data ---------------------------------------------------------------

    def set_data(self, rows: list[dict[str, Any]], columns: list[Any], layers: list[Layer] | None = None) -> None:
        depths = [row_depth(r) for r in rows]
        valid = [d for d in depths if d is not None]
        depth_max = float(math.ceil(max(valid) + DEPTH_HEADROOM)) if valid else 1.0

        panels = []
        for key, (label, color, weight) in PANEL_PARAMS.items():
            if key in OPTIONAL_PANELS and not _has_values(rows, key):
                continue
            values = [r.get(key) for r in rows if _is_value(r.get(key))]
            panels.append(Panel(key, label, color, weight, axis_max=nice_max(max(values) if values else None)))

        self.data = PlotData(
            rows=rows,
            columns=columns,
            layers=list(layers or []),
            depths=depths,
            panels=panels,
            depth_min=0.0,
            depth_max=depth_max,
        )
        self.viewport = Viewport(view_min=0.0, view_max=depth_max)
        self._layout()
        logger.debug(f"Chart data: {len(rows)} rows, depth 0-{depth_max} m, panels {[p.key for p in panels]}")
        self.draw()

    def resize(self, width: int | None = None, height: int | None = None) -> None:
        if width is not None and height is not None:
            self.width, self.height = int(width), int(height)
            if self._owns_figure and self.width > 0 and self.height > 0:
                self.figure.set_size_inches(self.width / self.dpi, self.height / self.dpi)
        else:
            self.width, self.height = self._measure()
        self._layout()
        self.draw()

    # --- hit testing --------------------------------------------------------

    def nearest_index(self, depth: float) -> int | None:
        """Row index of the sample closest in depth; first one wins on ties."""
        if self.data is None:
            return None
        best, best_dist = None, math.inf
        for i, d in enumerate(self.data.depths):
            if d is None:
                continue
            dist = abs(d - depth)
            if dist < best_dist:
                best, best_dist = i, dist
        return best

    def hover_info(self, index: int) -> dict[str, Any]:
        row = self.data.rows[index]
        info: dict[str, Any] = {"depth": self.data.depths[index]}
        for p in self.data.panels:
            info[p.key] = row.get(p.key)
        info["zone"] = classify(row.get("qc"), row.get("rf"))
        return info

    def _emit(self, info: dict[str, Any] | None) -> None:
        if self.on_hover is not None:
            self.on_hover(info)

    # --- interaction --------------------------------------------------------

    def pointer_move(self, x: float, y: float) -> None:
        if self.data is None:
            return
        vp = self.viewport
        if vp.drag is not None:
            self._pan_to(y)
            return
        if not self._in_plot(x, y):
            self.pointer_leave()
            return
        vp.hover_depth = self.y_to_depth(y)
        vp.hover_index = self.nearest_index(vp.hover_depth)
        self.draw()
        self._emit(self.hover_info(vp.hover_index) if vp.hover_index is not None else None)

    def pointer_leave(self) -> None:
        vp = self.viewport
        vp.drag = None
        vp.hover_depth = None
        vp.hover_index = None
        self.draw()
        self._emit(None)

    def pointer_down(self, x: float, y: float, button: int = 0) -> None:
        if self.data is None or button != 0 or not self._in_plot(x, y):
            return
        vp = self.viewport
        vp.drag = PanAnchor(y=y, view_min=vp.view_min, view_max=vp.view_max, span=vp.span)

    def pointer_up(self) -> None:
        self.viewport.drag = None

    def _pan_to(self, y: float) -> None:
        vp = self.viewport
        anchor = vp.drag
        delta = (y - anchor.y) / self.plot_height * anchor.span
        vp.view_min = anchor.view_min - delta
        vp.view_max = anchor.view_max - delta
        self.draw()

    def wheel(self, x: float, y: float, delta: float) -> None:
        """delta > 0 zooms out, delta < 0 zooms in, anchored at the pointer depth."""
        if self.data is None or delta == 0 or not self._in_plot(x, y):
            return
        factor = WHEEL_ZOOM_FACTOR if delta > 0 else 1 / WHEEL_ZOOM_FACTOR
        self._zoom_around(self.y_to_depth(y), factor)

    def _zoom_around(self, anchor: float, factor: float) -> None:
        vp = self.viewport
        span = vp.span
        new_span = max(span * factor, MIN_VIEW_SPAN)
        vp.view_min = anchor - (anchor - vp.view_min) * new_span / span
        vp.view_max = vp.view_min + new_span
        self.draw()

    def zoom_in(self) -> None:
        if self.data is None:
            return
        vp = self.viewport
        self._zoom_around((vp.view_min + vp.view_max) / 2, 1 / BUTTON_ZOOM_FACTOR)

    def zoom_out(self) -> None:
        if self.data is None:
            return
        vp = self.viewport
        self._zoom_around((vp.view_min + vp.view_max) / 2, BUTTON_ZOOM_FACTOR)

    def zoom_fit(self) -> None:
        if self.data is None:
            return
        self.viewport.view_min, self.viewport.view_max = self.full_extent
        self.draw()

    def connect(self, canvas=None) -> None:
        """Drive the chart from matplotlib canvas events (interactive backends)."""
        canvas = canvas or self.figure.canvas

        def _xy(event):
            return event.x, self.height - event.y

        def _move(event):
            self.pointer_move(*_xy(event))

        def _press(event):
            self.pointer_down(*_xy(event), button=int(event.button) - 1)

        def _scroll(event):
            self.wheel(*_xy(event), -event.step)

        self._cids = [
            canvas.mpl_connect("motion_notify_event", _move),
            canvas.mpl_connect("figure_leave_event", lambda e: self.pointer_leave()),
            canvas.mpl_connect("button_press_event", _press),
            canvas.mpl_connect("button_release_event", lambda e: self.pointer_up()),
            canvas.mpl_connect("scroll_event", _scroll),
            canvas.mpl_connect("resize_event", lambda e: self.resize()),
        ]

    def disconnect(self) -> None:
        for cid in self._cids:
            self.figure.canvas.mpl_disconnect(cid)
        self._cids = []

    # --- drawing ------------------------------------------------------------

    def panel_segments(self, panel: Panel) -> list[list[tuple[float, float]]]:
        """Pixel polylines for one panel, split wherever a value or depth is missing."""
        segments: list[list[tuple[float, float]]] = []
        current: list[tuple[float, float]] = []
        for row, depth in zip(self.data.rows, self.data.depths):
            value = row.get(panel.key)
            if depth is None or not _is_value(value):
                if current:
                    segments.append(current)
                    current = []
                continue
            current.append((self.value_to_x(panel, value), self.depth_to_y(depth)))
        if current:
            segments.append(current)
        return segments

    def draw(self) -> None:
        if self.data is None:
            return
        if self.width <= 0 or self.height <= 0 or self.plot_height <= 0:
            return

        fig = self.figure
        fig.clear()
        ax = fig.add_axes([0, 0, 1, 1])
        ax.set_xlim(0, self.width)
        ax.set_ylim(self.height, 0)
        ax.axis("off")

        self._draw_soil(ax)
        self._draw_grid(ax)
        self._draw_series(ax)
        self._draw_crosshair(ax)

        if self._cids:
            fig.canvas.draw_idle()

    def _clip_rect(self, ax, x0: float, width: float, frame: bool = True) -> Rectangle:
        rect = Rectangle((x0, self.plot_top), width, self.plot_height, fill=False,
                         edgecolor=FRAME_COLOR if frame else "none", linewidth=0.6, zorder=5)
        ax.add_patch(rect)
        return rect

    def _draw_soil(self, ax) -> None:
        strip = self._clip_rect(ax, self.strip_x0, SOIL_STRIP_WIDTH)
        first = self.data.panels[0] if self.data.panels else None
        under = self._clip_rect(ax, first.x0, first.width, frame=False) if first else None

        for layer in self.data.layers:
            y0 = self.depth_to_y(layer.start_depth)
            y1 = self.depth_to_y(layer.end_depth)
            if y1 < self.plot_top or y0 > self.plot_bottom:
                continue
            band = Rectangle((self.strip_x0, y0), SOIL_STRIP_WIDTH, y1 - y0,
                             facecolor=layer.zone.color, edgecolor="none", zorder=1)
            ax.add_patch(band)
            band.set_clip_path(strip)
            if under is not None:
                tint = Rectangle((first.x0, y0), first.width, y1 - y0,
                                 facecolor=layer.zone.color, edgecolor="none",
                                 alpha=UNDERLAY_ALPHA, zorder=0)
                ax.add_patch(tint)
                tint.set_clip_path(under)

        ax.text(self.strip_x0 + SOIL_STRIP_WIDTH / 2, self.plot_top - 6, "SBT",
                fontsize=7, ha="center", va="bottom", color=TEXT_COLOR)

    def _draw_grid(self, ax) -> None:
        vp = self.viewport
        x_left = self.strip_x0 + SOIL_STRIP_WIDTH
        x_right = self.width - MARGIN_RIGHT
        step = nice_step(vp.span / GRID_TARGET_STEPS)
        decimals = max(0, -int(math.floor(math.log10(step))))

        for depth, major in grid_depths(vp.view_min, vp.view_max):
            y = self.depth_to_y(depth)
            ax.plot([x_left, x_right], [y, y], color=GRID_MAJOR if major else GRID_MINOR,
                    linewidth=0.8 if major else 0.5, zorder=0.5)
            ax.text(self.strip_x0 - 6, y, f"{depth:.{decimals}f}", fontsize=7,
                    ha="right", va="center", color=TEXT_COLOR,
                    fontweight="bold" if major else "normal")

        ax.text(self.strip_x0 / 2, self.plot_top - 6, "m", fontsize=7,
                ha="center", va="bottom", color=TEXT_COLOR)

        for p in self.data.panels:
            self._clip_rect(ax, p.x0, p.width)
            n = vertical_divisions(p.width)
            for i in range(1, n):
                x = p.x0 + p.width * i / n
                ax.plot([x, x], [self.plot_top, self.plot_bottom], color=GRID_MINOR,
                        linewidth=0.5, zorder=0.5)

            ax.text(p.x0 + p.width / 2, 4, p.label, fontsize=8, ha="center", va="top",
                    color=p.color, fontweight="bold")
            if p.width < NARROW_PANEL_WIDTH:
                continue
            for frac, ha in ((0.0, "left"), (0.5, "center"), (1.0, "right")):
                ax.text(p.x0 + p.width * frac, self.plot_top - 4, f"{p.axis_max * frac:g}",
                        fontsize=6.5, ha=ha, va="bottom", color=TEXT_COLOR)

    def _draw_series(self, ax) -> None:
        for p in self.data.panels:
            clip = self._clip_rect(ax, p.x0, p.width, frame=False)
            for seg in self.panel_segments(p):
                xs = [pt[0] for pt in seg]
                ys = [pt[1] for pt in seg]
                if len(seg) == 1:
                    (line,) = ax.plot(xs, ys, linestyle="none", marker="o", markersize=1.5,
                                      color=p.color, zorder=3)
                else:
                    (line,) = ax.plot(xs, ys, color=p.color, linewidth=1.0, zorder=3)
                line.set_clip_path(clip)

    def _draw_crosshair(self, ax) -> None:
        vp = self.viewport
        if vp.hover_depth is None:
            return
        y = self.depth_to_y(vp.hover_depth)
        ax.plot([self.strip_x0, self.width - MARGIN_RIGHT], [y, y], color=CROSSHAIR_COLOR,
                linewidth=0.7, linestyle="--", zorder=6)
        ax.text(self.strip_x0 - 3, y, f"{vp.hover_depth:.2f}", fontsize=7, ha="right",
                va="center", color="white", zorder=7,
                bbox=dict(boxstyle="round,pad=0.2", facecolor=CROSSHAIR_COLOR, edgecolor="none"))

        if vp.hover_index is None:
            return
        row = self.data.rows[vp.hover_index]
        y_s = self.depth_to_y(self.data.depths[vp.hover_index])
        for p in self.data.panels:
            value = row.get(p.key)
            if not _is_value(value):
                continue
            ax.plot([self.value_to_x(p, value)], [y_s], marker="o", markersize=4,
                    color=p.color, markeredgecolor="white", zorder=7)

    def to_png(self) -> bytes:
        """Render the current view to PNG bytes."""
        buf = BytesIO()
        self.figure.savefig(buf, format="png", dpi=self.dpi, facecolor="white")
        buf.seek(0)
        return buf.read()
