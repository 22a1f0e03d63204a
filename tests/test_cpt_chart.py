"""Test CPT chart: axis helpers, depth transforms, pan/zoom viewport, hover, rendering."""
import math

import pytest
from matplotlib.colors import to_hex

from cptview.config import BUTTON_ZOOM_FACTOR, MIN_VIEW_SPAN, NARROW_PANEL_WIDTH, WHEEL_ZOOM_FACTOR
from cptview.cpt_chart import UNDERLAY_ALPHA, CptChart, grid_depths, nice_max, nice_step, vertical_divisions
from cptview.record import FormatRecord
from cptview.robertson import classify, classify_record


@pytest.fixture
def chart(sounding_rows):
    c = CptChart(width=900, height=600)
    c.set_data(sounding_rows, [])
    return c


@pytest.mark.parametrize("value", [0.003, 0.3, 1.0, 1.2, 7.0, 10.0, 23.4, 99.0, 101.0, 12345.0])
def test_nice_max_is_round_and_covers(value):
    m = nice_max(value)
    assert m >= value
    mantissa = m / 10 ** math.floor(math.log10(m) + 1e-12)
    assert any(math.isclose(mantissa, f) for f in (1, 1.5, 2, 3, 5, 10))


def test_nice_max_examples():
    assert nice_max(23.4) == 30
    assert nice_max(1.2) == 1.5
    assert nice_max(7) == 10
    assert nice_max(0) == 1
    assert nice_max(None) == 1


def test_nice_step():
    assert nice_step(1.375) == 2
    assert nice_step(0.25) == pytest.approx(0.5)
    assert nice_step(3) == 5


def test_grid_depths():
    assert grid_depths(0, 11) == [(0, True), (2, True), (4, True), (6, True), (8, True), (10, True)]
    assert grid_depths(0, 2) == [(0, True), (0.5, False), (1, True), (1.5, False), (2, True)]
    assert grid_depths(3, 3) == []


def test_vertical_divisions():
    assert vertical_divisions(60) == 2
    assert vertical_divisions(200) == 4
    assert vertical_divisions(1000) == 6


def test_set_data_extent_and_panels(chart):
    assert chart.full_extent == (0.0, 11.0)
    assert chart.visible_range == (0.0, 11.0)
    assert [p.key for p in chart.data.panels] == ["qc", "fs", "rf"]
    assert chart.panel("qc").axis_max == 15
    assert chart.panel("qc").width > chart.panel("fs").width


def test_u2_panel_only_with_values(sounding_rows):
    for i, row in enumerate(sounding_rows):
        row["u2"] = 0.01 * i
    c = CptChart()
    c.set_data(sounding_rows, [])
    assert [p.key for p in c.data.panels] == ["qc", "fs", "rf", "u2"]


def test_depth_transforms(chart):
    assert chart.depth_to_y(0.0) == chart.plot_top
    assert chart.depth_to_y(11.0) == pytest.approx(chart.plot_bottom)
    assert chart.y_to_depth(chart.depth_to_y(4.37)) == pytest.approx(4.37)


def test_value_to_x_is_linear_and_unclipped(chart):
    p = chart.panel("fs")
    assert chart.value_to_x(p, 0) == p.x0
    assert chart.value_to_x(p, p.axis_max) == pytest.approx(p.x0 + p.width)
    assert chart.value_to_x(p, p.axis_max * 2) > p.x0 + p.width


def test_zoom_buttons_around_centre(chart):
    chart.zoom_in()
    assert chart.viewport.span == pytest.approx(11.0 / BUTTON_ZOOM_FACTOR)
    assert sum(chart.visible_range) / 2 == pytest.approx(5.5)
    chart.zoom_out()
    assert chart.viewport.span == pytest.approx(11.0)


def test_min_span(chart):
    for _ in range(50):
        chart.zoom_in()
    assert chart.viewport.span == pytest.approx(MIN_VIEW_SPAN)


def test_wheel_keeps_pointer_depth(chart):
    x = chart.panel("qc").x0 + 10
    y = chart.plot_top + 0.3 * chart.plot_height
    before = chart.y_to_depth(y)
    chart.wheel(x, y, -1)
    assert chart.viewport.span == pytest.approx(11.0 / WHEEL_ZOOM_FACTOR)
    assert chart.y_to_depth(y) == pytest.approx(before)
    chart.wheel(x, y, 1)
    assert chart.viewport.span == pytest.approx(11.0)


def test_wheel_outside_plot_ignored(chart):
    chart.wheel(100, chart.plot_top - 10, -1)
    assert chart.visible_range == (0.0, 11.0)


def test_pan_uses_span_at_drag_start(chart):
    x = chart.panel("rf").x0 + 5
    chart.pointer_down(x, 300)
    chart.pointer_move(x, 300 + chart.plot_height / 4)
    assert chart.visible_range == pytest.approx((-2.75, 8.25))
    chart.pointer_move(x, 300 + chart.plot_height / 2)
    assert chart.visible_range == pytest.approx((-5.5, 5.5))
    chart.pointer_up()
    chart.pointer_move(x, 300)
    assert chart.visible_range == pytest.approx((-5.5, 5.5))


def test_right_button_does_not_pan(chart):
    chart.pointer_down(400, 300, button=2)
    chart.pointer_move(400, 400)
    assert chart.visible_range == (0.0, 11.0)


def test_zoom_fit_restores_full_extent(chart):
    x = chart.panel("qc").x0 + 10
    chart.zoom_in()
    chart.wheel(x, 200, -1)
    chart.pointer_down(x, 200)
    chart.pointer_move(x, 350)
    chart.pointer_up()
    chart.zoom_out()
    chart.zoom_fit()
    assert chart.visible_range == chart.full_extent


def test_hover_reports_nearest_sample(sounding_rows):
    seen = []
    c = CptChart(on_hover=seen.append)
    c.set_data(sounding_rows, [])
    c.pointer_move(c.panel("qc").x0 + 5, c.depth_to_y(2.04))
    info = seen[-1]
    assert info["depth"] == pytest.approx(2.0)
    assert info["qc"] == 1.0
    assert info["fs"] == 0.03
    assert info["zone"] == classify(1.0, sounding_rows[20]["rf"])
    assert c.viewport.hover_index == 20

    c.pointer_move(100, c.plot_top - 20)
    assert seen[-1] is None
    c.pointer_move(c.panel("qc").x0 + 5, c.depth_to_y(7.0))
    c.pointer_leave()
    assert seen[-1] is None
    assert c.viewport.hover_depth is None


def test_nearest_index_first_wins_on_tie():
    c = CptChart()
    c.set_data([{"depth": 1.0, "qc": 1.0}, {"depth": 2.0, "qc": 1.0}], [])
    assert c.nearest_index(1.5) == 0
    assert c.nearest_index(1.6) == 1


def test_segments_break_at_missing_values(chart, sounding_rows):
    sounding_rows[40]["qc"] = None
    sounding_rows[41]["qc"] = math.nan
    chart.set_data(sounding_rows, [])
    segments = chart.panel_segments(chart.panel("qc"))
    assert [len(s) for s in segments] == [40, 58]


def test_resize_before_data_and_zero_size(sounding_rows):
    c = CptChart()
    c.resize(0, 0)
    c.zoom_in()
    c.pointer_move(10, 10)
    c.set_data(sounding_rows, [])
    c.resize(640, 480)
    assert c.plot_bottom == 480 - 12
    assert c.to_png().startswith(b"\x89PNG")


def test_to_png(chart, sounding_rows):
    rec = classify_record(FormatRecord(data=sounding_rows))
    chart.set_data(rec.data, rec.columns, rec.layers)
    chart.pointer_move(chart.panel("qc").x0 + 5, 300)
    png = chart.to_png()
    assert png[:8] == b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def classified_chart(sounding_rows):
    rec = classify_record(FormatRecord(data=sounding_rows))
    c = CptChart(width=900, height=600)
    c.set_data(rec.data, rec.columns, rec.layers)
    return c


def _ax(c):
    return c.figure.axes[0]


def _tick_texts(c):
    return [t for t in _ax(c).texts if t.get_position()[1] == c.plot_top - 4]


def _hover_markers(c):
    return [l for l in _ax(c).lines if l.get_marker() == "o" and l.get_markersize() == 4]


def test_soil_strip_and_underlay(classified_chart):
    c = classified_chart
    layers = c.data.layers
    bands = [p for p in _ax(c).patches if p.get_zorder() == 1]
    assert [to_hex(p.get_facecolor()) for p in bands] == [l.zone.color.lower() for l in layers]
    assert all(p.get_x() == c.strip_x0 for p in bands)
    tints = [p for p in _ax(c).patches if p.get_alpha() == UNDERLAY_ALPHA]
    assert len(tints) == len(layers)
    assert all(p.get_x() == c.panel("qc").x0 for p in tints)


def test_layers_outside_view_not_drawn(classified_chart):
    c = classified_chart
    for _ in range(50):
        c.zoom_in()
    assert c.visible_range == pytest.approx((5.25, 5.75))
    bands = [p for p in _ax(c).patches if p.get_zorder() == 1]
    assert [to_hex(p.get_facecolor()) for p in bands] == [c.data.layers[1].zone.color.lower()]


def test_one_series_line_per_panel(classified_chart):
    c = classified_chart
    series = [l for l in _ax(c).lines if l.get_zorder() == 3]
    assert len(series) == len(c.data.panels)
    qc_line = series[0]
    assert qc_line.get_ydata()[0] == pytest.approx(c.depth_to_y(0.0))
    assert qc_line.get_xdata()[0] == pytest.approx(c.value_to_x(c.panel("qc"), 1.0))


def test_tick_labels_hidden_on_narrow_panels(classified_chart):
    c = classified_chart
    assert len(_tick_texts(c)) == 3 * len(c.data.panels)
    assert [t.get_text() for t in _tick_texts(c)][:3] == ["0", "7.5", "15"]

    c.resize(300, 400)
    wide = [p for p in c.data.panels if p.width >= NARROW_PANEL_WIDTH]
    assert [p.key for p in wide] == ["qc"]
    assert len(_tick_texts(c)) == 3

    c.resize(200, 400)
    assert all(p.width < NARROW_PANEL_WIDTH for p in c.data.panels)
    assert _tick_texts(c) == []


def test_crosshair_readout_and_markers(classified_chart):
    c = classified_chart
    assert _hover_markers(c) == []
    c.pointer_move(c.panel("qc").x0 + 5, c.depth_to_y(2.04))
    assert len(_hover_markers(c)) == len(c.data.panels)
    assert all(m.get_ydata()[0] == pytest.approx(c.depth_to_y(2.0)) for m in _hover_markers(c))
    assert len([l for l in _ax(c).lines if l.get_linestyle() == "--"]) == 1
    assert f"{c.viewport.hover_depth:.2f}" in [t.get_text() for t in _ax(c).texts]

    c.pointer_leave()
    assert _hover_markers(c) == []
    assert not [l for l in _ax(c).lines if l.get_linestyle() == "--"]


def test_zero_height_plot_ignores_pointer(sounding_rows):
    seen = []
    c = CptChart(height=56, on_hover=seen.append)
    c.set_data(sounding_rows, [])
    assert c.plot_height == 0
    c.pointer_move(300, c.plot_top)
    c.wheel(300, c.plot_top, -1)
    c.pointer_down(300, c.plot_top)
    assert seen == [None]
    assert c.visible_range == (0.0, 11.0)
    assert c.viewport.drag is None
