"""
Settings shared by the parsers, classifier, chart renderer and UI.
"""
from __future__ import annotations

# File intake: extension -> (format tag, charset)
FORMATS = {
    ".gef": ("GEF", "iso-8859-1"),
    ".xml": ("BRO-XML", "utf-8"),
}

UNKNOWN_NAME = "unknown"
DEFAULT_VERTICAL_DATUM = "NAP"

# Robertson layer merging
MIN_LAYER_THICKNESS = 0.2

# Viewport navigation
WHEEL_ZOOM_FACTOR = 1.12
BUTTON_ZOOM_FACTOR = 1.3
MIN_VIEW_SPAN = 0.5
DEPTH_HEADROOM = 0.5
GRID_TARGET_STEPS = 8

# Chart layout (pixels)
DEPTH_AXIS_WIDTH = 52
SOIL_STRIP_WIDTH = 26
PANEL_GAP = 6
MARGIN_TOP = 44
MARGIN_BOTTOM = 12
MARGIN_RIGHT = 10
NARROW_PANEL_WIDTH = 70

# Tracked parameters: key -> (label, colour, width weight)
PANEL_PARAMS = {
    "qc": ("qc (MPa)", "#E53935", 2.0),
    "fs": ("fs (MPa)", "#1E88E5", 1.0),
    "rf": ("Rf (%)", "#43A047", 1.0),
    "u2": ("u2 (MPa)", "#8E24AA", 1.0),
}
# Shown only when the sounding has values for them
OPTIONAL_PANELS = {"u2"}

PREVIEW_COLUMNS = ["length", "depth", "qc", "fs", "rf"]
PREVIEW_MAX_ROWS = 300
