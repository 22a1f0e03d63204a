"""
Display summaries: info panel items, status line, hover readout, table preview.
"""
from __future__ import annotations

from typing import Any

import pandas as pd

from .config import PREVIEW_COLUMNS, PREVIEW_MAX_ROWS
from .record import FormatRecord

EMPTY = "—"

# (header key, label)
_INFO_FIELDS = [
    ("test_id", "Sounding"),
    ("project_id", "Project ID"),
    ("project_name", "Project name"),
    ("company", "Company"),
    ("quality_regime", "Quality regime"),
    ("quality_class", "Quality class"),
    ("cpt_standard", "Standard"),
    ("date", "Date"),
    ("surface_level", "Surface level"),
]


def build_info_items(record: FormatRecord) -> list[tuple[str, str]]:
    """Ordered (label, value) pairs for the sounding info panel; absent fields are left out."""
    meta = record.header
    items = []
    if record.format:
        items.append(("Format", record.format))
    for key, label in _INFO_FIELDS:
        if meta.get(key):
            items.append((label, meta[key]))
    if meta.get("x") and meta.get("y"):
        items.append(("RD", f"{meta['x']}, {meta['y']}"))
    if meta.get("lat") and meta.get("lon"):
        items.append(("WGS84", f"{meta['lat']}, {meta['lon']}"))
    if meta.get("final_depth"):
        items.append(("Final depth", f"{meta['final_depth']} m"))
    items.append(("Samples", str(len(record.data))))
    return items


def _fmt(value: Any, fmt: str, suffix: str) -> str:
    return f"{value:{fmt}}{suffix}" if value is not None else EMPTY


def format_hover(info: dict[str, Any] | None) -> dict[str, str]:
    """Status bar strings for a chart hover event (dashes when nothing is hovered)."""
    if not info:
        return {k: EMPTY for k in ("depth", "qc", "fs", "rf", "soil")}
    zone = info.get("zone")
    return {
        "depth": _fmt(info.get("depth"), ".2f", " m"),
        "qc": _fmt(info.get("qc"), ".3f", " MPa"),
        "fs": _fmt(info.get("fs"), ".4f", " MPa"),
        "rf": _fmt(info.get("rf"), ".1f", " %"),
        "soil": zone.name if zone else EMPTY,
    }


def build_status_text(records: list[FormatRecord], active: FormatRecord | None = None) -> str:
    """'<name> | <n> sounding(s) | <max depth> m' for the active record."""
    if not records:
        return "No data loaded"
    active = active or records[-1]
    n = len(records)
    name = active.header.get("name") or active.file_name
    return f"{name} | {n} sounding{'s' if n > 1 else ''} | {active.max_depth():.1f} m"


def preview_frame(record: FormatRecord, max_rows: int = PREVIEW_MAX_ROWS) -> pd.DataFrame:
    """Leading rows of the main measurement columns for the table view."""
    keys = [c.key for c in record.columns if c.key in PREVIEW_COLUMNS]
    frame = record.to_frame()
    return frame[keys].head(max_rows)
