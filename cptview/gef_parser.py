"""
GEF Parser: parse .gef CPT files (header keywords up to #EOH, then data lines).
Tolerant of real-world variation: short lines are dropped, bad values become None.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from .config import DEFAULT_VERTICAL_DATUM, FORMATS, UNKNOWN_NAME
from .record import Column, FormatError, FormatRecord, derive_friction_ratio, parse_float

logger = logging.getLogger(__name__)

# GEF column type code -> (key, label, unit)
GEF_COLUMN_TYPES = {
    1: ("length", "Penetration length", "m"),
    2: ("qc", "Cone resistance", "MPa"),
    3: ("fs", "Local friction", "MPa"),
    4: ("rf", "Friction ratio", "%"),
    5: ("u1", "Pore pressure u1", "MPa"),
    6: ("u2", "Pore pressure u2", "MPa"),
    7: ("u3", "Pore pressure u3", "MPa"),
    8: ("inclination", "Inclination resultant", "deg"),
    9: ("incl_ns", "Inclination N-S", "deg"),
    10: ("incl_ew", "Inclination E-W", "deg"),
    11: ("depth", "Depth", "m NAP"),
    12: ("time", "Time", "s"),
    13: ("corrected_qc", "Corrected cone resistance", "MPa"),
    14: ("net_qc", "Net cone resistance", "MPa"),
    15: ("pore_ratio", "Pore ratio", "-"),
    20: ("speed", "Penetration speed", "mm/s"),
    21: ("temp", "Temperature", "°C"),
    23: ("electric_cond", "Electrical conductivity", "S/m"),
    39: ("friction_total", "Total friction", "kN"),
}

EOH_MARKERS = ("#EOH=", "#EOH")

_HEADER_RE = re.compile(r"^#(\w+)\s*=\s*(.*)")


@dataclass
class _HeaderState:
    """Everything collected while scanning the header block."""

    fields: dict[str, str] = field(default_factory=dict)
    # 0-based column index -> (unit, name, type code)
    column_info: dict[int, tuple[str, str, int | None]] = field(default_factory=dict)
    column_void: dict[int, float] = field(default_factory=dict)
    column_separator: str | None = None
    record_separator: str | None = None


def _to_int(text: str) -> int | None:
    try:
        return int(text.strip())
    except ValueError:
        return None


def _parse_header_line(state: _HeaderState, keyword: str, value: str) -> None:
    if keyword == "COLUMNINFO":
        parts = [p.strip() for p in value.split(",")]
        if len(parts) < 3:
            return
        idx = _to_int(parts[0])
        if idx is None or idx < 1:
            return
        type_code = _to_int(parts[3]) if len(parts) >= 4 else None
        state.column_info[idx - 1] = (parts[1], parts[2], type_code)
    elif keyword == "COLUMNSEPARATOR":
        state.column_separator = value
    elif keyword == "RECORDSEPARATOR":
        state.record_separator = value
    elif keyword == "COLUMNVOID":
        parts = [p.strip() for p in value.split(",")]
        if len(parts) < 2:
            return
        idx = _to_int(parts[0])
        void = parse_float(parts[1])
        if idx is not None and idx >= 1 and void is not None:
            state.column_void[idx - 1] = void
    else:
        state.fields[keyword] = value


def _build_column_map(state: _HeaderState) -> list[Column]:
    columns = []
    for idx in sorted(state.column_info):
        unit, name, type_code = state.column_info[idx]
        known = GEF_COLUMN_TYPES.get(type_code) if type_code else None
        if known:
            key, label, default_unit = known
        else:
            key, label, default_unit = f"col_{idx + 1}", name, ""
        columns.append(Column(
            key=key,
            label=label,
            unit=unit or default_unit,
            index=idx,
            type_code=type_code,
            void_value=state.column_void.get(idx),
        ))
    return columns


def _split_pattern(separator: str | None) -> re.Pattern:
    if separator:
        return re.compile(re.escape(separator))
    return re.compile(r"\s+")


def _parse_data(
    lines: list[str],
    start: int,
    state: _HeaderState,
    columns: list[Column],
) -> list[dict[str, float | None]]:
    splitter = _split_pattern(state.column_separator)
    record_sep = state.record_separator
    rows = []
    dropped = 0

    for raw_line in lines[start:]:
        line = raw_line.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        if record_sep and line.endswith(record_sep):
            line = line[: -len(record_sep)]

        parts = [p.strip() for p in splitter.split(line)]
        parts = [p for p in parts if p != ""]
        if len(parts) < len(columns):
            dropped += 1
            continue

        row: dict[str, float | None] = {}
        for col in columns:
            val = parse_float(parts[col.index]) if col.index < len(parts) else None
            if val is not None and col.void_value is not None and val == col.void_value:
                val = None
            row[col.key] = val
        rows.append(row)

    if dropped:
        logger.debug(f"Dropped {dropped} short data line(s)")
    return rows


def _compute_derived(rows: list[dict[str, float | None]], columns: list[Column]) -> None:
    keys = {c.key for c in columns}

    if "depth" not in keys and "length" in keys:
        for row in rows:
            length = row.get("length")
            row["depth"] = -length if length is not None else None
        columns.append(Column(key="depth", label="Depth (computed)", unit="m", computed=True))

    if "rf" not in keys and "qc" in keys and "fs" in keys:
        derive_friction_ratio(rows)
        columns.append(Column(key="rf", label="Friction ratio (computed)", unit="%", computed=True))


def _split_list(value: str) -> list[str]:
    return [p.strip() for p in value.split(",")]


def _extract_metadata(fields: dict[str, str]) -> dict[str, str]:
    meta: dict[str, str] = {}

    if fields.get("TESTID"):
        meta["test_id"] = fields["TESTID"]
    if fields.get("PROJECTID"):
        meta["project_id"] = fields["PROJECTID"]
    if fields.get("PROJECTNAME"):
        meta["project_name"] = fields["PROJECTNAME"]
    if fields.get("COMPANYID"):
        meta["company"] = fields["COMPANYID"]
    if fields.get("STARTDATE"):
        parts = _split_list(fields["STARTDATE"])
        if len(parts) >= 3:
            # GEF stores year, month, day
            meta["date"] = f"{parts[2].zfill(2)}-{parts[1].zfill(2)}-{parts[0]}"
    if fields.get("ZID"):
        parts = _split_list(fields["ZID"])
        meta["surface_level"] = (
            f"{parts[1]} m {DEFAULT_VERTICAL_DATUM}" if len(parts) >= 2 else fields["ZID"]
        )
    if fields.get("XYID"):
        parts = _split_list(fields["XYID"])
        if len(parts) >= 3:
            meta["coord_system"] = parts[0]
            meta["x"] = parts[1]
            meta["y"] = parts[2]
    if fields.get("MEASUREMENTVAR"):
        meta["measurement_var"] = fields["MEASUREMENTVAR"]
    if fields.get("GEFID"):
        meta["gef_version"] = fields["GEFID"]
    if fields.get("FILEOWNER"):
        meta["file_owner"] = fields["FILEOWNER"]

    meta["name"] = meta.get("test_id") or meta.get("project_id") or UNKNOWN_NAME
    return meta


def parse_gef_text(text: str) -> FormatRecord:
    """
    Parse GEF text into a FormatRecord.
    - Header: "#KEYWORD= value" lines up to "#EOH=" (or "#EOH")
    - COLUMNINFO/COLUMNVOID/COLUMNSEPARATOR/RECORDSEPARATOR drive the data layout
    - depth and rf are derived when the file does not carry them
    """
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    state = _HeaderState()
    data_start = -1

    for i, raw_line in enumerate(lines):
        line = raw_line.strip()
        if line in EOH_MARKERS:
            data_start = i + 1
            break
        m = _HEADER_RE.match(line)
        if not m:
            continue
        _parse_header_line(state, m.group(1).upper(), m.group(2).strip())

    if data_start == -1:
        raise FormatError("no header terminator (#EOH) found; not a valid GEF file")

    columns = _build_column_map(state)
    rows = _parse_data(lines, data_start, state, columns)
    _compute_derived(rows, columns)

    logger.debug(f"GEF: {len(columns)} columns, {len(rows)} rows")
    return FormatRecord(
        header=_extract_metadata(state.fields),
        columns=columns,
        data=rows,
        format=FORMATS[".gef"][0],
    )


def parse_gef_file(path: str | Path) -> FormatRecord:
    """Parse GEF file from path."""
    path = Path(path)
    text = path.read_text(encoding=FORMATS[".gef"][1], errors="replace")
    record = parse_gef_text(text)
    record.file_name = path.name
    return record
