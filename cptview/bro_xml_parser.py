"""
BRO XML Parser: parse BRO CPT (CPT_O / CPT_O_DP) XML documents.

Measurement values use a fixed 25-column order, with -999999 as the void value.
Elements are matched by local name so any namespace prefix is accepted.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import NamedTuple

from .config import DEFAULT_VERTICAL_DATUM, FORMATS, UNKNOWN_NAME
from .record import Column, FormatError, FormatRecord, derive_friction_ratio, parse_float

logger = logging.getLogger(__name__)


class BroColumn(NamedTuple):
    key: str
    label: str
    unit: str
    param_tag: str


BRO_COLUMN_ORDER = (
    BroColumn("length", "Penetration length", "m", "penetrationLength"),
    BroColumn("depth", "Depth", "m", "depth"),
    BroColumn("elapsed_time", "Elapsed time", "s", "elapsedTime"),
    BroColumn("qc", "Cone resistance", "MPa", "coneResistance"),
    BroColumn("corrected_qc", "Corrected cone resistance", "MPa", "correctedConeResistance"),
    BroColumn("net_qc", "Net cone resistance", "MPa", "netConeResistance"),
    BroColumn("mag_x", "Magnetic field X", "nT", "magneticFieldStrengthX"),
    BroColumn("mag_y", "Magnetic field Y", "nT", "magneticFieldStrengthY"),
    BroColumn("mag_z", "Magnetic field Z", "nT", "magneticFieldStrengthZ"),
    BroColumn("mag_total", "Magnetic field total", "nT", "magneticFieldStrengthTotal"),
    BroColumn("electric_cond", "Electrical conductivity", "S/m", "electricalConductivity"),
    BroColumn("incl_ew", "Inclination E-W", "deg", "inclinationEW"),
    BroColumn("incl_ns", "Inclination N-S", "deg", "inclinationNS"),
    BroColumn("incl_x", "Inclination X", "deg", "inclinationX"),
    BroColumn("incl_y", "Inclination Y", "deg", "inclinationY"),
    BroColumn("inclination", "Inclination resultant", "deg", "inclinationResultant"),
    BroColumn("mag_inclination", "Magnetic inclination", "deg", "magneticInclination"),
    BroColumn("mag_declination", "Magnetic declination", "deg", "magneticDeclination"),
    BroColumn("fs", "Local friction", "MPa", "localFriction"),
    BroColumn("pore_ratio", "Pore ratio", "-", "poreRatio"),
    BroColumn("temp", "Temperature", "°C", "temperature"),
    BroColumn("u1", "Pore pressure u1", "MPa", "porePressureU1"),
    BroColumn("u2", "Pore pressure u2", "MPa", "porePressureU2"),
    BroColumn("u3", "Pore pressure u3", "MPa", "porePressureU3"),
    BroColumn("rf", "Friction ratio", "%", "frictionRatio"),
)
N_COLUMNS = len(BRO_COLUMN_ORDER)

BRO_VOID_VALUE = -999999.0
CPT_ROOT_TAGS = ("CPT_O", "CPT_O_DP")
ACTIVE_FLAG = "ja"
DEFAULT_TOKEN_SEPARATOR = ","
DEFAULT_BLOCK_SEPARATOR = ";"


def _local(tag: str) -> str:
    """'{namespace}name' -> 'name'."""
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _find(parent: ET.Element, local_name: str) -> ET.Element | None:
    """First descendant (document order, parent excluded) with this local name."""
    for el in parent.iter():
        if el is not parent and _local(el.tag) == local_name:
            return el
    return None


def _text(el: ET.Element) -> str:
    return "".join(el.itertext()).strip()


def _get_text(parent: ET.Element, local_name: str) -> str | None:
    el = _find(parent, local_name)
    return _text(el) if el is not None else None


def _find_cpt_object(root: ET.Element) -> ET.Element | None:
    for el in root.iter():
        if _local(el.tag) in CPT_ROOT_TAGS:
            return el
    return None


def _extract_metadata(cpt: ET.Element) -> dict[str, str]:
    meta: dict[str, str] = {}

    def _put(key: str, value: str | None) -> None:
        if value:
            meta[key] = value

    _put("test_id", _get_text(cpt, "broId"))
    _put("quality_regime", _get_text(cpt, "qualityRegime"))

    report_date = _find(cpt, "researchReportDate")
    if report_date is not None:
        _put("date", _get_text(report_date, "date"))

    _put("cpt_standard", _get_text(cpt, "cptStandard"))

    std_loc = _find(cpt, "standardizedLocation")
    if std_loc is not None:
        pos = (_get_text(std_loc, "pos") or "").split()
        if len(pos) >= 2:
            meta["lat"], meta["lon"] = pos[0], pos[1]

    del_loc = _find(cpt, "deliveredLocation")
    if del_loc is not None:
        pos = (_get_text(del_loc, "pos") or "").split()
        if len(pos) >= 2:
            meta["x"], meta["y"] = pos[0], pos[1]

    vert = _find(cpt, "deliveredVerticalPosition")
    if vert is not None:
        offset = _get_text(vert, "offset")
        datum = _get_text(vert, "verticalDatum") or DEFAULT_VERTICAL_DATUM
        if offset:
            meta["surface_level"] = f"{offset} m {datum}"

    trajectory = _find(cpt, "trajectory")
    if trajectory is not None:
        _put("predrilled_depth", _get_text(trajectory, "predrilledDepth"))
        _put("final_depth", _get_text(trajectory, "finalDepth"))

    survey = _find(cpt, "conePenetrometerSurvey")
    if survey is not None:
        _put("quality_class", _get_text(survey, "qualityClass"))
        _put("cpt_method", _get_text(survey, "cptMethod"))

    _put("company", _get_text(cpt, "deliveryAccountableParty"))

    meta["name"] = meta.get("test_id") or UNKNOWN_NAME
    return meta


def _parse_active_columns(cpt: ET.Element) -> list[bool]:
    params = _find(cpt, "parameters")
    if params is None:
        # No parameter block: assume every column was measured
        return [True] * N_COLUMNS
    active = []
    for col in BRO_COLUMN_ORDER:
        flag = _get_text(params, col.param_tag)
        active.append(flag is not None and flag.lower() == ACTIVE_FLAG)
    return active


def _separators(cpt: ET.Element) -> tuple[str, str]:
    encoding = _find(cpt, "TextEncoding")
    if encoding is None:
        return DEFAULT_TOKEN_SEPARATOR, DEFAULT_BLOCK_SEPARATOR
    token_sep = encoding.get("tokenSeparator") or DEFAULT_TOKEN_SEPARATOR
    block_sep = encoding.get("blockSeparator") or DEFAULT_BLOCK_SEPARATOR
    return token_sep, block_sep


def _parse_value(token: str) -> float | None:
    val = parse_float(token)
    if val is None or val == BRO_VOID_VALUE:
        return None
    return val


def _parse_blocks(raw: str, token_sep: str, block_sep: str) -> list[dict[str, float | None]]:
    rows = []
    dropped = 0
    for block in raw.strip().split(block_sep):
        block = block.strip()
        if not block:
            continue
        tokens = block.split(token_sep)
        if len(tokens) < N_COLUMNS:
            dropped += 1
            continue
        rows.append({
            col.key: _parse_value(tokens[i]) for i, col in enumerate(BRO_COLUMN_ORDER)
        })
    if dropped:
        logger.debug(f"Dropped {dropped} block(s) with fewer than {N_COLUMNS} values")
    return rows


def parse_bro_xml_text(text: str) -> FormatRecord:
    """
    Parse BRO CPT XML into a FormatRecord.
    - Metadata from broId, locations, vertical position, trajectory, survey
    - Active columns from the <parameters> flags
    - Values from <values>, split by the TextEncoding separators
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise FormatError(f"invalid XML file: {str(e)[:200]}") from e

    cpt = _find_cpt_object(root)
    if cpt is None:
        raise FormatError("no CPT_O or CPT_O_DP element found in XML")

    header = _extract_metadata(cpt)
    active = _parse_active_columns(cpt)

    values_el = _find(cpt, "values")
    if values_el is None:
        raise FormatError("no measurement data (cptcommon:values) found in XML")

    token_sep, block_sep = _separators(cpt)
    columns = [
        Column(key=col.key, label=col.label, unit=col.unit, index=i)
        for i, col in enumerate(BRO_COLUMN_ORDER)
        if active[i]
    ]
    rows = _parse_blocks(_text(values_el), token_sep, block_sep)

    keys = {c.key for c in columns}
    if "rf" not in keys and "qc" in keys and "fs" in keys:
        derive_friction_ratio(rows)
        columns.append(Column(key="rf", label="Friction ratio (computed)", unit="%", computed=True))

    logger.debug(f"BRO-XML {header['name']}: {len(columns)} active columns, {len(rows)} rows")
    return FormatRecord(
        header=header,
        columns=columns,
        data=rows,
        format=FORMATS[".xml"][0],
    )


def parse_bro_xml_file(path: str | Path) -> FormatRecord:
    """Parse BRO XML file from path."""
    path = Path(path)
    text = path.read_text(encoding=FORMATS[".xml"][1], errors="replace")
    record = parse_bro_xml_text(text)
    record.file_name = path.name
    return record
