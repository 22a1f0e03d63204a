"""
File intake: pick the parser from the extension, decode with the format's
charset, classify, and collect per-file errors for batch loads.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, NamedTuple

from .bro_xml_parser import parse_bro_xml_text
from .config import FORMATS, MIN_LAYER_THICKNESS
from .gef_parser import parse_gef_text
from .record import FormatError, FormatRecord
from .robertson import classify_record

logger = logging.getLogger(__name__)

_PARSERS = {
    "GEF": parse_gef_text,
    "BRO-XML": parse_bro_xml_text,
}


class LoadError(NamedTuple):
    file_name: str
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.file_name}: {self.message}"


def detect_format(file_name: str) -> str | None:
    """'GEF' / 'BRO-XML' from the extension, None if unsupported."""
    entry = FORMATS.get(Path(file_name).suffix.lower())
    return entry[0] if entry else None


def _charset(fmt: str) -> str:
    return next(cs for tag, cs in FORMATS.values() if tag == fmt)


def decode(payload: bytes | str, fmt: str) -> str:
    if isinstance(payload, str):
        return payload
    return payload.decode(_charset(fmt), errors="replace")


def load_cpt(
    file_name: str,
    payload: bytes | str,
    min_thickness: float = MIN_LAYER_THICKNESS,
) -> FormatRecord:
    """Parse and classify one file. Raises FormatError for unreadable content."""
    fmt = detect_format(file_name)
    if fmt is None:
        raise FormatError(f"unsupported file type: {Path(file_name).suffix or file_name}")
    record = _PARSERS[fmt](decode(payload, fmt))
    record.file_name = file_name
    record.format = fmt
    classify_record(record, min_thickness)
    logger.info(
        f"Loaded {file_name} ({fmt}): {len(record.data)} rows, "
        f"{len(record.layers)} layers, max depth {record.max_depth():.1f} m"
    )
    return record


def load_path(path: str | Path, min_thickness: float = MIN_LAYER_THICKNESS) -> FormatRecord:
    path = Path(path)
    return load_cpt(path.name, path.read_bytes(), min_thickness)


def load_many(
    files: Iterable[tuple[str, bytes | str]],
    min_thickness: float = MIN_LAYER_THICKNESS,
) -> tuple[list[FormatRecord], list[LoadError]]:
    """
    Load a batch of (file_name, payload) pairs.
    A failing file is reported in the error list; the rest of the batch still loads.
    """
    records: list[FormatRecord] = []
    errors: list[LoadError] = []
    for file_name, payload in files:
        if detect_format(file_name) is None:
            errors.append(LoadError(file_name, "unsupported", "only .gef and .xml files are supported"))
            logger.warning(f"Skipped {file_name}: unsupported file type")
            continue
        try:
            records.append(load_cpt(file_name, payload, min_thickness))
        except FormatError as e:
            errors.append(LoadError(file_name, e.kind, str(e)))
            logger.warning(f"Could not load {file_name}: {e}")
    return records, errors
