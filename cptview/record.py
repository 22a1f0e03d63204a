"""
FormatRecord: the uniform sounding model both parsers produce.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import pandas as pd


class FormatError(ValueError):
    """Structural problem that makes a file unreadable as a whole."""

    kind = "format"


@dataclass
class Column:
    key: str
    label: str
    unit: str = ""
    computed: bool = False
    index: int | None = None
    type_code: int | None = None
    void_value: float | None = None


@dataclass
class FormatRecord:
    header: dict[str, str] = field(default_factory=dict)
    columns: list[Column] = field(default_factory=list)
    data: list[dict[str, float | None]] = field(default_factory=list)
    layers: list[Any] = field(default_factory=list)
    distribution: list[Any] = field(default_factory=list)
    file_name: str | None = None
    format: str | None = None

    def column_keys(self) -> list[str]:
        return [c.key for c in self.columns]

    def has_column(self, key: str) -> bool:
        return any(c.key == key for c in self.columns)

    def to_frame(self) -> pd.DataFrame:
        """One DataFrame column per record column, in column order; None -> NaN."""
        keys = self.column_keys()
        return pd.DataFrame(
            [[row.get(k) for k in keys] for row in self.data],
            columns=keys,
            dtype=float,
        )

    def max_depth(self) -> float:
        depths = []
        for row in self.data:
            d = row.get("depth")
            if d is None:
                d = row.get("length")
            if d is not None:
                depths.append(abs(d))
        return max(depths) if depths else 0.0


def parse_float(token: Any) -> float | None:
    """Float from a text token; anything unparsable or non-finite -> None."""
    if token is None:
        return None
    try:
        val = float(str(token).strip())
    except ValueError:
        return None
    if not math.isfinite(val):
        return None
    return val


def derive_friction_ratio(rows: list[dict[str, float | None]]) -> None:
    """Fill rf = fs / qc * 100 in place."""
    for row in rows:
        qc = row.get("qc")
        fs = row.get("fs")
        if qc is not None and fs is not None and qc != 0:
            row["rf"] = fs / qc * 100
        else:
            row["rf"] = None
