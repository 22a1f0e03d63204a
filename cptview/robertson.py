"""
Robertson (1990) soil behaviour type classification on raw qc (MPa) and Rf (%),
without effective stress correction, plus merging of point classifications
into depth layers.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, NamedTuple

import pandas as pd

from .config import MIN_LAYER_THICKNESS


class SoilZone(NamedTuple):
    zone: int
    name: str
    color: str


ROBERTSON_ZONES = (
    SoilZone(1, "Sensitive fine grained", "#00BCD4"),
    SoilZone(2, "Organic soils / peat", "#795548"),
    SoilZone(3, "Clay", "#4CAF50"),
    SoilZone(4, "Silt mixtures", "#8BC34A"),
    SoilZone(5, "Sand mixtures", "#FFC107"),
    SoilZone(6, "Sand", "#FF9800"),
    SoilZone(7, "Gravelly sand / dense sand", "#FF5722"),
    SoilZone(8, "Very stiff sand to clayey sand", "#F44336"),
    SoilZone(9, "Very stiff fine grained", "#9C27B0"),
)
ZONES_BY_ID = {z.zone: z for z in ROBERTSON_ZONES}

# (qc lower bound, ((rf upper bound, zone), ...), zone when rf exceeds all bounds)
# Bands are tested top-down with qc > bound; None closes the table.
_DECISION_TABLE = (
    (25.0, ((1.0, 7),), 8),
    (10.0, ((0.5, 7), (1.5, 6), (3.0, 5)), 8),
    (5.0, ((1.0, 6), (2.0, 5), (4.0, 4), (6.0, 3)), 9),
    (2.0, ((1.0, 5), (2.5, 4), (5.0, 3), (8.0, 2)), 1),
    (0.5, ((1.5, 4), (4.0, 3), (8.0, 2)), 1),
    (None, ((5.0, 3), (10.0, 2)), 1),
)


@dataclass(frozen=True)
class ClassifiedPoint:
    depth: float
    zone: SoilZone | None


@dataclass
class Layer:
    start_depth: float
    end_depth: float
    zone: SoilZone

    @property
    def thickness(self) -> float:
        return self.end_depth - self.start_depth


@dataclass(frozen=True)
class DistributionEntry:
    zone: SoilZone
    thickness: float
    percentage: float


def _missing(v: Any) -> bool:
    return v is None or (isinstance(v, float) and math.isnan(v))


def classify(qc: float | None, rf: float | None) -> SoilZone | None:
    """Soil zone for one (qc, rf) pair; None when either is missing or out of domain."""
    if _missing(qc) or _missing(rf):
        return None
    if qc <= 0 or rf < 0:
        return None

    for qc_bound, rf_bands, fallback in _DECISION_TABLE:
        if qc_bound is not None and not qc > qc_bound:
            continue
        for rf_bound, zone in rf_bands:
            if rf < rf_bound:
                return ZONES_BY_ID[zone]
        return ZONES_BY_ID[fallback]
    return None


def row_depth(row: dict[str, Any]) -> float | None:
    d = row.get("depth")
    if _missing(d):
        d = row.get("length")
    return None if _missing(d) else abs(d)


def classify_dataset(rows: list[dict[str, Any]]) -> list[ClassifiedPoint]:
    """Classify every row that has a depth (or length) value."""
    points = []
    for row in rows:
        depth = row_depth(row)
        if depth is None:
            continue
        points.append(ClassifiedPoint(depth, classify(row.get("qc"), row.get("rf"))))
    return points


def merge_layers(
    points: list[ClassifiedPoint],
    min_thickness: float = MIN_LAYER_THICKNESS,
) -> list[Layer]:
    """
    Merge classified points into layers.
    Consecutive (by depth) same-zone points form one layer; layers thinner than
    min_thickness are absorbed by extending the previous kept layer.
    """
    valid = sorted((p for p in points if p.zone is not None), key=lambda p: p.depth)
    if not valid:
        return []

    layers: list[Layer] = []
    current = Layer(valid[0].depth, valid[0].depth, valid[0].zone)
    for p in valid[1:]:
        if p.zone.zone == current.zone.zone:
            current.end_depth = p.depth
        else:
            layers.append(current)
            current = Layer(p.depth, p.depth, p.zone)
    layers.append(current)

    if min_thickness <= 0 or len(layers) < 2:
        return layers

    merged = [layers[0]]
    for layer in layers[1:]:
        if layer.thickness < min_thickness:
            merged[-1].end_depth = layer.end_depth
        else:
            merged.append(layer)
    return merged


def compute_distribution(layers: list[Layer]) -> list[DistributionEntry]:
    """Thickness share per zone, largest first."""
    totals: dict[int, float] = {}
    total = 0.0
    for layer in layers:
        t = layer.thickness
        if t <= 0:
            continue
        totals[layer.zone.zone] = totals.get(layer.zone.zone, 0.0) + t
        total += t

    if total == 0:
        return []

    entries = [
        DistributionEntry(z, totals[z.zone], totals[z.zone] / total * 100)
        for z in ROBERTSON_ZONES
        if totals.get(z.zone, 0.0) > 0
    ]
    return sorted(entries, key=lambda d: d.percentage, reverse=True)


def classify_record(record, min_thickness: float = MIN_LAYER_THICKNESS):
    """Attach layers and distribution to a FormatRecord (in place) and return it."""
    points = classify_dataset(record.data)
    record.layers = merge_layers(points, min_thickness)
    record.distribution = compute_distribution(record.layers)
    return record


def layers_to_frame(layers: list[Layer]) -> pd.DataFrame:
    cols = ["Depth_From", "Depth_To", "Thickness", "Zone", "Zone_Name", "Color"]
    rows = [
        [l.start_depth, l.end_depth, l.thickness, l.zone.zone, l.zone.name, l.zone.color]
        for l in layers
    ]
    return pd.DataFrame(rows, columns=cols)


def distribution_to_frame(distribution: list[DistributionEntry]) -> pd.DataFrame:
    cols = ["Zone", "Zone_Name", "Color", "Thickness", "Percentage"]
    rows = [
        [d.zone.zone, d.zone.name, d.zone.color, d.thickness, d.percentage]
        for d in distribution
    ]
    return pd.DataFrame(rows, columns=cols)
