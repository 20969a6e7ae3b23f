import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from records.codec import EyeType
from records.measurements import GlaucomaMeasurement, Measurement, RetinaInjectionMeasurement

NORMAL_RANGES: Dict[str, Tuple[float, float]] = {
    "iop": (10.0, 21.0),
    "rnflOverall": (90.0, 110.0),
    "meanDefect": (-2.0, 2.0),
    "patternStandardDeviation": (0.0, 2.0),
}

METRICS: Dict[str, Dict[str, str]] = {
    "iop": {"label": "IOP", "unit": "mmHg", "meaning": "Pressure inside the eye."},
    "meanDefect": {"label": "Mean defect", "unit": "dB", "meaning": "Average sensitivity loss across the visual field."},
    "patternStandardDeviation": {"label": "PSD", "unit": "dB", "meaning": "Irregularity of visual field loss."},
    "rnflOverall": {"label": "RNFL", "unit": "µm", "meaning": "Nerve fiber thickness around the optic nerve."},
    "rnflSuperior": {"label": "RNFL superior", "unit": "µm", "meaning": "Superior quadrant thickness."},
    "rnflInferior": {"label": "RNFL inferior", "unit": "µm", "meaning": "Inferior quadrant thickness."},
    "macularGCC": {"label": "Macular GCC", "unit": "µm", "meaning": "Ganglion cell complex thickness in the macula."},
    "crt": {"label": "CRT", "unit": "µm", "meaning": "Central retinal thickness."},
    "kMax": {"label": "Kmax", "unit": "D", "meaning": "Steepest corneal curvature."},
    "thinnestPachymetry": {"label": "Thinnest pachymetry", "unit": "µm", "meaning": "Thinnest point of the cornea."},
    "ecd": {"label": "ECD", "unit": "cells/mm²", "meaning": "Endothelial cell density of the graft."},
    "pachymetry": {"label": "Pachymetry", "unit": "µm", "meaning": "Central corneal thickness."},
}


def split_by_eye(records: Iterable[Measurement]) -> Dict[EyeType, List[Measurement]]:
    out: Dict[EyeType, List[Measurement]] = {EyeType.OD: [], EyeType.OS: []}
    for r in records:
        out[r.eye].append(r)
    return out


def sorted_for_eye(records: Iterable[Measurement], eye: EyeType) -> List[Measurement]:
    return sorted((r for r in records if r.eye == eye), key=lambda r: r.date)


def to_frame(records: Sequence[Measurement], columns: Sequence[str], eye: Optional[EyeType] = None) -> pd.DataFrame:
    """Date-indexed frame of the given attributes, oldest first."""
    picked = sorted_for_eye(records, eye) if eye is not None else sorted(records, key=lambda r: r.date)
    if not picked:
        return pd.DataFrame(columns=list(columns))
    rows = []
    for r in picked:
        row = {"date": r.date}
        for c in columns:
            row[c] = getattr(r, c)
        rows.append(row)
    df = pd.DataFrame(rows)
    df["date"] = pd.to_datetime(df["date"], utc=True)
    return df.sort_values("date").set_index("date")


def glaucoma_frame(records: Sequence[GlaucomaMeasurement], eye: EyeType) -> pd.DataFrame:
    return to_frame(
        records,
        ["iop", "meanDefect", "patternStandardDeviation", "rnflOverall", "rnflSuperior", "rnflInferior", "macularGCC"],
        eye=eye,
    )


def crt_frame(records: Sequence[RetinaInjectionMeasurement], eye: EyeType) -> pd.DataFrame:
    return to_frame(records, ["crt"], eye=eye)


def vision_history(records: Sequence[RetinaInjectionMeasurement], eye: EyeType) -> List[Tuple[datetime, str]]:
    return [(r.date, r.vision) for r in sorted_for_eye(records, eye)]


def injection_timeline(records: Sequence[RetinaInjectionMeasurement]) -> List[Tuple[datetime, bool]]:
    return [(r.date, r.isNewMedication) for r in records]


def upcoming_reminder(records: Sequence[RetinaInjectionMeasurement]) -> Optional[datetime]:
    dates = sorted(r.reminderDate for r in records if r.reminderDate is not None)
    return dates[0] if dates else None


def value_range(values: Sequence[float], default: Tuple[float, float] = (0.0, 1.0)) -> Tuple[float, float]:
    """
    Y-axis bounds for a chart series.

    Pads 30% of the spread (at least 10) on both sides and never drops below
    zero. A flat series is padded only; otherwise both ends are rounded out to
    a multiple of 5.
    """
    vals = [float(v) for v in values if v is not None]
    if not vals:
        return default

    lo, hi = min(vals), max(vals)
    padding = max((hi - lo) * 0.3, 10.0)

    if lo == hi:
        return max(0.0, lo - padding), hi + padding

    lo = max(0.0, lo - padding)
    hi = hi + padding
    return math.floor(lo / 5) * 5.0, math.ceil(hi / 5) * 5.0


def in_normal_range(metric: str, value: Optional[float]) -> Optional[bool]:
    bounds = NORMAL_RANGES.get(metric)
    if bounds is None or value is None:
        return None
    return bounds[0] <= float(value) <= bounds[1]
