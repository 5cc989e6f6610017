from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class CompositionSample:
    q: float = 0.0
    f: float = 0.0
    l: float = 0.0


@dataclass(frozen=True)
class NormalizedComposition:
    q_pct: float
    f_pct: float
    l_pct: float

    @property
    def total(self) -> float:
        return self.q_pct + self.f_pct + self.l_pct


@dataclass(frozen=True)
class PlotPoint:
    x: float
    y: float


@dataclass(frozen=True)
class TernaryLayout:
    """Pixel geometry of an equilateral QFL triangle, apex Q at the top.

    Coordinates follow the SVG convention: y grows downwards.
    """

    width: float = 300.0
    height: float = 260.0
    padding: float = 20.0

    @property
    def side(self) -> float:
        return self.width - 2.0 * self.padding

    @property
    def triangle_height(self) -> float:
        return (math.sqrt(3.0) / 2.0) * self.side

    @property
    def q_vertex(self) -> PlotPoint:
        return PlotPoint(self.width / 2.0, self.padding)

    @property
    def f_vertex(self) -> PlotPoint:
        return PlotPoint(self.padding, self.padding + self.triangle_height)

    @property
    def l_vertex(self) -> PlotPoint:
        return PlotPoint(self.width - self.padding, self.padding + self.triangle_height)


DEFAULT_LAYOUT = TernaryLayout()


@dataclass(frozen=True)
class RegionalCase:
    name: str
    region: str
    description: str
    qfl: CompositionSample


REGIONAL_CASES: tuple[RegionalCase, ...] = (
    RegionalCase(
        "Siwalik Molasse",
        "Himalayan Foreland",
        "Classic unroofing sequence from sedimentary cover to crystalline core during Himalayan orogeny.",
        CompositionSample(45, 15, 40),
    ),
    RegionalCase(
        "Swiss Molasse",
        "Alpine Foreland",
        "Plateau and Subalpine Molasse demonstrating North Alpine Foreland Basin evolution.",
        CompositionSample(35, 25, 40),
    ),
    RegionalCase(
        "Great Valley Group",
        "California",
        "Forearc basin deposits reflecting the unroofing of the Sierra Nevada magmatic arc.",
        CompositionSample(20, 45, 35),
    ),
    RegionalCase(
        "Appalachian Foreland",
        "Eastern North America",
        "Paleozoic clastic wedges reflecting Taconic, Acadian, and Alleghanian orogenic events.",
        CompositionSample(60, 10, 30),
    ),
)


def _component(value: float | None) -> float:
    # Absent, negative and non-finite components count as zero.
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0.0:
        return 0.0
    return number


def normalize_qfl(q: float | None, f: float | None, l: float | None) -> NormalizedComposition:
    q_val, f_val, l_val = _component(q), _component(f), _component(l)
    total = q_val + f_val + l_val
    if total == 0.0:
        return NormalizedComposition(0.0, 0.0, 0.0)
    return NormalizedComposition(
        q_pct=100.0 * q_val / total,
        f_pct=100.0 * f_val / total,
        l_pct=100.0 * l_val / total,
    )


def normalize_sample(sample: CompositionSample) -> NormalizedComposition:
    return normalize_qfl(sample.q, sample.f, sample.l)


def plot_point(normalized: NormalizedComposition, layout: TernaryLayout = DEFAULT_LAYOUT) -> PlotPoint:
    side = layout.side
    height = layout.triangle_height
    x = layout.padding + (normalized.l_pct / 100.0) * side + (normalized.q_pct / 100.0) * (side / 2.0)
    y = layout.padding + height * (1.0 - normalized.q_pct / 100.0)
    return PlotPoint(x, y)


def qfl_to_plot_point(
    sample: CompositionSample, layout: TernaryLayout = DEFAULT_LAYOUT
) -> tuple[NormalizedComposition, PlotPoint]:
    normalized = normalize_sample(sample)
    return normalized, plot_point(normalized, layout)


def _column_lookup(frame: pd.DataFrame) -> dict[str, str]:
    return {str(column).strip().lower(): str(column) for column in frame.columns}


def _resolve_column(frame: pd.DataFrame, candidates: list[str]) -> str | None:
    lookup = _column_lookup(frame)
    for candidate in candidates:
        if candidate in frame.columns:
            return candidate
        found = lookup.get(candidate.lower())
        if found is not None:
            return found
    return None


def _series_from_candidates(frame: pd.DataFrame, candidates: list[str]) -> tuple[pd.Series, str | None]:
    column = _resolve_column(frame, candidates)
    if column is None:
        return pd.Series(0.0, index=frame.index, dtype=float), None
    values = pd.to_numeric(frame[column], errors="coerce").astype(float)
    values = values.where(np.isfinite(values), 0.0)
    return values.clip(lower=0.0), column


def _sample_ids(frame: pd.DataFrame) -> pd.Series:
    sample_col = _resolve_column(frame, ["sample_id", "sample", "id", "name"])
    if sample_col is None:
        return pd.Series(frame.index, index=frame.index, dtype=object).map(str)
    return frame[sample_col].astype(str)


def prepare_qfl_data(frame: pd.DataFrame, layout: TernaryLayout = DEFAULT_LAYOUT) -> pd.DataFrame:
    """Normalize a point-count table row by row and attach plot coordinates.

    Rows whose Q + F + L sum is zero are dropped.
    """
    q, q_col = _series_from_candidates(frame, ["q", "qt", "quartz", "q_count"])
    f, f_col = _series_from_candidates(frame, ["f", "feldspar", "f_count"])
    l, l_col = _series_from_candidates(frame, ["l", "lt", "lithics", "lithic", "l_count"])

    if q_col is None and f_col is None and l_col is None:
        raise ValueError("QFL table needs Q, F and L (or Quartz, Feldspar, Lithics) columns.")

    data = pd.DataFrame({"q_pct": q, "f_pct": f, "l_pct": l})
    total = data.sum(axis=1)
    mask = total > 0
    if not mask.any():
        raise ValueError("No samples with a positive Q + F + L sum.")

    scaled = data.loc[mask].div(total.loc[mask], axis=0) * 100.0
    result = pd.DataFrame(
        {
            "sample_id": _sample_ids(frame.loc[mask]),
            "q_pct": scaled["q_pct"],
            "f_pct": scaled["f_pct"],
            "l_pct": scaled["l_pct"],
        }
    ).reset_index(drop=True)

    side = layout.side
    height = layout.triangle_height
    result["plot_x"] = layout.padding + (result["l_pct"] / 100.0) * side + (result["q_pct"] / 100.0) * (side / 2.0)
    result["plot_y"] = layout.padding + height * (1.0 - result["q_pct"] / 100.0)
    return result
