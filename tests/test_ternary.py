from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from molasse.ternary import (
    CompositionSample,
    NormalizedComposition,
    TernaryLayout,
    normalize_qfl,
    plot_point,
    prepare_qfl_data,
    qfl_to_plot_point,
)


def test_normalize_sums_to_100() -> None:
    for q, f, l in [(45, 15, 40), (1e-6, 3.0, 7.5), (250.0, 0.0, 0.0), (0.1, 0.2, 0.3)]:
        out = normalize_qfl(q, f, l)
        assert math.isclose(out.total, 100.0, rel_tol=1e-9)


def test_normalize_all_zero_is_zero() -> None:
    assert normalize_qfl(0, 0, 0) == NormalizedComposition(0.0, 0.0, 0.0)


def test_normalize_is_scale_invariant() -> None:
    base = normalize_qfl(35, 25, 40)
    for k in (0.001, 3.0, 1e6):
        scaled = normalize_qfl(35 * k, 25 * k, 40 * k)
        assert scaled.q_pct == pytest.approx(base.q_pct, rel=1e-12)
        assert scaled.f_pct == pytest.approx(base.f_pct, rel=1e-12)
        assert scaled.l_pct == pytest.approx(base.l_pct, rel=1e-12)


def test_absent_negative_and_non_finite_components_count_as_zero() -> None:
    assert normalize_qfl(None, 10, None) == NormalizedComposition(0.0, 100.0, 0.0)
    assert normalize_qfl(-5, 50, 50) == NormalizedComposition(0.0, 50.0, 50.0)
    assert normalize_qfl(float("nan"), float("inf"), 20) == NormalizedComposition(0.0, 0.0, 100.0)


def test_reference_layout_geometry() -> None:
    layout = TernaryLayout()
    assert layout.side == 260.0
    assert layout.triangle_height == pytest.approx(math.sqrt(3) / 2 * 260.0)
    assert layout.q_vertex.x == 150.0
    assert layout.q_vertex.y == 20.0


def test_pure_quartz_plots_on_apex() -> None:
    layout = TernaryLayout()
    point = plot_point(NormalizedComposition(100.0, 0.0, 0.0), layout)
    assert point == layout.q_vertex


def test_pure_feldspar_and_lithics_plot_on_base_corners() -> None:
    layout = TernaryLayout(width=400, height=360, padding=10)
    f_point = plot_point(NormalizedComposition(0.0, 100.0, 0.0), layout)
    l_point = plot_point(NormalizedComposition(0.0, 0.0, 100.0), layout)
    assert f_point.x == pytest.approx(layout.f_vertex.x)
    assert f_point.y == pytest.approx(layout.f_vertex.y)
    assert l_point.x == pytest.approx(layout.l_vertex.x)
    assert l_point.y == pytest.approx(layout.l_vertex.y)


def test_plot_point_affine_map() -> None:
    layout = TernaryLayout()
    normalized, point = qfl_to_plot_point(CompositionSample(45, 15, 40), layout)
    h = math.sqrt(3) / 2 * 260.0
    assert point.x == pytest.approx(20 + 0.40 * 260 + 0.45 * 130)
    assert point.y == pytest.approx(20 + h - 0.45 * h)
    assert normalized.q_pct == pytest.approx(45.0)


def test_prepare_qfl_data_resolves_columns_and_drops_empty_rows() -> None:
    frame = pd.DataFrame(
        [
            {"Sample": "S-1", "Quartz": 45, "Feldspar": 15, "Lithics": 40},
            {"Sample": "S-2", "Quartz": 0, "Feldspar": 0, "Lithics": 0},
            {"Sample": "S-3", "Quartz": "12", "Feldspar": 8, "Lithics": None},
        ]
    )
    out = prepare_qfl_data(frame)

    assert out["sample_id"].tolist() == ["S-1", "S-3"]
    totals = out[["q_pct", "f_pct", "l_pct"]].sum(axis=1)
    assert np.allclose(totals, 100.0)
    assert out.loc[1, "l_pct"] == 0.0
    assert {"plot_x", "plot_y"}.issubset(out.columns)


def test_prepare_qfl_data_requires_qfl_columns() -> None:
    with pytest.raises(ValueError):
        prepare_qfl_data(pd.DataFrame({"sample_id": ["A"], "SiO2": [60.0]}))
