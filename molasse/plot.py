from __future__ import annotations

import pandas as pd
import plotly.graph_objects as go

from molasse.geochron import METHODS, AgeRecord, records_to_frame
from molasse.ternary import DEFAULT_LAYOUT, TernaryLayout


DEFAULT_COLORS = {
    "background": "#0c0a09",
    "panel": "#1c1917",
    "primary": "#f59e0b",
    "accent": "#fbbf24",
    "text": "#e7e5e4",
    "success": "#059669",
    "warning": "#ea580c",
}

METHOD_COLORS = {
    "U-Pb": "#60a5fa",
    "Ar-Ar": "#4ade80",
    "K-Ar": "#f472b6",
    "FT": "#a78bfa",
}


def _palette(colors: dict[str, str] | None) -> dict[str, str]:
    palette = DEFAULT_COLORS.copy()
    if colors:
        palette.update(colors)
    return palette


def _apply_plot_style(fig: go.Figure, colors: dict[str, str] | None = None) -> go.Figure:
    palette = _palette(colors)
    fig.update_layout(
        paper_bgcolor=palette["panel"],
        plot_bgcolor=palette["panel"],
        font_color=palette["text"],
        legend_title_text="",
    )
    return fig


def build_qfl_figure(
    points: pd.DataFrame,
    layout: TernaryLayout = DEFAULT_LAYOUT,
    colors: dict[str, str] | None = None,
    title: str = "Dickinson QFL Plotter",
) -> go.Figure:
    """Draw the QFL triangle in layout pixel space.

    ``points`` needs ``plot_x``/``plot_y`` columns as produced by
    ``prepare_qfl_data``; ``sample_id`` and the percentage columns feed the
    hover text when present.
    """
    palette = _palette(colors)
    q, f, l = layout.q_vertex, layout.f_vertex, layout.l_vertex

    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=[q.x, f.x, l.x, q.x],
            y=[q.y, f.y, l.y, q.y],
            mode="lines",
            fill="toself",
            fillcolor="rgba(245, 158, 11, 0.05)",
            line={"color": palette["primary"], "width": 2},
            hoverinfo="skip",
            showlegend=False,
        )
    )
    fig.add_trace(
        go.Scatter(
            x=[q.x, q.x],
            y=[q.y, f.y],
            mode="lines",
            line={"color": "rgba(245, 158, 11, 0.2)", "dash": "dash"},
            hoverinfo="skip",
            showlegend=False,
        )
    )

    if not points.empty:
        labels = points["sample_id"] if "sample_id" in points.columns else None
        hover = None
        if {"q_pct", "f_pct", "l_pct"}.issubset(points.columns):
            hover = [
                f"Q {row.q_pct:.1f}% F {row.f_pct:.1f}% L {row.l_pct:.1f}%"
                for row in points.itertuples(index=False)
            ]
        fig.add_trace(
            go.Scatter(
                x=points["plot_x"],
                y=points["plot_y"],
                mode="markers+text" if labels is not None and len(points) > 1 else "markers",
                text=labels,
                textposition="top center",
                hovertext=hover,
                marker={"size": 12, "color": palette["accent"], "line": {"width": 1, "color": "#ffffff"}},
                showlegend=False,
            )
        )

    fig.add_annotation(x=q.x, y=q.y - 8, text="Quartz (Q)", showarrow=False, font={"color": palette["primary"]})
    fig.add_annotation(x=f.x, y=f.y + 14, text="Feldspar (F)", showarrow=False, font={"color": palette["primary"]})
    fig.add_annotation(x=l.x, y=l.y + 14, text="Lithics (L)", showarrow=False, font={"color": palette["primary"]})

    fig.update_xaxes(range=[0, layout.width], visible=False)
    fig.update_yaxes(range=[layout.height + 10, -10], visible=False, scaleanchor="x", scaleratio=1)
    fig.update_layout(title=title, height=420, margin={"l": 10, "r": 10, "t": 50, "b": 10})
    return _apply_plot_style(fig, colors)


def build_age_figure(records: list[AgeRecord] | tuple[AgeRecord, ...], colors: dict[str, str] | None = None) -> go.Figure:
    frame = records_to_frame(records).reset_index(names="entry")
    frame["entry"] = frame["entry"] + 1

    fig = go.Figure()
    for method in list(METHODS) + sorted(set(frame["method"]) - set(METHODS)):
        subset = frame.loc[frame["method"] == method]
        if subset.empty:
            continue
        fig.add_trace(
            go.Scatter(
                x=subset["entry"],
                y=subset["age_ma"],
                mode="markers",
                name=method or "(no method)",
                error_y={"type": "data", "array": subset["error_ma"], "visible": True},
                marker={"size": 10, "color": METHOD_COLORS.get(method, "#a8a29e")},
                customdata=subset[["mineral", "error_ma"]],
                hovertemplate="%{customdata[0]}: %{y:.1f} ± %{customdata[1]:.2f} Ma<extra></extra>",
            )
        )
    fig.update_xaxes(title="Entry", dtick=1, gridcolor="#292524")
    fig.update_yaxes(title="Age [Ma]", gridcolor="#292524")
    fig.update_layout(title="Geochronology Entries (age ± error)")
    return _apply_plot_style(fig, colors)
