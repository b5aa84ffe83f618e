from __future__ import annotations

from pathlib import Path

import plotly.graph_objects as go

from trendcheck.core.classify import Classification
from trendcheck.core.pipeline import RunResult

CLASS_COLORS = {
    Classification.CONSISTENT: "black",
    Classification.BELOW_95: "orange",
    Classification.BELOW_97_5: "red",
}

CLASS_LABELS = {
    Classification.CONSISTENT: "Observed (within ensemble 5-95%)",
    Classification.BELOW_95: "Observed (< 5th percentile)",
    Classification.BELOW_97_5: "Observed (< 2.5th percentile)",
}


def build_comparison_figure(result: RunResult) -> go.Figure:
    """
    Recursive trends ending at result.end_year, plotted against window start year.
    """
    bands = result.bands_df.sort_values("start_year")
    x = bands["start_year"].tolist()

    fig = go.Figure()

    # Outer band (2.5-97.5), drawn as upper line + filled lower line
    fig.add_trace(go.Scatter(
        x=x, y=bands["p97_5"], mode="lines",
        line=dict(width=0), showlegend=False, hoverinfo="skip",
    ))
    fig.add_trace(go.Scatter(
        x=x, y=bands["p2_5"], mode="lines",
        line=dict(width=0), fill="tonexty", fillcolor="rgba(120,120,200,0.20)",
        name="Ensemble 2.5-97.5%",
    ))

    # Inner band (5-95)
    fig.add_trace(go.Scatter(
        x=x, y=bands["p95"], mode="lines",
        line=dict(width=0), showlegend=False, hoverinfo="skip",
    ))
    fig.add_trace(go.Scatter(
        x=x, y=bands["p5"], mode="lines",
        line=dict(width=0), fill="tonexty", fillcolor="rgba(120,120,200,0.35)",
        name="Ensemble 5-95%",
    ))

    fig.add_trace(go.Scatter(
        x=x, y=bands["mean"], mode="lines",
        line=dict(color="navy"), name="Ensemble mean",
    ))

    # Observed trends, one trace per class so the legend explains the colours
    for klass in Classification:
        pts = [c for c in result.comparisons if c.classification == klass]
        if not pts:
            continue
        pts = sorted(pts, key=lambda c: c.start_year)
        has_ci = all(c.ci_low is not None and c.ci_high is not None for c in pts)
        error_y = None
        if has_ci:
            error_y = dict(
                type="data",
                symmetric=False,
                array=[c.ci_high - c.slope_per_decade for c in pts],
                arrayminus=[c.slope_per_decade - c.ci_low for c in pts],
                thickness=1,
                color=CLASS_COLORS[klass],
            )
        fig.add_trace(go.Scatter(
            x=[c.start_year for c in pts],
            y=[c.slope_per_decade for c in pts],
            mode="markers",
            marker=dict(color=CLASS_COLORS[klass], size=6),
            error_y=error_y,
            name=CLASS_LABELS[klass],
        ))

    fig.add_hline(y=0.0, line_dash="dot")

    fig.update_layout(
        height=460,
        margin=dict(l=10, r=10, t=40, b=10),
        title=f"Recursive trends ending {result.end_year}",
        xaxis_title="Start year",
        yaxis_title="Trend (per decade)",
        legend_title="Series",
    )
    return fig


def save_figure(fig: go.Figure, path: str | Path) -> Path:
    fp = Path(path)
    fp.parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(str(fp), include_plotlyjs="cdn")
    return fp


def summary_text(result: RunResult) -> str:
    counts = result.class_counts()
    overlaps = [c.ci_overlap for c in result.comparisons if c.ci_overlap is not None]
    n_overlap = sum(1 for o in overlaps if o)
    return (
        f"End year {result.end_year} (windows from {result.start_year}): "
        f"{result.n_models} models, {len(result.skipped_models)} skipped. "
        f"Observed trends: {counts.get('consistent', 0)} consistent, "
        f"{counts.get('below_95', 0)} below 5th pct, "
        f"{counts.get('below_97_5', 0)} below 2.5th pct. "
        f"CI overlaps ensemble 2.5-97.5% spread at {n_overlap}/{len(overlaps)} lengths."
    )
