from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Literal, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd

from trendcheck.core.errors import EmptyEnsembleError, TrendError
from trendcheck.core.trends import MIN_WINDOW_LENGTH, TrendConfig, TrendPoint, build_trend_series

logger = logging.getLogger(__name__)

PERCENTILES: Tuple[float, ...] = (2.5, 5.0, 95.0, 97.5)

# Linear interpolation between order statistics (Hyndman & Fan type 7).
PERCENTILE_METHOD = "linear"


@dataclass(frozen=True)
class EnsembleBand:
    length: int
    start_year: int
    n_models: int
    mean: float
    p2_5: float
    p5: float
    p95: float
    p97_5: float


def ensemble_percentiles(slopes: Sequence[float]) -> Tuple[float, float, float, float]:
    """2.5/5/95/97.5th percentiles with linear interpolation between order statistics."""
    arr = np.asarray(slopes, dtype=float)
    if arr.size == 0:
        raise EmptyEnsembleError("no slopes to summarise")
    q = np.percentile(arr, PERCENTILES, method=PERCENTILE_METHOD)
    return float(q[0]), float(q[1]), float(q[2]), float(q[3])


def summarize_ensemble(
    trends_by_model: Mapping[str, Sequence[TrendPoint]],
    min_length: int = MIN_WINDOW_LENGTH,
) -> List[EnsembleBand]:
    """
    One EnsembleBand per window length, longest first.

    A length needs at least one contributing model; with a single model the
    mean and every percentile equal that model's slope.
    """
    if not trends_by_model:
        raise EmptyEnsembleError("ensemble mapping is empty")

    slopes_by_length: Dict[int, List[float]] = {}
    start_by_length: Dict[int, int] = {}
    for model_id, points in trends_by_model.items():
        for p in points:
            slopes_by_length.setdefault(int(p.length), []).append(float(p.slope_per_decade))
            start_by_length.setdefault(int(p.length), int(p.start_year))

    bands: List[EnsembleBand] = []
    for length in sorted(slopes_by_length, reverse=True):
        if length < max(min_length, MIN_WINDOW_LENGTH):
            continue
        slopes = slopes_by_length[length]
        p2_5, p5, p95, p97_5 = ensemble_percentiles(slopes)
        bands.append(
            EnsembleBand(
                length=length,
                start_year=start_by_length[length],
                n_models=len(slopes),
                mean=float(np.mean(slopes)),
                p2_5=p2_5,
                p5=p5,
                p95=p95,
                p97_5=p97_5,
            )
        )

    if not bands:
        raise EmptyEnsembleError(f"no model provides a trend at length >= {max(min_length, MIN_WINDOW_LENGTH)}")
    return bands


def build_ensemble_trends(
    ensemble_df: pd.DataFrame,
    cfg: TrendConfig,
    on_error: Literal["skip", "raise"] = "skip",
) -> Tuple[Dict[str, List[TrendPoint]], Dict[str, str]]:
    """
    Recursive trends (no CI) for every model in a long `model, year, value` table.

    on_error="skip": a model that cannot be fitted is logged and reported in
    the returned `skipped` mapping (model -> reason); "raise" aborts the run.
    """
    required = {"model", "year", "value"}
    missing = required - set(ensemble_df.columns)
    if missing:
        raise ValueError(f"Missing required columns in ensemble table: {sorted(missing)}")
    if on_error not in ("skip", "raise"):
        raise ValueError(f"Unknown on_error policy: {on_error}")

    trends: Dict[str, List[TrendPoint]] = {}
    skipped: Dict[str, str] = {}

    for model_id, g in ensemble_df.groupby("model", sort=True):
        model_id = str(model_id)
        try:
            trends[model_id] = build_trend_series(model_id, g[["year", "value"]], cfg, with_ci=False)
        except TrendError as exc:
            if on_error == "raise":
                raise
            skipped[model_id] = exc.reason
            logger.warning("Skipping model %s (end=%s): %s", model_id, cfg.end_year, exc.reason)

    if not trends:
        raise EmptyEnsembleError(f"no usable model for end year {cfg.end_year} ({len(skipped)} skipped)")
    return trends, skipped


def bands_to_frame(bands: Sequence[EnsembleBand]) -> pd.DataFrame:
    cols = ["length", "start_year", "n_models", "mean", "p2_5", "p5", "p95", "p97_5"]
    return pd.DataFrame([{c: getattr(b, c) for c in cols} for b in bands], columns=cols)
