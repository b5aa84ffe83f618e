from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Literal, Optional, Tuple, Union

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats

from trendcheck.core.errors import (
    DegenerateFitError,
    DuplicateYearError,
    InsufficientDataError,
    InvalidYearError,
)

logger = logging.getLogger(__name__)

MIN_WINDOW_LENGTH = 10
DECADE = 10.0

ObservationsLike = Union[pd.DataFrame, Iterable[Tuple[int, float]]]


@dataclass(frozen=True)
class TrendConfig:
    """
    One recursive-trend run.

    All windows end at `end_year`; the longest window starts at
    `start_year = end_year - span_years + 1` (1951 for end year 2014 with the
    default 64-year span).
    """
    end_year: int
    span_years: int = 64
    min_length: int = MIN_WINDOW_LENGTH
    confidence: float = 0.95

    def __post_init__(self) -> None:
        if self.min_length < MIN_WINDOW_LENGTH:
            raise ValueError(f"min_length must be >= {MIN_WINDOW_LENGTH} (got {self.min_length}).")
        if self.span_years < self.min_length:
            raise ValueError(f"span_years ({self.span_years}) must be >= min_length ({self.min_length}).")
        if not 0.0 < self.confidence < 1.0:
            raise ValueError("confidence must be in (0, 1).")

    @property
    def start_year(self) -> int:
        return int(self.end_year) - int(self.span_years) + 1


@dataclass(frozen=True)
class TrendPoint:
    series_id: str
    length: int
    start_year: int
    slope_per_decade: float
    ci_low: Optional[float] = None
    ci_high: Optional[float] = None
    n_obs: int = 0


def _as_arrays(series_id: str, observations: ObservationsLike) -> Tuple[np.ndarray, np.ndarray]:
    if isinstance(observations, pd.DataFrame):
        missing = {"year", "value"} - set(observations.columns)
        if missing:
            raise ValueError(f"Observations must contain columns year, value (missing: {sorted(missing)})")
        years = pd.to_numeric(observations["year"], errors="coerce").to_numpy(dtype=float)
        values = pd.to_numeric(observations["value"], errors="coerce").to_numpy(dtype=float)
    else:
        pairs = list(observations)
        if not pairs:
            return np.array([], dtype=int), np.array([], dtype=float)
        years = np.asarray([p[0] for p in pairs], dtype=float)
        values = np.asarray([p[1] for p in pairs], dtype=float)

    keep = np.isfinite(years) & np.isfinite(values)
    years, values = years[keep], values[keep]
    fractional = years != np.round(years)
    if fractional.any():
        bad = sorted({float(y) for y in years[fractional]})[:5]
        raise InvalidYearError(f"non-integral years in input: {bad}", series_id=series_id)
    return years.astype(int), values


def _trailing_run(years: np.ndarray, end_year: int) -> int:
    """Number of consecutive years ending exactly at end_year (years sorted ascending)."""
    run = 0
    for y in years[::-1]:
        if int(y) != end_year - run:
            break
        run += 1
    return run


def prepare_series(
    series_id: str,
    observations: ObservationsLike,
    cfg: TrendConfig,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sort, clip to [start_year, end_year] and validate one series.

    Returns the contiguous trailing block (ascending years) that every valid
    window is drawn from. Rows with non-finite values count as missing years.
    """
    years, values = _as_arrays(series_id, observations)

    in_span = (years >= cfg.start_year) & (years <= cfg.end_year)
    years, values = years[in_span], values[in_span]

    order = np.argsort(years, kind="mergesort")
    years, values = years[order], values[order]

    if years.size and np.any(np.diff(years) == 0):
        dup = sorted({int(y) for y in years[1:][np.diff(years) == 0]})
        raise DuplicateYearError(f"duplicate years in input: {dup}", series_id=series_id)

    if years.size < cfg.min_length:
        raise InsufficientDataError(
            f"only {years.size} years in [{cfg.start_year}, {cfg.end_year}] (need >= {cfg.min_length})",
            series_id=series_id,
        )

    run = _trailing_run(years, cfg.end_year)
    if run < cfg.min_length:
        raise InsufficientDataError(
            f"contiguous run ending at {cfg.end_year} is {run} years (need >= {cfg.min_length}); "
            "gaps are not filled",
            series_id=series_id,
        )

    return years[-run:], values[-run:]


def fit_window_ols(
    years: np.ndarray,
    values: np.ndarray,
    confidence: float = 0.95,
) -> Tuple[float, float, float]:
    """
    Full OLS refit of one window: value ~ 1 + time, time = year - start + 1.

    Returns (slope_per_decade, ci_low, ci_high).
    """
    years = np.asarray(years, dtype=float)
    values = np.asarray(values, dtype=float)
    if years.size < 3:
        raise DegenerateFitError(f"need at least 3 points, got {years.size}")

    time = years - years.min() + 1.0
    if np.ptp(time) == 0:
        raise DegenerateFitError("time covariate is constant (singular design matrix)")

    X = sm.add_constant(time, has_constant="add")
    res = sm.OLS(values, X).fit()
    slope = float(res.params[1])
    lo, hi = res.conf_int(alpha=1.0 - confidence)[1]

    out = (slope * DECADE, float(lo) * DECADE, float(hi) * DECADE)
    if not np.all(np.isfinite(out)):
        raise DegenerateFitError("non-finite OLS estimate")
    return out


def _incremental_fits(
    series_id: str,
    years: np.ndarray,
    values: np.ndarray,
    cfg: TrendConfig,
    with_ci: bool,
) -> List[TrendPoint]:
    # Walk backwards from the end year; each longer window adds one older year.
    # Time is relative to end_year and values relative to the end-year value:
    # both shifts leave slope and its standard error unchanged.
    t = (years[::-1] - cfg.end_year).astype(float)
    y = values[::-1] - values[-1]

    s_t = np.cumsum(t)
    s_y = np.cumsum(y)
    s_tt = np.cumsum(t * t)
    s_ty = np.cumsum(t * y)
    s_yy = np.cumsum(y * y)

    points: List[TrendPoint] = []
    for length in range(years.size, cfg.min_length - 1, -1):
        i = length - 1
        n = float(length)

        sxx = s_tt[i] - s_t[i] * s_t[i] / n
        if not np.isfinite(sxx) or sxx <= 0:
            raise DegenerateFitError("zero variance in time (singular design matrix)", series_id=series_id, length=length)

        sxy = s_ty[i] - s_t[i] * s_y[i] / n
        slope = sxy / sxx
        if not np.isfinite(slope):
            raise DegenerateFitError("non-finite slope", series_id=series_id, length=length)

        ci_low: Optional[float] = None
        ci_high: Optional[float] = None
        if with_ci:
            syy = s_yy[i] - s_y[i] * s_y[i] / n
            sse = max(syy - slope * sxy, 0.0)
            se = np.sqrt(sse / (n - 2.0) / sxx)
            half = stats.t.ppf(0.5 + cfg.confidence / 2.0, length - 2) * se
            if not np.isfinite(half):
                raise DegenerateFitError("non-finite confidence interval", series_id=series_id, length=length)
            ci_low = float((slope - half) * DECADE)
            ci_high = float((slope + half) * DECADE)

        points.append(
            TrendPoint(
                series_id=series_id,
                length=length,
                start_year=cfg.end_year - length + 1,
                slope_per_decade=float(slope * DECADE),
                ci_low=ci_low,
                ci_high=ci_high,
                n_obs=length,
            )
        )
    return points


def _refit_fits(
    series_id: str,
    years: np.ndarray,
    values: np.ndarray,
    cfg: TrendConfig,
    with_ci: bool,
) -> List[TrendPoint]:
    points: List[TrendPoint] = []
    for length in range(years.size, cfg.min_length - 1, -1):
        try:
            slope, lo, hi = fit_window_ols(years[-length:], values[-length:], cfg.confidence)
        except DegenerateFitError as exc:
            raise DegenerateFitError(exc.reason, series_id=series_id, length=length) from exc
        points.append(
            TrendPoint(
                series_id=series_id,
                length=length,
                start_year=cfg.end_year - length + 1,
                slope_per_decade=slope,
                ci_low=lo if with_ci else None,
                ci_high=hi if with_ci else None,
                n_obs=length,
            )
        )
    return points


def build_trend_series(
    series_id: str,
    observations: ObservationsLike,
    cfg: TrendConfig,
    with_ci: bool = True,
    method: Literal["incremental", "refit"] = "incremental",
) -> List[TrendPoint]:
    """
    Recursive trends for one series: one TrendPoint per trailing window
    length from cfg.min_length up to the longest gap-free window, longest
    first.

    observations: DataFrame with year, value or iterable of (year, value).
    method: "incremental" updates running sums in O(1) per added year;
            "refit" runs an independent OLS per window.
    """
    years, values = prepare_series(series_id, observations, cfg)

    if method == "incremental":
        points = _incremental_fits(series_id, years, values, cfg, with_ci)
    elif method == "refit":
        points = _refit_fits(series_id, years, values, cfg, with_ci)
    else:
        raise ValueError(f"Unknown method: {method}")

    logger.debug(
        "series=%s end=%s lengths=%s..%s",
        series_id, cfg.end_year, cfg.min_length, years.size,
    )
    return points


def trend_points_to_frame(points: List[TrendPoint]) -> pd.DataFrame:
    cols = ["series_id", "length", "start_year", "slope_per_decade", "ci_low", "ci_high", "n_obs"]
    if not points:
        return pd.DataFrame(columns=cols)
    df = pd.DataFrame(
        [
            {
                "series_id": p.series_id,
                "length": p.length,
                "start_year": p.start_year,
                "slope_per_decade": p.slope_per_decade,
                "ci_low": np.nan if p.ci_low is None else p.ci_low,
                "ci_high": np.nan if p.ci_high is None else p.ci_high,
                "n_obs": p.n_obs,
            }
            for p in points
        ],
        columns=cols,
    )
    return df.sort_values(["series_id", "length"], ascending=[True, False]).reset_index(drop=True)
