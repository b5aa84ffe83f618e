from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Literal, Tuple

import pandas as pd

from trendcheck.core.classify import PointComparison, classify_series, comparisons_to_frame
from trendcheck.core.ensemble import EnsembleBand, bands_to_frame, build_ensemble_trends, summarize_ensemble
from trendcheck.core.trends import MIN_WINDOW_LENGTH, TrendConfig, TrendPoint, build_trend_series, trend_points_to_frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunConfig:
    end_years: Tuple[int, ...] = (2014, 2005, 2000)
    span_years: int = 64
    min_length: int = MIN_WINDOW_LENGTH
    confidence: float = 0.95
    on_model_error: Literal["skip", "raise"] = "skip"
    observed_id: str = "observed"

    def trend_config(self, end_year: int) -> TrendConfig:
        return TrendConfig(
            end_year=int(end_year),
            span_years=int(self.span_years),
            min_length=int(self.min_length),
            confidence=float(self.confidence),
        )


@dataclass(frozen=True)
class RunResult:
    end_year: int
    start_year: int
    bands: List[EnsembleBand]
    observed: List[TrendPoint]
    comparisons: List[PointComparison]
    skipped_models: Dict[str, str] = field(default_factory=dict)
    n_models: int = 0

    @property
    def bands_df(self) -> pd.DataFrame:
        return bands_to_frame(self.bands)

    @property
    def observed_df(self) -> pd.DataFrame:
        return trend_points_to_frame(self.observed)

    @property
    def comparison_df(self) -> pd.DataFrame:
        return comparisons_to_frame(self.comparisons)

    def class_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for c in self.comparisons:
            counts[c.classification.value] = counts.get(c.classification.value, 0) + 1
        return counts


def run_comparison(
    ensemble_df: pd.DataFrame,
    observed_df: pd.DataFrame,
    end_year: int,
    cfg: RunConfig = RunConfig(),
) -> RunResult:
    """
    One independent run anchored at `end_year`:
      ensemble -> per-model recursive trends -> percentile bands
      observed -> recursive trends with CI -> classification against bands
    """
    tcfg = cfg.trend_config(end_year)

    trends, skipped = build_ensemble_trends(ensemble_df, tcfg, on_error=cfg.on_model_error)
    bands = summarize_ensemble(trends, min_length=tcfg.min_length)

    observed = build_trend_series(cfg.observed_id, observed_df, tcfg, with_ci=True)
    comparisons = classify_series(observed, bands)

    result = RunResult(
        end_year=tcfg.end_year,
        start_year=tcfg.start_year,
        bands=bands,
        observed=observed,
        comparisons=comparisons,
        skipped_models=dict(skipped),
        n_models=len(trends),
    )
    logger.info(
        "end=%s start=%s models=%s skipped=%s lengths=%s classes=%s",
        result.end_year, result.start_year, result.n_models, len(skipped),
        len(comparisons), result.class_counts(),
    )
    return result


def run_scenarios(
    ensemble_df: pd.DataFrame,
    observed_df: pd.DataFrame,
    cfg: RunConfig = RunConfig(),
) -> Dict[int, RunResult]:
    """One run per configured end year; runs share only the read-only inputs."""
    return {int(e): run_comparison(ensemble_df, observed_df, int(e), cfg) for e in cfg.end_years}


def write_outputs(result: RunResult, outdir: str | Path) -> List[Path]:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    written = []
    for name, df in (
        (f"bands_{result.end_year}.csv", result.bands_df),
        (f"observed_trends_{result.end_year}.csv", result.observed_df),
        (f"comparison_{result.end_year}.csv", result.comparison_df),
    ):
        fp = outdir / name
        df.to_csv(fp, index=False)
        written.append(fp)

    if result.skipped_models:
        fp = outdir / f"skipped_models_{result.end_year}.csv"
        pd.DataFrame(
            [{"model": m, "reason": r} for m, r in sorted(result.skipped_models.items())],
            columns=["model", "reason"],
        ).to_csv(fp, index=False)
        written.append(fp)

    return written
