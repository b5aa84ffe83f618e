from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from trendcheck.core.ensemble import EnsembleBand
from trendcheck.core.errors import MisalignedLengthError
from trendcheck.core.trends import TrendPoint


class Classification(str, Enum):
    """Percentile rank of an observed trend within the ensemble point estimates.

    Used for colour coding only; this is not a hypothesis test.
    """
    CONSISTENT = "consistent"
    BELOW_95 = "below_95"
    BELOW_97_5 = "below_97_5"

    @property
    def severity(self) -> int:
        return {"consistent": 0, "below_95": 1, "below_97_5": 2}[self.value]


@dataclass(frozen=True)
class PointComparison:
    length: int
    start_year: int
    slope_per_decade: float
    ci_low: Optional[float]
    ci_high: Optional[float]
    classification: Classification
    ci_overlap: Optional[bool]
    band: EnsembleBand


def classify_slope(slope: float, band: EnsembleBand) -> Classification:
    # most extreme first
    if slope < band.p2_5:
        return Classification.BELOW_97_5
    if slope < band.p5:
        return Classification.BELOW_95
    return Classification.CONSISTENT


def ci_overlaps_band(point: TrendPoint, band: EnsembleBand) -> Optional[bool]:
    """Whether the observed confidence interval meets the 2.5-97.5% ensemble spread."""
    if point.ci_low is None or point.ci_high is None:
        return None
    return bool(point.ci_low <= band.p97_5 and point.ci_high >= band.p2_5)


def classify_series(
    observed: Sequence[TrendPoint],
    bands: Sequence[EnsembleBand],
) -> List[PointComparison]:
    """Compare observed trends with ensemble bands at every shared length, longest first."""
    band_by_length = {int(b.length): b for b in bands}
    shared = sorted({int(p.length) for p in observed} & set(band_by_length), reverse=True)
    if not shared:
        obs_lengths = sorted({int(p.length) for p in observed})
        raise MisalignedLengthError(
            f"no shared window length (observed={_span(obs_lengths)}, ensemble={_span(sorted(band_by_length))})"
        )

    point_by_length = {int(p.length): p for p in observed}
    out: List[PointComparison] = []
    for length in shared:
        p = point_by_length[length]
        band = band_by_length[length]
        out.append(
            PointComparison(
                length=length,
                start_year=p.start_year,
                slope_per_decade=p.slope_per_decade,
                ci_low=p.ci_low,
                ci_high=p.ci_high,
                classification=classify_slope(p.slope_per_decade, band),
                ci_overlap=ci_overlaps_band(p, band),
                band=band,
            )
        )
    return out


def _span(lengths: List[int]) -> str:
    return f"{lengths[0]}..{lengths[-1]}" if lengths else "none"


def comparisons_to_frame(comparisons: Sequence[PointComparison]) -> pd.DataFrame:
    cols = [
        "length", "start_year", "slope_per_decade", "ci_low", "ci_high",
        "classification", "ci_overlap", "ens_mean", "ens_p2_5", "ens_p5", "ens_p95", "ens_p97_5",
    ]
    rows = []
    for c in comparisons:
        rows.append(
            {
                "length": c.length,
                "start_year": c.start_year,
                "slope_per_decade": c.slope_per_decade,
                "ci_low": np.nan if c.ci_low is None else c.ci_low,
                "ci_high": np.nan if c.ci_high is None else c.ci_high,
                "classification": c.classification.value,
                "ci_overlap": c.ci_overlap,
                "ens_mean": c.band.mean,
                "ens_p2_5": c.band.p2_5,
                "ens_p5": c.band.p5,
                "ens_p95": c.band.p95,
                "ens_p97_5": c.band.p97_5,
            }
        )
    return pd.DataFrame(rows, columns=cols)
