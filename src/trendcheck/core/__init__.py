"""
Recursive trends, ensemble percentile bands and observed-vs-ensemble classification.
"""

from .errors import (  # noqa: F401
    DegenerateFitError,
    EmptyEnsembleError,
    DuplicateYearError,
    InsufficientDataError,
    MisalignedLengthError,
    InvalidYearError,
    TrendError,
)
from .trends import TrendConfig, TrendPoint, build_trend_series, fit_window_ols  # noqa: F401
from .ensemble import EnsembleBand, build_ensemble_trends, summarize_ensemble  # noqa: F401
from .classify import Classification, PointComparison, ci_overlaps_band, classify_series, classify_slope  # noqa: F401
from .pipeline import RunConfig, RunResult, run_comparison, run_scenarios, write_outputs  # noqa: F401
