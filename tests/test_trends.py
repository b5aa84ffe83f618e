import numpy as np
import pandas as pd
import pytest

from trendcheck.core.errors import (
    DegenerateFitError,
    DuplicateYearError,
    InsufficientDataError,
    InvalidYearError,
    TrendError,
)
from trendcheck.core.trends import TrendConfig, build_trend_series, fit_window_ols, prepare_series, trend_points_to_frame


def test_exact_line_recovers_slope_with_zero_width_ci(linear_series):
    cfg = TrendConfig(end_year=2014)
    points = build_trend_series("obs", linear_series(0.17, intercept=14.0), cfg)

    assert len(points) == 64 - 10 + 1
    for p in points:
        assert p.slope_per_decade == pytest.approx(0.17, rel=1e-9)
        assert p.ci_high - p.ci_low == pytest.approx(0.0, abs=1e-6)


def test_ordering_longest_first_and_start_years(linear_series):
    cfg = TrendConfig(end_year=2014)
    points = build_trend_series("obs", linear_series(0.2), cfg)

    lengths = [p.length for p in points]
    assert lengths == sorted(lengths, reverse=True)
    assert lengths[0] == 64 and lengths[-1] == 10
    assert points[0].start_year == 1951
    assert points[-1].start_year == 2005
    assert all(p.n_obs == p.length for p in points)


def test_incremental_matches_full_refit(linear_series):
    cfg = TrendConfig(end_year=2014)
    obs = linear_series(0.2, noise=0.05, seed=3)

    inc = build_trend_series("obs", obs, cfg, method="incremental")
    ref = build_trend_series("obs", obs, cfg, method="refit")

    assert [p.length for p in inc] == [p.length for p in ref]
    for a, b in zip(inc, ref):
        assert a.slope_per_decade == pytest.approx(b.slope_per_decade, rel=1e-9, abs=1e-12)
        assert a.ci_low == pytest.approx(b.ci_low, rel=1e-7, abs=1e-10)
        assert a.ci_high == pytest.approx(b.ci_high, rel=1e-7, abs=1e-10)


def test_fit_window_ols_matches_polyfit():
    rng = np.random.default_rng(7)
    years = np.arange(1990, 2015)
    values = 0.03 * (years - 1990) + rng.normal(0, 0.1, size=years.size)

    slope, lo, hi = fit_window_ols(years, values)
    expected = np.polyfit(years, values, 1)[0] * 10

    assert slope == pytest.approx(expected, rel=1e-9)
    assert lo < slope < hi


def test_windows_are_nested(linear_series):
    cfg = TrendConfig(end_year=2014)
    years, _ = prepare_series("obs", linear_series(0.2), cfg)
    points = build_trend_series("obs", linear_series(0.2), cfg)
    windows = {p.length: set(range(p.start_year, cfg.end_year + 1)) & set(years.tolist()) for p in points}

    for longer in windows:
        for shorter in windows:
            if longer > shorter:
                assert windows[shorter] <= windows[longer]


def test_unsorted_input_and_pairs_give_same_result(linear_series):
    cfg = TrendConfig(end_year=2014)
    df = linear_series(0.2, noise=0.05, seed=1)
    shuffled = df.sample(frac=1.0, random_state=0)
    pairs = list(zip(df["year"].tolist(), df["value"].tolist()))

    a = build_trend_series("obs", df, cfg)
    b = build_trend_series("obs", shuffled, cfg)
    c = build_trend_series("obs", pairs, cfg)
    assert [p.slope_per_decade for p in a] == pytest.approx([p.slope_per_decade for p in b])
    assert [p.slope_per_decade for p in a] == pytest.approx([p.slope_per_decade for p in c])


def test_end_year_restricts_windows(linear_series):
    cfg = TrendConfig(end_year=2000, span_years=64)
    points = build_trend_series("obs", linear_series(0.2, start=1880, end=2014), cfg)

    assert points[0].length == 64
    assert points[0].start_year == 1937
    assert all(p.start_year + p.length - 1 == 2000 for p in points)


def test_short_series_raises_insufficient_data(linear_series):
    cfg = TrendConfig(end_year=2014)
    with pytest.raises(InsufficientDataError) as exc:
        build_trend_series("short", linear_series(0.2, start=2006, end=2014), cfg)
    assert exc.value.series_id == "short"


def test_gap_truncates_longest_window(linear_series):
    cfg = TrendConfig(end_year=2014)
    df = linear_series(0.2)
    df = df[df["year"] != 1990]

    points = build_trend_series("gappy", df, cfg)
    assert points[0].length == 2014 - 1990
    assert points[0].start_year == 1991


def test_gap_inside_minimum_window_raises(linear_series):
    cfg = TrendConfig(end_year=2014)
    df = linear_series(0.2)
    df = df[df["year"] != 2010]
    with pytest.raises(InsufficientDataError):
        build_trend_series("gappy", df, cfg)


def test_missing_end_year_raises(linear_series):
    cfg = TrendConfig(end_year=2015)
    with pytest.raises(InsufficientDataError):
        build_trend_series("obs", linear_series(0.2), cfg)


def test_nan_value_treated_as_missing_year(linear_series):
    cfg = TrendConfig(end_year=2014)
    df = linear_series(0.2)
    df.loc[df["year"] == 1980, "value"] = np.nan

    points = build_trend_series("obs", df, cfg)
    assert points[0].start_year == 1981
    assert all(np.isfinite(p.slope_per_decade) for p in points)


def test_duplicate_years_rejected(linear_series):
    cfg = TrendConfig(end_year=2014)
    df = linear_series(0.2)
    df = pd.concat([df, df.tail(1)], ignore_index=True)
    with pytest.raises(ValueError, match="duplicate"):
        build_trend_series("obs", df, cfg)


def test_without_ci(linear_series):
    cfg = TrendConfig(end_year=2014)
    points = build_trend_series("m", linear_series(0.2), cfg, with_ci=False)
    assert all(p.ci_low is None and p.ci_high is None for p in points)

    df = trend_points_to_frame(points)
    assert df["ci_low"].isna().all()
    assert list(df["length"]) == sorted(df["length"], reverse=True)


def test_config_validation():
    with pytest.raises(ValueError):
        TrendConfig(end_year=2014, span_years=5)
    with pytest.raises(ValueError):
        TrendConfig(end_year=2014, confidence=1.5)
    assert TrendConfig(end_year=2014).start_year == 1951


def test_min_length_below_ten_rejected():
    with pytest.raises(ValueError, match="min_length"):
        TrendConfig(end_year=2014, min_length=5)


def test_duplicate_year_error_carries_series_id(linear_series):
    df = linear_series(0.2)
    df = pd.concat([df, df.tail(1)], ignore_index=True)
    with pytest.raises(DuplicateYearError) as exc:
        build_trend_series("dup", df, TrendConfig(end_year=2014))
    assert exc.value.series_id == "dup"
    assert isinstance(exc.value, TrendError)


def test_fractional_years_rejected(linear_series):
    df = linear_series(0.2)
    df["year"] = df["year"].astype(float)
    df.loc[df["year"] == 2000, "year"] = 2000.5
    with pytest.raises(InvalidYearError) as exc:
        build_trend_series("obs", df, TrendConfig(end_year=2014))
    assert exc.value.series_id == "obs"


def test_fit_window_ols_constant_years_is_degenerate():
    with pytest.raises(DegenerateFitError):
        fit_window_ols([2000.0] * 5, [0.1, 0.2, 0.3, 0.4, 0.5])


def test_overflowing_statistics_raise_degenerate_fit():
    years = np.arange(1990, 2015)
    values = 1e200 * (-1.0) ** np.arange(years.size)
    df = pd.DataFrame({"year": years, "value": values})
    with np.errstate(over="ignore", invalid="ignore"):
        with pytest.raises(DegenerateFitError) as exc:
            build_trend_series("huge", df, TrendConfig(end_year=2014), with_ci=True)
    assert exc.value.series_id == "huge"
    assert exc.value.length is not None
