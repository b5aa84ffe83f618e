from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Tuple

import pandas as pd

MONTHS = ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"]
KNOWN_COLUMNS = {"year", "model", "value", *MONTHS}


def _clean_columns(df: pd.DataFrame) -> pd.DataFrame:
    # case-insensitive match on known names; other headers (model names) are only stripped
    df = df.copy()
    cols = []
    for c in df.columns:
        s = str(c).strip()
        cols.append(s.lower() if s.lower() in KNOWN_COLUMNS else s)
    df.columns = cols
    return df


def normalize_ensemble(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalise an ensemble table to long format: model (str), year (int), value (float).

    - Wide tables (year + one column per model) are melted.
    - Non-numeric values become NaN and those rows are dropped.
    - Duplicate (model, year) pairs are rejected.
    """
    df = _clean_columns(df)
    if "year" not in df.columns:
        raise ValueError("Ensemble table needs a 'year' column.")

    if not {"model", "value"}.issubset(df.columns):
        model_cols = [c for c in df.columns if c != "year"]
        if not model_cols:
            raise ValueError("Ensemble table has no model columns.")
        df = df.melt(id_vars="year", value_vars=model_cols, var_name="model", value_name="value")

    out = pd.DataFrame(
        {
            "model": df["model"].astype(str).map(str.strip),
            "year": pd.to_numeric(df["year"], errors="coerce"),
            "value": pd.to_numeric(df["value"], errors="coerce"),
        }
    )
    out = out.dropna(subset=["model", "year", "value"]).reset_index(drop=True)
    out["year"] = out["year"].astype(int)

    dup = out.duplicated(subset=["model", "year"], keep=False)
    if dup.any():
        pairs = out.loc[dup, ["model", "year"]].drop_duplicates().head(5).values.tolist()
        raise ValueError(f"Duplicate (model, year) rows in ensemble table, e.g. {pairs}")

    return out.sort_values(["model", "year"]).reset_index(drop=True)


def validate_ensemble(df: pd.DataFrame, min_years: int = 10) -> Tuple[bool, List[str]]:
    """
    Check a normalised ensemble table. Returns (ok, errors); warnings about
    short models are reported as errors so callers can decide.
    """
    errors: List[str] = []
    for col in ["model", "year", "value"]:
        if col not in df.columns:
            errors.append(f"Missing column: {col}")
    if errors:
        return False, errors

    if df.empty:
        errors.append("Ensemble table is empty.")
        return False, errors

    counts = df.groupby("model")["year"].nunique()
    short = counts[counts < min_years]
    for model, n in short.items():
        errors.append(f"Model {model} has only {int(n)} years (< {min_years}).")

    return len(errors) == 0, errors


def read_ensemble_csv(path: str | Path, **read_kwargs) -> pd.DataFrame:
    df = pd.read_csv(Path(path), **read_kwargs)
    return normalize_ensemble(df)


def normalize_observations(df: pd.DataFrame) -> pd.DataFrame:
    """
    Observed series -> year (int), value (float).

    Accepts either year + value, or Year + 12 monthly columns (Jan..Dec); in
    the latter case value is the mean of the 12 monthly anomalies and years
    with any missing month are dropped (no gap filling).
    """
    df = _clean_columns(df)
    if "year" not in df.columns:
        raise ValueError("Observed table needs a 'year' column.")

    if "value" in df.columns:
        value = pd.to_numeric(df["value"], errors="coerce")
    elif set(MONTHS).issubset(df.columns):
        monthly = df[MONTHS].apply(pd.to_numeric, errors="coerce")
        value = monthly.mean(axis=1, skipna=False)
    else:
        raise ValueError("Observed table needs either a 'value' column or Jan..Dec monthly columns.")

    out = pd.DataFrame({"year": pd.to_numeric(df["year"], errors="coerce"), "value": value})
    out = out.dropna(subset=["year", "value"]).reset_index(drop=True)
    out["year"] = out["year"].astype(int)

    if out["year"].duplicated().any():
        dup = sorted(out.loc[out["year"].duplicated(), "year"].unique().tolist())
        raise ValueError(f"Duplicate years in observed table: {dup}")

    return out.sort_values("year").reset_index(drop=True)


def read_observations_csv(
    path: str | Path,
    skiprows: int = 0,
    na_values: Iterable[str] = ("***", "****"),
) -> pd.DataFrame:
    """Read an observed series (e.g. GISTEMP-style Year, Jan..Dec table with '***' for missing)."""
    df = pd.read_csv(Path(path), skiprows=skiprows, na_values=list(na_values))
    return normalize_observations(df)
