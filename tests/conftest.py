import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def linear_series():
    def _make(slope_per_decade, start=1951, end=2014, intercept=0.0, noise=0.0, seed=0):
        years = np.arange(start, end + 1)
        values = intercept + slope_per_decade / 10.0 * (years - start)
        if noise:
            rng = np.random.default_rng(seed)
            values = values + rng.normal(0.0, noise, size=years.size)
        return pd.DataFrame({"year": years, "value": values})

    return _make


@pytest.fixture
def three_model_ensemble(linear_series):
    frames = []
    for name, slope in [("model_a", 0.1), ("model_b", 0.2), ("model_c", 0.3)]:
        df = linear_series(slope)
        df.insert(0, "model", name)
        frames.append(df)
    return pd.concat(frames, ignore_index=True)
