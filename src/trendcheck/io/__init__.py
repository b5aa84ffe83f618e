from .readers import (  # noqa: F401
    normalize_ensemble,
    normalize_observations,
    read_ensemble_csv,
    read_observations_csv,
    validate_ensemble,
)
