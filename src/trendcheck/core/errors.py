from __future__ import annotations

from typing import Optional


class TrendError(ValueError):
    """Base class for recursive-trend failures.

    Carries the series id and window length (when known) so a run can report
    which series/length combination failed.
    """

    def __init__(self, message: str, series_id: Optional[str] = None, length: Optional[int] = None) -> None:
        self.series_id = series_id
        self.length = length
        prefix = []
        if series_id is not None:
            prefix.append(f"series={series_id}")
        if length is not None:
            prefix.append(f"length={length}")
        full = f"[{' '.join(prefix)}] {message}" if prefix else message
        super().__init__(full)
        self.reason = message


class InsufficientDataError(TrendError):
    pass


class DegenerateFitError(TrendError):
    pass


class EmptyEnsembleError(TrendError):
    pass


class MisalignedLengthError(TrendError):
    pass


class InvalidYearError(TrendError):
    pass


class DuplicateYearError(InvalidYearError):
    pass
