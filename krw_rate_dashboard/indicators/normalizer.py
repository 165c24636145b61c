"""Turn a sparse business-day rate feed into one point per calendar day."""

import math
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

import pandas as pd

from krw_rate_dashboard.models import DatedRate, DenseSeries, NormalizedPoint, SparseSeries


CENT = Decimal("0.01")


def trailing_window(today: date, days: int = 30) -> tuple[date, date]:
    """Return the inclusive ``days``-long window ending on ``today``."""
    if days < 1:
        raise ValueError(f"days must be positive, got {days}")
    return today - timedelta(days=days - 1), today


def round2(value: float) -> float:
    """Round to 2 decimal places, halves away from zero."""
    return float(Decimal(str(float(value))).quantize(CENT, rounding=ROUND_HALF_UP))


def weekday_sunday_first(day: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


def _is_valid_rate(value: float) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def observations(sparse: SparseSeries) -> list[DatedRate]:
    """Valid observations in date order; non-positive or non-finite rates are dropped."""
    return [
        DatedRate(date=day, rate=float(rate))
        for day, rate in sorted(sparse.items())
        if _is_valid_rate(rate)
    ]


def normalize(
    sparse: SparseSeries, window_start: date, window_end: date
) -> DenseSeries:
    """
    Forward-fill a sparse date -> rate mapping over a calendar window.

    Each day in ``[window_start, window_end]`` gets the most recent valid
    observation on or before it (last observation carried forward).
    Observations dated before the window only seed the value in force on
    ``window_start``, and they are the only seeds: the latest of them wins.
    An in-window quote is never carried backwards, so days before the first
    available observation are omitted rather than back-filled or zeroed.

    Args:
        sparse: Observed rates; non-positive or non-finite values are dropped
        window_start: First calendar day (inclusive)
        window_end: Last calendar day (inclusive)

    Returns:
        Points ordered by date, rates rounded to 2 dp at emission
    """
    if window_start > window_end:
        raise ValueError(f"window_start {window_start} is after window_end {window_end}")

    valid = [obs for obs in observations(sparse) if obs.date <= window_end]
    if not valid:
        return ()

    observed = pd.Series(
        [obs.rate for obs in valid], index=pd.to_datetime([obs.date for obs in valid])
    )
    days = pd.date_range(window_start, window_end, freq="D")

    # Align on the union so quotes before the window can carry in
    filled = observed.reindex(observed.index.union(days)).ffill().reindex(days).dropna()

    points = []
    for ts, rate in filled.items():
        day = ts.date()
        points.append(
            NormalizedPoint(date=day, rate=round2(rate), weekday=weekday_sunday_first(day))
        )
    return tuple(points)


def to_frame(series: DenseSeries) -> pd.DataFrame:
    """Dense series as a DataFrame with a DatetimeIndex, for charting."""
    if not series:
        return pd.DataFrame(columns=["rate", "weekday", "label"])

    df = pd.DataFrame(
        {
            "rate": [p.rate for p in series],
            "weekday": [p.weekday for p in series],
            "label": [p.label for p in series],
        },
        index=pd.to_datetime([p.date for p in series]),
    )
    df.index.name = "date"
    return df
