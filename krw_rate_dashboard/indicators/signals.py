"""Current-rate derivation and packaging of the series for AI analysis."""

import logging
import math
from datetime import date
from typing import Protocol

from krw_rate_dashboard.errors import AnalysisUnavailable, InsufficientData
from krw_rate_dashboard.models import AdvantageScore, DenseSeries


logger = logging.getLogger(__name__)

MIN_POINTS = 2

# Score bands for the advantage bar
BANDS = {
    "strong": {"range": (75, 101), "color": "#22c55e", "label": "Strong"},
    "moderate": {"range": (50, 75), "color": "#eab308", "label": "Moderate"},
    "weak": {"range": (25, 50), "color": "#f97316", "label": "Weak"},
    "poor": {"range": (0, 25), "color": "#ef4444", "label": "Poor"},
}


class AnalysisCollaborator(Protocol):
    """External analyst. Both calls are independent and may fail."""

    async def score(self, rates: list[float], current_rate: float) -> tuple[float, str]:
        """Return a raw 0-100 buying-advantage score and a one-line reason."""
        ...

    async def narrate(
        self, points: list[tuple[date, float]], current_rate: float
    ) -> str:
        """Return free-text commentary on the recent movement."""
        ...


def current_rate(series: DenseSeries) -> float | None:
    """Rate of the chronologically last point, or None for an empty series."""
    if not series:
        return None
    return series[-1].rate


def clamp_score(value: float) -> int:
    """Round and clamp a collaborator score into [0, 100]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"score must be a number, got {type(value).__name__}")
    if math.isnan(value):
        raise ValueError("score is NaN")
    # clamp before rounding so infinities stay representable; halves round up
    return int(math.floor(max(0.0, min(100.0, float(value))) + 0.5))


def advantage_band(score: int) -> dict:
    """Get display band info for a score."""
    for band in BANDS.values():
        if band["range"][0] <= score < band["range"][1]:
            return band
    return BANDS["poor"]


class SignalDeriver:
    """Hands the normalized series to the analysis collaborator.

    Failures are raised to the caller and never touch the refresh state.
    Nothing is retried here; re-invocation is up to the user.
    """

    def __init__(self, analyst: AnalysisCollaborator) -> None:
        self.analyst = analyst

    @staticmethod
    def _require_points(series: DenseSeries) -> float:
        if len(series) < MIN_POINTS:
            raise InsufficientData(
                f"need at least {MIN_POINTS} points for analysis, got {len(series)}"
            )
        return series[-1].rate

    async def assess(self, series: DenseSeries) -> AdvantageScore:
        """Score how favourable buying is at the current rate."""
        latest = self._require_points(series)
        rates = [p.rate for p in series]

        try:
            raw_score, reason = await self.analyst.score(rates, latest)
            score = clamp_score(raw_score)
        except Exception as e:
            logger.warning(f"Advantage analysis failed: {e}")
            raise AnalysisUnavailable("advantage analysis failed") from e

        if score != raw_score:
            logger.debug(f"Clamped advantage score {raw_score} -> {score}")
        return AdvantageScore(score=score, reason=str(reason).strip())

    async def explain(self, series: DenseSeries) -> str:
        """Ask for narrative commentary on the recent movement."""
        latest = self._require_points(series)
        points = [(p.date, p.rate) for p in series]

        try:
            text = await self.analyst.narrate(points, latest)
        except Exception as e:
            logger.warning(f"Narrative analysis failed: {e}")
            raise AnalysisUnavailable("narrative analysis failed") from e

        if not isinstance(text, str) or not text.strip():
            raise AnalysisUnavailable("narrative analysis returned no text")
        return text.strip()
