"""Tests for current-rate derivation and the analysis hand-off."""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from krw_rate_dashboard.errors import AnalysisUnavailable, InsufficientData
from krw_rate_dashboard.indicators.signals import (
    SignalDeriver,
    advantage_band,
    clamp_score,
    current_rate,
)


class FakeAnalyst:
    def __init__(self, score=(60.0, "stable"), narrative="steady week", error=None) -> None:
        self._score = score
        self._narrative = narrative
        self._error = error
        self.score_calls: list[tuple[list[float], float]] = []
        self.narrate_calls: list[tuple[list[tuple[date, float]], float]] = []

    async def score(self, rates, current):
        self.score_calls.append((rates, current))
        if self._error:
            raise self._error
        return self._score

    async def narrate(self, points, current):
        self.narrate_calls.append((points, current))
        if self._error:
            raise self._error
        return self._narrative


def test_current_rate_is_last_point(make_series) -> None:
    assert current_rate(make_series([1380.0, 1390.5, 1385.25])) == 1385.25


def test_current_rate_of_empty_series_is_unset() -> None:
    assert current_rate(()) is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(137, 100), (-20, 0), (55.5, 56), (49.4, 49), (0, 0), (100, 100), (float("inf"), 100)],
)
def test_clamp_score(raw, expected) -> None:
    assert clamp_score(raw) == expected


def test_clamp_score_rejects_non_numbers() -> None:
    with pytest.raises(TypeError):
        clamp_score("80")
    with pytest.raises(ValueError):
        clamp_score(float("nan"))


@pytest.mark.parametrize(
    ("score", "label"),
    [(100, "Strong"), (75, "Strong"), (74, "Moderate"), (50, "Moderate"), (30, "Weak"), (0, "Poor")],
)
def test_advantage_band(score, label) -> None:
    assert advantage_band(score)["label"] == label


@pytest.mark.parametrize(("raw", "stored"), [(137, 100), (-20, 0)])
def test_assess_clamps_out_of_range_scores(make_series, raw, stored) -> None:
    deriver = SignalDeriver(FakeAnalyst(score=(raw, " overshoot ")))

    result = asyncio.run(deriver.assess(make_series([1380.0, 1390.0])))

    assert result.score == stored
    assert result.reason == "overshoot"


def test_assess_passes_rates_and_current_rate(make_series) -> None:
    analyst = FakeAnalyst()
    deriver = SignalDeriver(analyst)

    asyncio.run(deriver.assess(make_series([1380.0, 1390.0, 1401.5])))

    assert analyst.score_calls == [([1380.0, 1390.0, 1401.5], 1401.5)]


def test_explain_passes_dated_points(make_series) -> None:
    analyst = FakeAnalyst(narrative="  ## 상승 추세  ")
    deriver = SignalDeriver(analyst)

    text = asyncio.run(deriver.explain(make_series([1380.0, 1390.0])))

    assert text == "## 상승 추세"
    assert analyst.narrate_calls == [
        ([(date(2026, 10, 1), 1380.0), (date(2026, 10, 2), 1390.0)], 1390.0)
    ]


@pytest.mark.parametrize("rates", [[], [1380.0]])
def test_analysis_needs_two_points(make_series, rates) -> None:
    analyst = FakeAnalyst()
    deriver = SignalDeriver(analyst)

    with pytest.raises(InsufficientData):
        asyncio.run(deriver.assess(make_series(rates)))
    with pytest.raises(InsufficientData):
        asyncio.run(deriver.explain(make_series(rates)))
    assert analyst.score_calls == []


def test_collaborator_failure_is_wrapped_and_not_retried(make_series) -> None:
    analyst = FakeAnalyst(error=ConnectionError("quota exceeded"))
    deriver = SignalDeriver(analyst)
    series = make_series([1380.0, 1390.0])

    with pytest.raises(AnalysisUnavailable) as excinfo:
        asyncio.run(deriver.assess(series))
    with pytest.raises(AnalysisUnavailable):
        asyncio.run(deriver.explain(series))

    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert len(analyst.score_calls) == 1
    assert len(analyst.narrate_calls) == 1


def test_blank_narrative_is_unavailable(make_series) -> None:
    deriver = SignalDeriver(FakeAnalyst(narrative="   "))

    with pytest.raises(AnalysisUnavailable):
        asyncio.run(deriver.explain(make_series([1380.0, 1390.0])))
