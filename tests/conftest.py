from __future__ import annotations

from datetime import date, timedelta

import pytest

from krw_rate_dashboard.config import Settings
from krw_rate_dashboard.models import NormalizedPoint


@pytest.fixture
def settings(tmp_path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    for name in (
        "RATE_API_URL",
        "RATE_BASE",
        "RATE_QUOTE",
        "WINDOW_DAYS",
        "REFRESH_INTERVAL_SECONDS",
        "DASHBOARD_TIMEZONE",
        "GEMINI_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return Settings(
        rate_api_url="https://rates.test",
        gemini_api_key="test-key",
        gemini_url="https://gemini.test/v1beta",
        cache_dir=tmp_path / "cache",
    )


@pytest.fixture
def make_series():
    """Build a dense series of consecutive days from a list of rates."""

    def _make(rates: list[float], start: date = date(2026, 10, 1)) -> tuple[NormalizedPoint, ...]:
        points = []
        for offset, rate in enumerate(rates):
            day = start + timedelta(days=offset)
            points.append(NormalizedPoint(date=day, rate=rate, weekday=day.isoweekday() % 7))
        return tuple(points)

    return _make
