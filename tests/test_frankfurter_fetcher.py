"""Tests for the frankfurter.app rate source."""

from __future__ import annotations

import asyncio
from datetime import date

import httpx
import pytest

from krw_rate_dashboard.data.frankfurter_fetcher import FrankfurterFetcher, parse_rates
from krw_rate_dashboard.errors import MalformedResponse, UpstreamUnavailable
from krw_rate_dashboard.models import CurrencyPair

PAIR = CurrencyPair("USD", "KRW")
START = date(2026, 10, 1)
END = date(2026, 10, 5)


def fetch_with(settings, handler) -> dict[date, float]:
    async def run() -> dict[date, float]:
        client = httpx.AsyncClient(
            base_url=settings.rate_api_url, transport=httpx.MockTransport(handler)
        )
        async with client:
            fetcher = FrankfurterFetcher(settings, client=client)
            return await fetcher.fetch(PAIR, START, END)

    return asyncio.run(run())


def test_fetch_returns_sparse_mapping(settings) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "amount": 1.0,
                "base": "USD",
                "start_date": "2026-09-30",
                "end_date": "2026-10-05",
                "rates": {
                    "2026-09-30": {"KRW": 1391.2},
                    "2026-10-01": {"KRW": 1393.45},
                    "2026-10-02": {"KRW": 1398},
                    "2026-10-05": {"KRW": 1402.1},
                },
            },
        )

    rates = fetch_with(settings, handler)

    assert rates == {
        date(2026, 9, 30): 1391.2,
        date(2026, 10, 1): 1393.45,
        date(2026, 10, 2): 1398.0,
        date(2026, 10, 5): 1402.1,
    }
    assert seen[0].url.path == "/2026-10-01..2026-10-05"
    assert seen[0].url.params["from"] == "USD"
    assert seen[0].url.params["to"] == "KRW"


def test_empty_rates_is_not_an_error(settings) -> None:
    rates = fetch_with(settings, lambda request: httpx.Response(200, json={"rates": {}}))

    assert rates == {}


def test_non_success_status_is_upstream_unavailable(settings) -> None:
    with pytest.raises(UpstreamUnavailable, match="503"):
        fetch_with(settings, lambda request: httpx.Response(503, text="maintenance"))


def test_network_error_is_upstream_unavailable(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnavailable):
        fetch_with(settings, handler)


def test_invalid_json_is_malformed(settings) -> None:
    with pytest.raises(MalformedResponse):
        fetch_with(settings, lambda request: httpx.Response(200, text="<html>oops</html>"))


def test_start_after_end_is_rejected(settings) -> None:
    async def run() -> None:
        fetcher = FrankfurterFetcher(settings)
        await fetcher.fetch(PAIR, END, START)

    with pytest.raises(ValueError):
        asyncio.run(run())


def test_parse_skips_days_without_quote_currency() -> None:
    data = {"rates": {"2026-10-01": {"EUR": 0.92}, "2026-10-02": {"KRW": 1400.0}}}

    assert parse_rates(data, "KRW") == {date(2026, 10, 2): 1400.0}


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"message": "not found"},
        {"rates": ["2026-10-01"]},
        {"rates": {"10/01/2026": {"KRW": 1400.0}}},
        {"rates": {"2026-10-01": 1400.0}},
        {"rates": {"2026-10-01": {"KRW": "1400.0"}}},
        {"rates": {"2026-10-01": {"KRW": True}}},
    ],
)
def test_parse_rejects_unexpected_shapes(payload) -> None:
    with pytest.raises(MalformedResponse):
        parse_rates(payload, "KRW")
