"""Frankfurter (ECB reference rate) fetcher for date-range rate feeds."""

import json
import logging
import math
from datetime import date, timedelta
from typing import Protocol

import httpx

from krw_rate_dashboard.config import Settings
from krw_rate_dashboard.errors import MalformedResponse, UpstreamUnavailable
from krw_rate_dashboard.models import CurrencyPair, SparseSeries


logger = logging.getLogger(__name__)


class RateSource(Protocol):
    """Anything that can return a sparse date -> rate mapping for a window."""

    async def fetch(
        self, pair: CurrencyPair, start_date: date, end_date: date
    ) -> SparseSeries:
        ...


class FrankfurterFetcher:
    """Fetches daily reference rates from the frankfurter.app API.

    The feed only quotes business days, so weekends and holidays are simply
    absent from the payload. When ``start_date`` falls on such a day the API
    returns the previous business day's quote instead, which is kept so the
    normalizer can carry it into the window.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.rate_api_url,
                timeout=self.settings.request_timeout,
            )
        return self._client

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FrankfurterFetcher":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def fetch(
        self, pair: CurrencyPair, start_date: date, end_date: date
    ) -> SparseSeries:
        """
        Fetch observed rates for a date range.

        Args:
            pair: Currency pair, rates are quote units per one base unit
            start_date: First day of the range (inclusive)
            end_date: Last day of the range (inclusive)

        Returns:
            Mapping from date to rate; days without a quote are absent

        Raises:
            UpstreamUnavailable: network error or non-2xx response
            MalformedResponse: payload is not a date -> rate mapping
        """
        if start_date > end_date:
            raise ValueError(f"start_date {start_date} is after end_date {end_date}")

        path = f"/{start_date.isoformat()}..{end_date.isoformat()}"
        params = {"from": pair.base, "to": pair.quote}
        logger.debug(f"GET {path} {params}")

        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailable(
                f"{pair} feed returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"{pair} feed unreachable: {e!r}") from e

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponse(f"{pair} feed returned invalid JSON") from e

        rates = parse_rates(data, pair.quote)
        logger.info(
            f"Fetched {len(rates)} {pair} quotes for {start_date} .. {end_date}"
        )
        return rates


def parse_rates(data: object, quote: str) -> SparseSeries:
    """Turn a ``{"rates": {"YYYY-MM-DD": {"KRW": 1380.5}}}`` payload into a sparse series."""
    if not isinstance(data, dict) or not isinstance(data.get("rates"), dict):
        raise MalformedResponse("payload has no 'rates' object")

    rates: SparseSeries = {}
    for key, record in data["rates"].items():
        try:
            day = date.fromisoformat(key)
        except (TypeError, ValueError) as e:
            raise MalformedResponse(f"invalid date key {key!r}") from e
        if not isinstance(record, dict):
            raise MalformedResponse(f"rate record for {key} is not an object")

        value = record.get(quote)
        if value is None:
            # no quote for this currency that day
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedResponse(f"non-numeric {quote} rate for {key}: {value!r}")
        if not math.isfinite(value):
            raise MalformedResponse(f"non-finite {quote} rate for {key}")
        rates[day] = float(value)

    return rates


def main() -> None:
    """CLI entry point for a one-off fetch."""
    import argparse
    import asyncio
    import sys
    from datetime import datetime

    from krw_rate_dashboard.errors import RateSourceError
    from krw_rate_dashboard.indicators.normalizer import normalize, trailing_window
    from krw_rate_dashboard.indicators.signals import current_rate

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Fetch recent USD/KRW reference rates")
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Window length in days (default: WINDOW_DAYS or 30)",
    )
    args = parser.parse_args()

    settings = Settings()
    days = args.days or settings.window_days
    pair = CurrencyPair(settings.base_currency, settings.quote_currency)
    start, end = trailing_window(datetime.now(settings.tzinfo).date(), days)

    async def run() -> SparseSeries:
        async with FrankfurterFetcher(settings) as fetcher:
            return await fetcher.fetch(pair, start, end)

    try:
        sparse = asyncio.run(run())
    except RateSourceError as e:
        print(f"Fetch failed: {e}")
        sys.exit(1)

    series = normalize(sparse, start, end)
    print(f"\n{pair} {start} .. {end}")
    print("-" * 40)
    for point in series:
        quoted = "" if point.date in sparse else "  (carried)"
        print(f"  {point.date}  {point.rate:>10,.2f}{quoted}")

    latest = current_rate(series)
    if latest is None:
        print("\nNo data available.")
    else:
        print(f"\nCurrent: {latest:,.2f} {pair.quote}")


if __name__ == "__main__":
    main()
