"""Rate fetching and preference storage."""

from .frankfurter_fetcher import FrankfurterFetcher, RateSource
from .preferences import PreferenceStore

__all__ = ["FrankfurterFetcher", "RateSource", "PreferenceStore"]
