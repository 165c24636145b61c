"""Data models."""

from krw_rate_dashboard.models.rates import (
    AdvantageScore,
    CurrencyPair,
    DatedRate,
    DenseSeries,
    NormalizedPoint,
    NotificationPreferences,
    RefreshState,
    RefreshStatus,
    SparseSeries,
)

__all__ = [
    "AdvantageScore",
    "CurrencyPair",
    "DatedRate",
    "DenseSeries",
    "NormalizedPoint",
    "NotificationPreferences",
    "RefreshState",
    "RefreshStatus",
    "SparseSeries",
]
