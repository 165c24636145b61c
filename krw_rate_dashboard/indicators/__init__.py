"""Series normalization and signal derivation."""

from krw_rate_dashboard.indicators.normalizer import normalize, to_frame, trailing_window
from krw_rate_dashboard.indicators.signals import SignalDeriver, current_rate

__all__ = ["normalize", "to_frame", "trailing_window", "SignalDeriver", "current_rate"]
