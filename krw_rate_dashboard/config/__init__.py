"""Application configuration."""

from krw_rate_dashboard.config.settings import Settings, DEFAULT_RATE_API_URL, DEFAULT_GEMINI_MODEL

__all__ = ["Settings", "DEFAULT_RATE_API_URL", "DEFAULT_GEMINI_MODEL"]
