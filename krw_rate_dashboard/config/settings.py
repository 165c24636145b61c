"""Configuration settings for the dashboard."""

from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo
import os

from dotenv import load_dotenv


load_dotenv()


# frankfurter.app serves ECB reference rates, quoted on business days only
DEFAULT_RATE_API_URL = "https://api.frankfurter.app"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class Settings:
    """Application settings."""

    rate_api_url: str = field(
        default_factory=lambda: os.getenv("RATE_API_URL", DEFAULT_RATE_API_URL)
    )
    base_currency: str = field(default_factory=lambda: os.getenv("RATE_BASE", "USD"))
    quote_currency: str = field(default_factory=lambda: os.getenv("RATE_QUOTE", "KRW"))
    window_days: int = field(default_factory=lambda: _env_int("WINDOW_DAYS", 30))
    refresh_interval: float = field(
        default_factory=lambda: _env_float("REFRESH_INTERVAL_SECONDS", 60.0)
    )
    request_timeout: float = 10.0
    timezone: str = field(
        default_factory=lambda: os.getenv("DASHBOARD_TIMEZONE", "Asia/Seoul")
    )
    gemini_api_key: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))
    gemini_model: str = field(
        default_factory=lambda: os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
    )
    gemini_url: str = DEFAULT_GEMINI_URL
    cache_dir: Path = field(
        default_factory=lambda: Path(__file__).parent.parent.parent / "cache"
    )
    db_path: Path = field(init=False)

    def __post_init__(self) -> None:
        if self.window_days < 2:
            raise ValueError(f"window_days must be at least 2, got {self.window_days}")
        if self.refresh_interval <= 0:
            raise ValueError(
                f"refresh_interval must be positive, got {self.refresh_interval}"
            )
        self.base_currency = self.base_currency.upper()
        self.quote_currency = self.quote_currency.upper()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = self.cache_dir / "preferences.db"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def has_analysis(self) -> bool:
        """Check if a Gemini API key is configured."""
        return bool(self.gemini_api_key)

    def validate_analysis(self) -> None:
        """Validate settings required by the AI analysis calls."""
        if not self.gemini_api_key:
            raise ValueError(
                "GEMINI_API_KEY not set. Get one at: "
                "https://aistudio.google.com/app/apikey"
            )
