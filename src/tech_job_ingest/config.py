import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

PROVIDER_NAMES = ("gemini", "openai", "anthropic")
DATE_SINCE_POSTED_CHOICES = ("past month", "past week", "24hr")


def get_config() -> dict[str, str]:
    """
    Read raw configuration values from environment variables.
    Validation happens per value, on access.
    """
    return {
        "DB_PATH": os.getenv("DB_PATH", "jobs.db"),
        "AI_MODEL": os.getenv("AI_MODEL", "gemini"),
        "GOOGLE_API_KEY": os.getenv("GOOGLE_API_KEY")
        or os.getenv("GOOGLE_GENERATIVE_AI_API_KEY", ""),
        "OPENAI_API_KEY": os.getenv("OPENAI_API_KEY", ""),
        "ANTHROPIC_API_KEY": os.getenv("ANTHROPIC_API_KEY", ""),
        "QUALITY_THRESHOLD": os.getenv("QUALITY_THRESHOLD", "0.5"),
        "RATE_LIMIT_PER_MINUTE": os.getenv("RATE_LIMIT_PER_MINUTE", "30"),
        "RATE_LIMIT_PER_HOUR": os.getenv("RATE_LIMIT_PER_HOUR", "200"),
        "DATE_SINCE_POSTED": os.getenv("DATE_SINCE_POSTED", "past week"),
        "SCRAPE_INTERVAL": os.getenv("SCRAPE_INTERVAL", "1440"),
        "SEARCH_LOCATION": os.getenv("SEARCH_LOCATION", "Nigeria"),
        "TELEGRAM_BOT_TOKEN": os.getenv("TELEGRAM_BOT_TOKEN", ""),
        "TELEGRAM_CHANNEL_ID": os.getenv("TELEGRAM_CHANNEL_ID", ""),
    }


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be a positive integer, got '{raw}'") from None
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value}")
    return value


class _Config:
    """Lazy configuration that only validates when values are actually accessed."""

    def __init__(self) -> None:
        self._config: dict[str, str] | None = None

    def _get(self, key: str) -> str:
        if self._config is None:
            self._config = get_config()
        return self._config[key]

    @property
    def DB_PATH(self) -> str:
        return self._get("DB_PATH")

    @property
    def AI_MODEL(self) -> str:
        """Preferred AI provider; the others are tried after it."""
        model = self._get("AI_MODEL").strip().lower()
        if model not in PROVIDER_NAMES:
            raise ValueError(f"AI_MODEL must be one of {', '.join(PROVIDER_NAMES)}, got '{model}'")
        return model

    @property
    def GOOGLE_API_KEY(self) -> str:
        return self._get("GOOGLE_API_KEY")

    @property
    def OPENAI_API_KEY(self) -> str:
        return self._get("OPENAI_API_KEY")

    @property
    def ANTHROPIC_API_KEY(self) -> str:
        return self._get("ANTHROPIC_API_KEY")

    @property
    def QUALITY_THRESHOLD(self) -> float:
        """Minimum final quality score for a job to be stored. Between 0 and 1."""
        raw = self._get("QUALITY_THRESHOLD")
        try:
            threshold = float(raw)
        except ValueError:
            raise ValueError(f"QUALITY_THRESHOLD must be a number, got '{raw}'") from None
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"QUALITY_THRESHOLD must be between 0 and 1, got {threshold}")
        return threshold

    @property
    def RATE_LIMIT_PER_MINUTE(self) -> int:
        return _positive_int("RATE_LIMIT_PER_MINUTE", self._get("RATE_LIMIT_PER_MINUTE"))

    @property
    def RATE_LIMIT_PER_HOUR(self) -> int:
        return _positive_int("RATE_LIMIT_PER_HOUR", self._get("RATE_LIMIT_PER_HOUR"))

    @property
    def DATE_SINCE_POSTED(self) -> str:
        """Crawl freshness window."""
        raw = self._get("DATE_SINCE_POSTED").strip().lower()
        if raw not in DATE_SINCE_POSTED_CHOICES:
            raise ValueError(
                f"DATE_SINCE_POSTED must be one of {', '.join(DATE_SINCE_POSTED_CHOICES)}, "
                f"got '{raw}'"
            )
        return raw

    @property
    def SCRAPE_INTERVAL(self) -> int:
        """Scrape interval in minutes. Must be a positive integer."""
        return _positive_int("SCRAPE_INTERVAL", self._get("SCRAPE_INTERVAL"))

    @property
    def SEARCH_LOCATION(self) -> str:
        return self._get("SEARCH_LOCATION")

    @property
    def TELEGRAM_BOT_TOKEN(self) -> str:
        token = self._get("TELEGRAM_BOT_TOKEN")
        if not token:
            raise ValueError("TELEGRAM_BOT_TOKEN is not set in the environment variables.")
        return token

    @property
    def TELEGRAM_CHANNEL_ID(self) -> str:
        channel_id = self._get("TELEGRAM_CHANNEL_ID")
        if not channel_id:
            raise ValueError("TELEGRAM_CHANNEL_ID is not set in the environment variables.")
        return channel_id

    @property
    def NOTIFICATIONS_ENABLED(self) -> bool:
        return bool(self._get("TELEGRAM_BOT_TOKEN") and self._get("TELEGRAM_CHANNEL_ID"))


_cfg = _Config()

# Module-level type declarations for mypy.
# The actual values come from __getattr__ below.
DB_PATH: str
AI_MODEL: str
GOOGLE_API_KEY: str
OPENAI_API_KEY: str
ANTHROPIC_API_KEY: str
QUALITY_THRESHOLD: float
RATE_LIMIT_PER_MINUTE: int
RATE_LIMIT_PER_HOUR: int
DATE_SINCE_POSTED: str
SCRAPE_INTERVAL: int
SEARCH_LOCATION: str
TELEGRAM_BOT_TOKEN: str
TELEGRAM_CHANNEL_ID: str
NOTIFICATIONS_ENABLED: bool

_LAZY_NAMES = frozenset(
    {
        "DB_PATH",
        "AI_MODEL",
        "GOOGLE_API_KEY",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "QUALITY_THRESHOLD",
        "RATE_LIMIT_PER_MINUTE",
        "RATE_LIMIT_PER_HOUR",
        "DATE_SINCE_POSTED",
        "SCRAPE_INTERVAL",
        "SEARCH_LOCATION",
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_CHANNEL_ID",
        "NOTIFICATIONS_ENABLED",
    }
)


# Module-level lazy access using __getattr__ (PEP 562).
# `from tech_job_ingest.config import QUALITY_THRESHOLD` resolves the value
# when first accessed, not at import time.
def __getattr__(name: str) -> str | int | float | bool:
    if name in _LAZY_NAMES:
        return getattr(_cfg, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
