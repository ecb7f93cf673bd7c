# price_tracker/config/settings.py

"""Central configuration for the price tracker."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer from the environment, falling back on bad input."""
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Settings:
    """Central configuration for the price tracker."""

    # --- Scrape runs ---
    SCRAPE_DELAY_SECONDS: int = _env_int("SCRAPE_DELAY_SECONDS", 8)
    MAX_CONCURRENT_SCRAPES: int = _env_int("MAX_CONCURRENT_SCRAPES", 4)
    MIN_LAUNCH_INTERVAL_MS: int = 1000  # Throttle floor between launches
    SCRAPE_INTERVAL_MINUTES: int = _env_int("SCRAPE_INTERVAL_MINUTES", 60)

    # --- Change detection ---
    PRICE_CHANGE_EPSILON: float = 0.01
    UHD_KEYWORDS: list[str] = ["4k", "uhd", "ultra hd"]

    # --- History ---
    HISTORY_DAYS: int = 180
    HISTORY_RETENTION_DAYS: int = _env_int("HISTORY_RETENTION_DAYS", 365)

    # --- Adapter HTTP ---
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "nl-NL,nl;q=0.9,en-US;q=0.8,en;q=0.7",
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Notification sinks ---
    DISCORD_WEBHOOK_URL: str = os.getenv("DISCORD_WEBHOOK_URL", "")
    SMTP_SERVER: str = os.getenv("SMTP_SERVER", "")
    SMTP_PORT: int = _env_int("SMTP_PORT", 587)
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASS: str = os.getenv("SMTP_PASS", "")
    SMTP_FROM: str = os.getenv("SMTP_FROM", "")
    SMTP_TO: str = os.getenv("SMTP_TO", "")

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    SELECTORS_PATH: Path = (
        BASE_DIR / "price_tracker" / "config" / "selectors.json"
    )
    DB_PATH: Path = Path(
        os.getenv("PRICE_TRACKER_DB") or str(DATA_DIR / "tracker.db")
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Sources (resolved in this order, first match wins) ---
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "amazon_nl",
            "label": "Amazon.nl",
            "scraper": (
                "price_tracker.scrapers.amazon_nl_scraper.AmazonNlScraper"
            ),
        },
        {
            "id": "bol_com",
            "label": "Bol.com",
            "scraper": "price_tracker.scrapers.bol_com_scraper.BolComScraper",
        },
    ]
