# price_tracker/scrapers/base_scraper.py

"""Abstract base class for all source adapters."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup
from curl_cffi import requests as curl_requests

from price_tracker.config.settings import Settings
from price_tracker.models.scraped_snapshot import ScrapedSnapshot

# "12,34", "€ 1.299,00", "12.34"
_PRICE_RE = re.compile(r"(\d{1,3}(?:[.\s]\d{3})+|\d+)(?:[,.](\d{1,2}))?")


class BaseScraper(ABC):
    """Fetches a point-in-time snapshot for product URLs it can handle.

    Subclasses declare which URLs they accept and how to turn a product
    page into a :class:`ScrapedSnapshot`.  Fetching performs a single
    attempt (with a cloudscraper fallback for challenge pages); retrying
    is left to the next scheduled run.
    """

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(
            f"price_tracker.scrapers.{source_name}"
        )
        self.settings = Settings()
        self.selectors: dict[str, str] = self._load_selectors()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    def _load_selectors(self) -> dict[str, str]:
        """Load CSS selectors for this source from selectors.json."""
        with open(self.settings.SELECTORS_PATH, encoding="utf-8") as f:
            all_selectors: dict[str, Any] = json.load(f)
        result: dict[str, str] = all_selectors.get(
            self.source_name, {}
        )
        return result

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def _validate_response(
        self, resp: curl_requests.Response,
    ) -> bool:
        """Check for Cloudflare challenge pages and CAPTCHA indicators."""
        text = resp.text
        lower = text.lower()

        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "[%s] Cloudflare challenge detected "
                    "(marker: '%s')",
                    self.source_name,
                    marker,
                )
                return False

        # Skip the keyword scan on real product pages to avoid
        # false positives from review text
        has_body_content = (
            "<body" in lower and len(text) > 5000
        )
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    self.logger.warning(
                        "[%s] CAPTCHA keyword '%s' detected",
                        self.source_name,
                        keyword,
                    )
                    return False
        return True

    def _fetch_get(self, url: str) -> curl_requests.Response | None:
        """Single GET with browser impersonation; None on any failure."""
        headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "Referer": self._get_homepage(),
        }
        try:
            resp = self.session.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
        except Exception as exc:
            self.logger.warning(
                "[%s] Request error for %s: %s",
                self.source_name,
                url,
                exc,
                exc_info=True,
            )
            return None
        if resp.status_code != 200:
            self.logger.warning(
                "[%s] HTTP %d for %s",
                self.source_name,
                resp.status_code,
                url,
            )
            return None
        if not self._validate_response(resp):
            return None
        return resp

    def _get_page(self, url: str) -> BeautifulSoup | None:
        """Fetch a page, falling back to cloudscraper on failure."""
        resp = self._fetch_get(url)
        if resp:
            return BeautifulSoup(resp.text, "lxml")

        self.logger.info(
            "[%s] curl_cffi failed, falling back to cloudscraper",
            self.source_name,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            fallback_resp: Any = scraper.get(
                url,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=self._request_timeout,
            )
            if fallback_resp.status_code == 200:
                return BeautifulSoup(
                    str(fallback_resp.text), "lxml"
                )
        except Exception as e:
            self.logger.error(
                "[%s] cloudscraper fallback also failed: %s",
                self.source_name,
                e,
                exc_info=True,
            )

        return None

    @staticmethod
    def extract_price(text: str | None) -> float:
        """Extract a euro price from strings like '€ 1.299,95' or '12.34'."""
        if not text:
            return 0.0
        match = _PRICE_RE.search(text.replace("\xa0", " "))
        if not match:
            return 0.0
        whole = re.sub(r"[.\s]", "", match.group(1))
        cents = match.group(2) or "0"
        if len(cents) == 1:
            cents += "0"
        return int(whole) + int(cents) / 100

    def is_uhd(self, title: str) -> bool:
        """Return True when the title marks a UHD/4K edition."""
        lower = title.lower()
        return any(k in lower for k in self.settings.UHD_KEYWORDS)

    def fetch(self, url: str) -> ScrapedSnapshot | None:
        """Fetch and parse ``url``; None when nothing usable came back."""
        self.logger.info("[%s] Scraping %s", self.source_name, url)
        soup = self._get_page(url)
        if soup is None:
            return None
        snapshot = self._parse(soup, url)
        if snapshot is None:
            self.logger.error(
                "[%s] Failed to parse product page %s",
                self.source_name,
                url,
            )
            return None
        self.logger.info(
            "[%s] Scraped %s (€%.2f, stock: %s, UHD: %s)",
            self.source_name,
            snapshot.title,
            snapshot.price,
            snapshot.in_stock,
            snapshot.is_uhd_4k,
        )
        return snapshot

    @abstractmethod
    def _get_homepage(self) -> str:
        """Return the homepage URL for the Referer header."""
        ...

    @abstractmethod
    def can_handle(self, url: str) -> bool:
        """Return True when this adapter understands ``url``."""
        ...

    @abstractmethod
    def _parse(
        self, soup: BeautifulSoup, url: str,
    ) -> ScrapedSnapshot | None:
        """Turn a product page into a snapshot, or None if unusable."""
        ...
