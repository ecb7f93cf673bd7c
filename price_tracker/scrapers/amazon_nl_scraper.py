# price_tracker/scrapers/amazon_nl_scraper.py

"""Source adapter for amazon.nl product pages."""

from urllib.parse import urlparse

from bs4 import BeautifulSoup

from price_tracker.models.scraped_snapshot import ScrapedSnapshot
from price_tracker.scrapers.base_scraper import BaseScraper

_OUT_OF_STOCK_MARKERS: tuple[str, ...] = (
    "niet op voorraad",
    "momenteel niet beschikbaar",
    "out of stock",
    "currently unavailable",
)


class AmazonNlScraper(BaseScraper):
    """Source adapter for amazon.nl product pages."""

    def __init__(self) -> None:
        super().__init__("amazon_nl")

    def _get_homepage(self) -> str:
        """Return the Amazon.nl homepage URL."""
        return "https://www.amazon.nl/"

    def can_handle(self, url: str) -> bool:
        host = urlparse(url).netloc.lower()
        return host == "amazon.nl" or host.endswith(".amazon.nl")

    def _extract_in_stock(self, soup: BeautifulSoup) -> bool:
        """No out-of-stock marker means in stock."""
        for el in soup.select(self.selectors["availability"]):
            text = el.get_text(" ", strip=True).lower()
            if any(m in text for m in _OUT_OF_STOCK_MARKERS):
                return False
        return True

    def _extract_image(self, soup: BeautifulSoup) -> str:
        img = soup.select_one(self.selectors["image"])
        if img is None:
            return ""
        src = img.get("data-old-hires") or img.get("src") or ""
        return str(src)

    def _parse(
        self, soup: BeautifulSoup, url: str,
    ) -> ScrapedSnapshot | None:
        title_el = soup.select_one(self.selectors["title"])
        title = title_el.get_text(strip=True) if title_el else ""
        if not title:
            return None

        price = 0.0
        for el in soup.select(self.selectors["price"]):
            price = self.extract_price(el.get_text())
            if price > 0:
                break

        return ScrapedSnapshot(
            url=url,
            title=title,
            price=price,
            in_stock=self._extract_in_stock(soup),
            is_uhd_4k=self.is_uhd(title),
            image_url=self._extract_image(soup),
            source=self.source_name,
        )
