# price_tracker/scrapers/bol_com_scraper.py

"""Source adapter for bol.com product pages.

Bol.com embeds schema.org JSON-LD on product pages; that is tried
first because it survives layout changes.  Movie pages publish one
``workExample`` per edition, so the variant whose URL carries the
same 13+ digit product id as the requested URL is selected.  When no
JSON-LD is usable the visible HTML is parsed instead.
"""

import json
import re
from typing import Any, cast
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from price_tracker.models.scraped_snapshot import ScrapedSnapshot
from price_tracker.scrapers.base_scraper import BaseScraper

_PRODUCT_ID_RE = re.compile(r"(\d{13,})")

_OUT_OF_STOCK_MARKERS: tuple[str, ...] = (
    "niet leverbaar",
    "niet op voorraad",
    "uitverkocht",
    "tijdelijk niet beschikbaar",
)


def extract_product_id(url: str) -> str:
    """Return the bol.com product id embedded in ``url`` (or '')."""
    match = _PRODUCT_ID_RE.search(url)
    return match.group(1) if match else ""


class BolComScraper(BaseScraper):
    """Source adapter for bol.com product pages."""

    def __init__(self) -> None:
        super().__init__("bol_com")

    def _get_homepage(self) -> str:
        """Return the Bol.com homepage URL."""
        return "https://www.bol.com/nl/nl/"

    def can_handle(self, url: str) -> bool:
        host = urlparse(url).netloc.lower()
        return host == "bol.com" or host.endswith(".bol.com")

    # ── JSON-LD ──────────────────────────────────────────

    def _load_json_ld(self, soup: BeautifulSoup) -> list[dict[str, Any]]:
        """Return every JSON-LD object on the page, flattening @graph."""
        objects: list[dict[str, Any]] = []
        for script in soup.select(self.selectors["json_ld"]):
            try:
                data: Any = json.loads(script.string or "")
            except json.JSONDecodeError:
                continue
            candidates: list[Any] = (
                cast(list[Any], data) if isinstance(data, list) else [data]
            )
            for obj in candidates:
                if not isinstance(obj, dict):
                    continue
                graph = cast(dict[str, Any], obj).get("@graph")
                if isinstance(graph, list):
                    objects.extend(
                        g for g in cast(list[Any], graph)
                        if isinstance(g, dict)
                    )
                else:
                    objects.append(cast(dict[str, Any], obj))
        return objects

    def _select_variant(
        self, obj: dict[str, Any], url: str,
    ) -> dict[str, Any]:
        """Pick the ``workExample`` matching ``url``, else ``obj``."""
        variants = obj.get("workExample")
        if not isinstance(variants, list):
            return obj
        target_id = extract_product_id(url)
        for variant in cast(list[Any], variants):
            if not isinstance(variant, dict):
                continue
            variant_url = str(cast(dict[str, Any], variant).get("url", ""))
            if target_id:
                variant_id = extract_product_id(variant_url)
                matched = (
                    variant_id == target_id
                    if variant_id
                    else target_id in variant_url
                )
            else:
                matched = bool(variant_url) and variant_url in url
            if matched:
                return cast(dict[str, Any], variant)
        if target_id:
            self.logger.warning(
                "[bol_com] No JSON-LD variant matched id %s", target_id,
            )
        return obj

    @staticmethod
    def _image_from(obj: dict[str, Any]) -> str:
        image = obj.get("image")
        if isinstance(image, dict):
            return str(cast(dict[str, Any], image).get("url", ""))
        if isinstance(image, list) and image:
            return str(cast(list[Any], image)[0])
        if isinstance(image, str):
            return image
        return ""

    def _parse_json_ld(
        self, soup: BeautifulSoup, url: str,
    ) -> ScrapedSnapshot | None:
        for root in self._load_json_ld(soup):
            if "offers" not in root and "workExample" not in root:
                continue
            item = self._select_variant(root, url)
            title = str(item.get("name") or root.get("name") or "")
            if not title:
                continue

            price = 0.0
            in_stock = False
            offers: Any = item.get("offers")
            if isinstance(offers, list) and offers:
                offers = cast(list[Any], offers)[0]
            if isinstance(offers, dict):
                offer = cast(dict[str, Any], offers)
                try:
                    price = float(str(offer.get("price", 0)))
                except ValueError:
                    price = 0.0
                in_stock = "InStock" in str(offer.get("availability", ""))

            return ScrapedSnapshot(
                url=url,
                title=title,
                price=price,
                in_stock=in_stock,
                is_uhd_4k=self.is_uhd(title),
                image_url=self._image_from(item) or self._image_from(root),
                source=self.source_name,
            )
        return None

    # ── HTML fallback ────────────────────────────────────

    def _parse_html(
        self, soup: BeautifulSoup, url: str,
    ) -> ScrapedSnapshot | None:
        title_el = soup.select_one(self.selectors["title"])
        title = title_el.get_text(strip=True) if title_el else ""
        if not title:
            return None

        price = 0.0
        for el in soup.select(self.selectors["price"]):
            price = self.extract_price(el.get_text(" ", strip=True))
            if price > 0:
                break

        in_stock = True
        for el in soup.select(self.selectors["availability"]):
            text = el.get_text(" ", strip=True).lower()
            if any(m in text for m in _OUT_OF_STOCK_MARKERS):
                in_stock = False
                break

        img = soup.select_one(self.selectors["image"])
        image_url = str(img.get("src") or "") if img else ""

        return ScrapedSnapshot(
            url=url,
            title=title,
            price=price,
            in_stock=in_stock,
            is_uhd_4k=self.is_uhd(title),
            image_url=image_url,
            source=self.source_name,
        )

    def _parse(
        self, soup: BeautifulSoup, url: str,
    ) -> ScrapedSnapshot | None:
        snapshot = self._parse_json_ld(soup, url)
        if snapshot is not None:
            return snapshot
        return self._parse_html(soup, url)
