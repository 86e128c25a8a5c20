# backend/listing_details/parsing.py
import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from backend.listing_details.numbers import extract_digits
from backend.py_models.listing import ExtractionResult, ExtractionSource

__all__ = ["extract_dom_details", "PRICE_SELECTORS", "resolve_image_url"]

log = logging.getLogger("listing_details.parsing")

# Tried in order; the first one that yields digits wins.
PRICE_SELECTORS = [
    "[data-testid='price']",
    ".price",
    "#price",
    "[itemprop='price']",
    ".property-price",
    ".listing-price",
]


# --- tiny utils -------------------------------------------------------------

def _text(el) -> Optional[str]:
    if el is None:
        return None
    if isinstance(el, Tag) and el.name == "meta":
        txt = (el.get("content") or "").strip()
    else:
        txt = el.get_text(" ", strip=True)
    return txt or None


def _meta(soup: BeautifulSoup, *, prop: Optional[str] = None, name: Optional[str] = None) -> Optional[str]:
    if prop:
        el = soup.find("meta", attrs={"property": prop})
    else:
        el = soup.find("meta", attrs={"name": name})
    if el is None:
        return None
    return (el.get("content") or "").strip() or None


def _title(soup: BeautifulSoup) -> Optional[str]:
    og = _meta(soup, prop="og:title")
    if og:
        return og
    title_el = soup.find("title")
    if title_el:
        txt = title_el.get_text(strip=True)
        if txt:
            return txt
    return _meta(soup, name="title")


def resolve_image_url(src: Optional[str], page_url: str) -> Optional[str]:
    """
    Absolute image URL for `src`. Relative paths resolve against the page's
    origin; anything that cannot be resolved is dropped.
    """
    if not src:
        return None
    if src.startswith(("http://", "https://")):
        return src
    try:
        page = urlsplit(page_url)
        if not page.scheme or not page.netloc:
            return None
        resolved = urljoin(f"{page.scheme}://{page.netloc}/", src)
        parts = urlsplit(resolved)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return resolved


def _price(soup: BeautifulSoup) -> Optional[str]:
    for sel in PRICE_SELECTORS:
        price_txt = _text(soup.select_one(sel))
        if not price_txt:
            continue
        digits = extract_digits(price_txt)
        if digits:
            log.debug("price %r from selector %s", digits, sel)
            return digits
    return None


# --- main ------------------------------------------------------------------

def extract_dom_details(soup: BeautifulSoup, page_url: str) -> ExtractionResult:
    """
    Best-effort title, meta description, primary image and price from page
    metadata and common price selectors.
    """
    return ExtractionResult(
        source=ExtractionSource.DOM,
        title=_title(soup),
        description=_meta(soup, name="description"),
        image_url=resolve_image_url(_meta(soup, prop="og:image"), page_url),
        price=_price(soup),
    )
