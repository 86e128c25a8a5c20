import json
import logging
import re
from typing import Iterator, Optional

from bs4 import BeautifulSoup

from backend.py_models.listing import ExtractionResult, ExtractionSource

log = logging.getLogger("listing_details.jsonld")

# Matches SingleFamilyResidence, House, Apartment, Condo, ...
RESIDENTIAL_TYPE_RE = re.compile(r"house|residence|apartment|condo", re.I)

_ADDRESS_PARTS = ("streetAddress", "addressLocality", "addressRegion", "postalCode")


def _as_text(v) -> Optional[str]:
    if v is None or isinstance(v, (bool, dict, list)):
        return None
    s = str(v).strip()
    return s or None


def _iter_blocks(soup: BeautifulSoup) -> Iterator[object]:
    for script in soup.select("script[type='application/ld+json']"):
        raw = (script.string or script.get_text() or "").strip()
        if not raw:
            continue
        try:
            yield json.loads(raw)
        except ValueError as e:
            log.debug("skipping malformed JSON-LD block: %s", e)


def _items(data) -> Iterator[dict]:
    """Top-level object(s) of a block, followed by any @graph members."""
    for item in data if isinstance(data, list) else [data]:
        if not isinstance(item, dict):
            continue
        yield item
        graph = item.get("@graph")
        if isinstance(graph, list):
            yield from (g for g in graph if isinstance(g, dict))


def _type_name(item: dict) -> str:
    t = item.get("@type")
    if isinstance(t, list):
        return " ".join(str(x) for x in t if x)
    return str(t or "")


def _flatten_address(addr) -> Optional[str]:
    if isinstance(addr, dict):
        parts = [_as_text(addr.get(k)) for k in _ADDRESS_PARTS]
        return ", ".join(p for p in parts if p) or None
    return _as_text(addr)


def _first_image(img) -> Optional[str]:
    if isinstance(img, list):
        img = img[0] if img else None
    if isinstance(img, dict):
        # ImageObject
        img = img.get("url") or img.get("contentUrl")
    return _as_text(img)


def _offer_price(offers) -> Optional[str]:
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if isinstance(offers, dict):
        return _as_text(offers.get("price"))
    return None


def _qv_value(x) -> Optional[str]:
    """Text of a QuantitativeValue-ish dict or a raw value."""
    if isinstance(x, dict):
        return _as_text(x.get("value"))
    return _as_text(x)


def _result_from_item(item: dict, type_name: str) -> ExtractionResult:
    geo = item.get("geo") if isinstance(item.get("geo"), dict) else {}
    return ExtractionResult(
        source=ExtractionSource.JSONLD,
        address=_flatten_address(item.get("address")),
        latitude=_as_text(geo.get("latitude")),
        longitude=_as_text(geo.get("longitude")),
        price=_offer_price(item.get("offers")),
        title=_as_text(item.get("name")),
        image_url=_first_image(item.get("image")),
        description=_as_text(item.get("description")),
        beds=_qv_value(item.get("numberOfBedrooms")),
        baths=_qv_value(item.get("numberOfBathroomsTotal")),
        sqft=_qv_value(item.get("floorSize")),
        year_built=_as_text(item.get("yearBuilt")),
        property_type=type_name or None,
    )


def extract_structured_data(soup: BeautifulSoup) -> ExtractionResult:
    """
    Pull listing fields from the first residential schema.org object embedded
    as JSON-LD. Blocks that fail to parse are skipped; a page without a
    residential object yields an empty result.
    """
    for data in _iter_blocks(soup):
        for item in _items(data):
            type_name = _type_name(item)
            if not RESIDENTIAL_TYPE_RE.search(type_name):
                continue
            log.debug("using JSON-LD object of type %s", type_name)
            return _result_from_item(item, type_name)
    return ExtractionResult(source=ExtractionSource.JSONLD)
