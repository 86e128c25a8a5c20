import hashlib
import logging
import os
import tempfile
from typing import Callable, Optional
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from backend.listing_details.client import new_client
from backend.listing_details.errors import FetchError, InvalidInputError
from backend.listing_details.geocode import geocode_fallback
from backend.listing_details.jsonld import extract_structured_data
from backend.listing_details.llm import ListingLLM, build_llm, extract_with_llm
from backend.listing_details.parsing import extract_dom_details
from backend.listing_details.reconcile import reconcile
from backend.listing_details.settings import PipelineSettings
from backend.py_models.listing import ExtractionResult, ExtractionSource, ListingRecord

log = logging.getLogger("listing_details")


def validate_url(url) -> str:
    """Return the stripped URL, or raise InvalidInputError if it is not absolute http(s)."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidInputError("URL is required")
    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidInputError(f"Invalid URL format: {url!r}") from e
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise InvalidInputError(f"Invalid URL format: {url!r}")
    return url


def _save_debug_copy(url: str, text: str) -> None:
    h = hashlib.sha1(url.encode("utf-8")).hexdigest()[:12]
    fname = os.path.join(tempfile.gettempdir(), f"listing_http_{h}.html")
    try:
        with open(fname, "w", encoding="utf-8", errors="ignore") as f:
            f.write(text)
        log.debug("saved HTTP body -> %s :: %s", fname, url)
    except OSError as e:
        log.warning("debug save failed for %s: %s", url, e)


async def fetch_html(url: str, client: httpx.AsyncClient, debug: bool = False) -> str:
    """
    Fetch a listing page. Non-2xx responses and transport failures both raise
    FetchError. When `debug` is set, the body is saved under the temp dir so
    selectors can be inspected offline.
    """
    try:
        r = await client.get(url)
        r.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise FetchError(url, status_code=e.response.status_code, reason=e.response.reason_phrase) from e
    except httpx.RequestError as e:
        raise FetchError(url, reason=str(e) or type(e).__name__) from e

    text = r.text
    if debug:
        _save_debug_copy(url, text)
    return text


def _isolated(source: ExtractionSource, fn: Callable[..., ExtractionResult], *args) -> ExtractionResult:
    try:
        return fn(*args)
    except Exception:
        log.exception("%s extraction failed; continuing without it", source.value)
        return ExtractionResult(source=source)


async def _run_pipeline(
    url: str,
    settings: PipelineSettings,
    client: httpx.AsyncClient,
    llm: Optional[ListingLLM],
) -> ListingRecord:
    html = await fetch_html(url, client, debug=settings.debug)
    soup = BeautifulSoup(html, "lxml")

    structured = _isolated(ExtractionSource.JSONLD, extract_structured_data, soup)
    dom = _isolated(ExtractionSource.DOM, extract_dom_details, soup, url)
    llm_price, llm_general = await extract_with_llm(
        llm,
        url,
        html,
        max_length=settings.max_html_length,
        concurrent=settings.llm_concurrent,
    )
    log.debug(
        "sources for %s: jsonld=%s dom=%s llm_price=%s llm_general=%s",
        url,
        not structured.is_empty(),
        not dom.is_empty(),
        not llm_price.is_empty(),
        not llm_general.is_empty(),
    )

    record = reconcile(structured, dom, llm_price, llm_general)
    record = await geocode_fallback(record, client=client, settings=settings)

    log.info(
        "SCRAPE ✔ %s | $%s | beds=%s baths=%s sqft=%s | %s",
        record.address,
        record.price,
        record.beds,
        record.baths,
        record.sqft,
        url,
    )
    return record


async def fetch_listing_details(
    url: str,
    settings: Optional[PipelineSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
    llm: Optional[ListingLLM] = None,
) -> ListingRecord:
    """
    Extract a ListingRecord from a listing page URL.

    Only InvalidInputError (bad URL) and FetchError (page not retrieved)
    escape; every other failure just leaves fields empty. When `llm` is not
    given one is built from `settings`, which may mean no model at all.
    """
    url = validate_url(url)
    settings = settings or PipelineSettings.from_env()
    if llm is None:
        llm = build_llm(settings)

    if client is None:
        async with new_client(settings) as own_client:
            return await _run_pipeline(url, settings, own_client, llm)
    return await _run_pipeline(url, settings, client, llm)
