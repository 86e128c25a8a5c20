import logging
from typing import Optional

import httpx

from backend.listing_details.settings import PipelineSettings


def build_headers(settings: PipelineSettings) -> dict[str, str]:
    return {
        "User-Agent": settings.user_agent,
        "Accept": settings.accept,
        "Accept-Language": settings.accept_language,
        "Cache-Control": "no-cache",
    }


def new_client(
    settings: Optional[PipelineSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create a configured AsyncClient with browser-like headers and optional proxy.
    Used for both the listing page and the geocoding call. No retries: a failed
    fetch is reported to the caller as-is.
    """
    settings = settings or PipelineSettings.from_env()
    if settings.debug:
        logging.getLogger("httpx").setLevel(logging.DEBUG)

    limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
    return httpx.AsyncClient(
        timeout=settings.timeout,
        headers=build_headers(settings),
        proxy=settings.proxy,
        follow_redirects=True,
        limits=limits,
        transport=transport,
    )
