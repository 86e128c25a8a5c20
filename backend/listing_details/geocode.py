"""Resolve a listing address to latitude/longitude with the Google Geocoding API."""

import logging
from typing import Optional

import httpx

from backend.listing_details.errors import GeocodingError, InvalidInputError
from backend.listing_details.numbers import coordinate_pair
from backend.listing_details.settings import PipelineSettings
from backend.py_models.listing import ListingRecord

log = logging.getLogger("listing_details.geocode")

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


async def geocode_address(
    address: str,
    *,
    client: httpx.AsyncClient,
    api_key: Optional[str],
) -> Optional[tuple[float, float]]:
    """
    Coordinates of the first geocoding result for `address`.

    Returns None when the service finds nothing (ZERO_RESULTS). Raises
    InvalidInputError for a blank address and GeocodingError for a missing
    key, transport failures, non-OK statuses and malformed responses.
    """
    address = (address or "").strip()
    if not address:
        raise InvalidInputError("Address is required for geocoding")
    if not api_key:
        raise GeocodingError("Google Maps API key is not configured", status="MISSING_API_KEY")

    try:
        r = await client.get(GEOCODE_URL, params={"address": address, "key": api_key})
    except httpx.RequestError as e:
        raise GeocodingError(f"Network error calling Google Geocoding API: {e}", status="NETWORK_ERROR") from e
    if r.is_error:
        raise GeocodingError(
            f"HTTP {r.status_code} from Google Geocoding API: {r.reason_phrase}",
            status=f"HTTP {r.status_code}",
        )

    try:
        payload = r.json()
    except ValueError as e:
        raise GeocodingError(f"Invalid JSON from Google Geocoding API: {e}", status="INVALID_RESPONSE") from e
    if not isinstance(payload, dict):
        raise GeocodingError("Google Geocoding API response had an unexpected format.", status="INVALID_RESPONSE")

    status = payload.get("status", "")
    if status == "ZERO_RESULTS":
        return None
    if status != "OK":
        message = payload.get("error_message", "Unknown API error.")
        raise GeocodingError(f"Google Geocoding API status={status}: {message}", status=status)

    results = payload.get("results") or []
    if not isinstance(results, list) or not results:
        return None
    first = results[0]
    geometry = first.get("geometry") if isinstance(first, dict) else None
    location = geometry.get("location") if isinstance(geometry, dict) else None
    if not isinstance(location, dict):
        raise GeocodingError("Geocoding result has no geometry.location object.", status="INVALID_RESPONSE")
    pair = coordinate_pair(location.get("lat"), location.get("lng"))
    if pair is None:
        raise GeocodingError("Geocoding result does not include latitude/longitude.", status="INVALID_RESPONSE")
    return pair


async def geocode_fallback(
    record: ListingRecord,
    *,
    client: httpx.AsyncClient,
    settings: PipelineSettings,
) -> ListingRecord:
    """
    Fill in coordinates from the address when the extractors found none.
    Never raises: on any failure the record comes back without coordinates.
    """
    if not record.address or record.has_coordinates():
        return record
    if not settings.geocoding_enabled:
        log.info("Geocoding not configured; leaving coordinates empty for %r", record.address)
        return record

    try:
        pair = await geocode_address(record.address, client=client, api_key=settings.google_maps_api_key)
    except GeocodingError as e:
        log.warning("Geocoding failed for address %r: %s", record.address, e)
        return record
    if pair is None:
        log.warning("Geocoding found no results for address %r", record.address)
        return record

    lat, lng = pair
    return record.model_copy(update={"latitude": lat, "longitude": lng})
