from typing import Optional


class ListingDetailsError(Exception):
    """Base class for listing-details failures."""


class InvalidInputError(ListingDetailsError, ValueError):
    """Missing or malformed input, rejected before any network call."""


class FetchError(ListingDetailsError):
    """The listing page could not be retrieved. Fatal for the request."""

    def __init__(self, url: str, status_code: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            msg = f"Failed to fetch {url}: HTTP {status_code} {reason}".rstrip()
        else:
            msg = f"Failed to fetch {url}: {reason or 'network error'}"
        super().__init__(msg)


class ExtractorError(ListingDetailsError):
    """A single extraction source failed; callers downgrade it to an empty result."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(message)


class GeocodingError(ExtractorError):
    def __init__(self, message: str, status: str = ""):
        self.status = status
        super().__init__(message, source="geocoding")
