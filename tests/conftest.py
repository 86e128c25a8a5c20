"""
Shared fixtures for the listing-details tests.

HTTP is faked with httpx.MockTransport and the language model with FakeLLM,
which exposes the same `extract(prompt, schema)` coroutine as ListingLLM.
"""
import asyncio
import json

import httpx
import pytest

from backend.listing_details.client import new_client
from backend.listing_details.settings import PipelineSettings

LISTING_URL = "https://homes.example.com/listing/123-main-st"


class FakeLLM:
    def __init__(self, responses=None, delay: float = 0.0):
        # schema class name -> dict payload or Exception instance
        self.responses = responses or {}
        self.delay = delay
        self.prompts: dict[str, str] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def extract(self, prompt, schema):
        self.prompts[schema.__name__] = prompt
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            resp = self.responses.get(schema.__name__, {})
            if isinstance(resp, Exception):
                raise resp
            return schema.model_validate(resp)
        finally:
            self.in_flight -= 1


def html_page(head: str = "", body: str = "") -> str:
    return f"<!DOCTYPE html><html><head>{head}</head><body>{body}</body></html>"


def jsonld_script(data) -> str:
    payload = data if isinstance(data, str) else json.dumps(data)
    return f'<script type="application/ld+json">{payload}</script>'


@pytest.fixture
def settings():
    return PipelineSettings()


@pytest.fixture
def geo_settings():
    return PipelineSettings(google_maps_api_key="test-key")


@pytest.fixture
def mock_client():
    """Factory: mock_client(handler, settings=None) -> AsyncClient over a MockTransport."""

    def _make(handler, settings=None):
        return new_client(settings or PipelineSettings(), transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def residence_page():
    return html_page(
        head=(
            "<title>123 Main St | Example Homes</title>"
            + jsonld_script(
                {
                    "@context": "https://schema.org",
                    "@type": "SingleFamilyResidence",
                    "name": "Charming Colonial",
                    "address": {
                        "@type": "PostalAddress",
                        "streetAddress": "123 Main St",
                        "addressLocality": "Springfield",
                        "addressRegion": "IL",
                        "postalCode": "62701",
                    },
                    "geo": {"@type": "GeoCoordinates", "latitude": 39.7817, "longitude": -89.6501},
                    "offers": {"@type": "Offer", "price": 450000, "priceCurrency": "USD"},
                    "image": ["https://img.example.com/1.jpg", "https://img.example.com/2.jpg"],
                    "description": "Three bedroom colonial near the park.",
                    "numberOfBedrooms": 3,
                    "numberOfBathroomsTotal": 2.5,
                    "floorSize": {"@type": "QuantitativeValue", "value": 1850, "unitCode": "FTK"},
                    "yearBuilt": 1958,
                }
            )
        ),
        body='<div class="price">$999,999</div>',
    )
