import httpx
import pytest

from backend.listing_details import scraper
from backend.listing_details.errors import FetchError, InvalidInputError
from backend.listing_details.scraper import fetch_html, fetch_listing_details, validate_url
from backend.listing_details.settings import PipelineSettings
from conftest import LISTING_URL, FakeLLM, html_page, jsonld_script


def _router(pages: dict, seen=None, geocode=None):
    """MockTransport handler serving `pages` by URL and an optional geocoding payload."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if request.url.host == "maps.googleapis.com":
            if geocode is None:
                return httpx.Response(500, json={})
            return httpx.Response(200, json=geocode)
        url = str(request.url.copy_with(query=None))
        if url in pages:
            return httpx.Response(200, html=pages[url])
        return httpx.Response(404, text="not found")

    return handler


# --- url validation --------------------------------------------------------

@pytest.mark.parametrize("url", ["", "   ", None, 42, "homes.example.com/listing", "ftp://example.com/x", "https://"])
def test_validate_url_rejects(url):
    with pytest.raises(InvalidInputError):
        validate_url(url)


def test_validate_url_strips():
    assert validate_url(f"  {LISTING_URL} ") == LISTING_URL


@pytest.mark.asyncio
async def test_invalid_url_makes_no_network_call(mock_client):
    seen = []
    async with mock_client(_router({}, seen=seen)) as client:
        with pytest.raises(InvalidInputError):
            await fetch_listing_details("not a url", settings=PipelineSettings(), client=client)
    assert seen == []


# --- fetching --------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_sends_browser_headers(mock_client):
    seen = []
    async with mock_client(_router({LISTING_URL: "<html>ok</html>"}, seen=seen)) as client:
        text = await fetch_html(LISTING_URL, client)

    assert text == "<html>ok</html>"
    headers = seen[0].headers
    assert "Mozilla/5.0" in headers["user-agent"]
    assert headers["accept"].startswith("text/html")
    assert headers["accept-language"] == "en-US,en;q=0.9"


@pytest.mark.asyncio
async def test_fetch_404_raises_fetch_error(mock_client):
    async with mock_client(_router({})) as client:
        with pytest.raises(FetchError) as exc_info:
            await fetch_html(LISTING_URL, client)
    assert exc_info.value.status_code == 404
    assert exc_info.value.reason == "Not Found"
    assert "404" in str(exc_info.value)


@pytest.mark.asyncio
async def test_fetch_transport_error_raises_fetch_error(mock_client):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    async with mock_client(handler) as client:
        with pytest.raises(FetchError) as exc_info:
            await fetch_html(LISTING_URL, client)
    assert exc_info.value.status_code is None
    assert "timed out" in exc_info.value.reason


@pytest.mark.asyncio
async def test_fetch_debug_saves_copy(mock_client, tmp_path, monkeypatch):
    monkeypatch.setattr(scraper.tempfile, "gettempdir", lambda: str(tmp_path))
    async with mock_client(_router({LISTING_URL: "<html>saved</html>"})) as client:
        await fetch_html(LISTING_URL, client, debug=True)
    saved = list(tmp_path.glob("listing_http_*.html"))
    assert len(saved) == 1
    assert saved[0].read_text(encoding="utf-8") == "<html>saved</html>"


@pytest.mark.asyncio
async def test_fetch_error_is_fatal_for_pipeline(mock_client):
    llm = FakeLLM({"PriceExtraction": {"askingPrice": "1"}})
    async with mock_client(_router({})) as client:
        with pytest.raises(FetchError):
            await fetch_listing_details(LISTING_URL, settings=PipelineSettings(), client=client, llm=llm)
    assert llm.prompts == {}


# --- end to end ------------------------------------------------------------

@pytest.mark.asyncio
async def test_scenario_a_markup_only(mock_client):
    page = html_page(
        head=jsonld_script(
            {
                "@type": "SingleFamilyResidence",
                "address": {"streetAddress": "123 Main St"},
                "offers": {"price": 450000},
                "numberOfBedrooms": 3,
            }
        )
    )
    seen = []
    async with mock_client(_router({LISTING_URL: page}, seen=seen)) as client:
        record = await fetch_listing_details(LISTING_URL, settings=PipelineSettings(), client=client)

    assert record.address == "123 Main St"
    assert record.price == "450000"
    assert record.beds == "3"
    assert record.title == "123 Main St"
    assert record.latitude is None and record.longitude is None
    assert [r.url.host for r in seen] == ["homes.example.com"]


@pytest.mark.asyncio
async def test_scenario_b_heuristic_price_only(mock_client):
    page = html_page(head="<title>Lovely home</title>", body='<div class="price">$1,250,000</div>')
    async with mock_client(_router({LISTING_URL: page})) as client:
        record = await fetch_listing_details(LISTING_URL, settings=PipelineSettings(), client=client)

    assert record.price == "1250000"
    assert record.title == "Lovely home"
    assert record.address is None


@pytest.mark.asyncio
async def test_scenario_c_malformed_markup_continues(mock_client):
    page = html_page(
        head=jsonld_script("{ 'not': json,,, }") + '<meta property="og:image" content="/photos/front.jpg">',
        body='<span id="price">$389,000</span>',
    )
    llm = FakeLLM({"ListingDetailsExtraction": {"address": "77 Lake Rd, Madison, WI", "beds": "2"}})
    async with mock_client(_router({LISTING_URL: page})) as client:
        record = await fetch_listing_details(LISTING_URL, settings=PipelineSettings(), client=client, llm=llm)

    assert record.price == "389000"
    assert record.address == "77 Lake Rd, Madison, WI"
    assert record.beds == "2"
    assert record.image_url == "https://homes.example.com/photos/front.jpg"


@pytest.mark.asyncio
async def test_markup_price_beats_every_other_source(mock_client, residence_page):
    llm = FakeLLM(
        {
            "PriceExtraction": {"askingPrice": "500000"},
            "ListingDetailsExtraction": {"askingPrice": "550000", "beds": "9", "garageSpaces": "2"},
        }
    )
    async with mock_client(_router({LISTING_URL: residence_page})) as client:
        record = await fetch_listing_details(LISTING_URL, settings=PipelineSettings(), client=client, llm=llm)

    assert record.price == "450000"
    assert record.beds == "3"
    assert record.garage_spaces == "2"
    assert (record.latitude, record.longitude) == (39.7817, -89.6501)


@pytest.mark.asyncio
async def test_general_llm_price_used_when_markup_and_price_call_empty(mock_client):
    page = html_page(body='<div class="price">$999,000</div>')
    llm = FakeLLM(
        {
            "PriceExtraction": {"askingPrice": None},
            "ListingDetailsExtraction": {"askingPrice": "$975,000"},
        }
    )
    async with mock_client(_router({LISTING_URL: page})) as client:
        record = await fetch_listing_details(LISTING_URL, settings=PipelineSettings(), client=client, llm=llm)

    assert record.price == "975000"


@pytest.mark.asyncio
async def test_llm_failures_degrade_to_partial_record(mock_client):
    page = html_page(head="<title>Condo downtown</title>", body='<div class="listing-price">$410,500</div>')
    llm = FakeLLM(
        {
            "PriceExtraction": RuntimeError("service unavailable"),
            "ListingDetailsExtraction": RuntimeError("service unavailable"),
        }
    )
    async with mock_client(_router({LISTING_URL: page})) as client:
        record = await fetch_listing_details(LISTING_URL, settings=PipelineSettings(), client=client, llm=llm)

    assert record.to_dict() == {"title": "Condo downtown", "price": "410500"}


@pytest.mark.asyncio
async def test_extractor_crash_is_isolated(mock_client, monkeypatch):
    def boom(soup):
        raise RuntimeError("unexpected markup")

    monkeypatch.setattr(scraper, "extract_structured_data", boom)
    page = html_page(body='<div class="price">$200,000</div>')
    async with mock_client(_router({LISTING_URL: page})) as client:
        record = await fetch_listing_details(LISTING_URL, settings=PipelineSettings(), client=client)

    assert record.price == "200000"


@pytest.mark.asyncio
async def test_geocoding_fills_missing_coordinates(mock_client, geo_settings):
    page = html_page(head=jsonld_script({"@type": "House", "address": "5 Pine Ct, Boise, ID"}))
    geocode = {"status": "OK", "results": [{"geometry": {"location": {"lat": 43.615, "lng": -116.2023}}}]}
    seen = []
    async with mock_client(_router({LISTING_URL: page}, seen=seen, geocode=geocode), geo_settings) as client:
        record = await fetch_listing_details(LISTING_URL, settings=geo_settings, client=client)

    assert (record.latitude, record.longitude) == (43.615, -116.2023)
    assert seen[-1].url.params["address"] == "5 Pine Ct, Boise, ID"


@pytest.mark.asyncio
async def test_geocoding_not_called_when_coordinates_known(mock_client, geo_settings, residence_page):
    seen = []
    async with mock_client(_router({LISTING_URL: residence_page}, seen=seen), geo_settings) as client:
        record = await fetch_listing_details(LISTING_URL, settings=geo_settings, client=client)

    assert record.has_coordinates()
    assert all(r.url.host != "maps.googleapis.com" for r in seen)


@pytest.mark.asyncio
async def test_geocoding_failure_is_not_fatal(mock_client, geo_settings):
    page = html_page(head=jsonld_script({"@type": "House", "address": "5 Pine Ct, Boise, ID"}))
    async with mock_client(_router({LISTING_URL: page}), geo_settings) as client:
        record = await fetch_listing_details(LISTING_URL, settings=geo_settings, client=client)

    assert record.address == "5 Pine Ct, Boise, ID"
    assert not record.has_coordinates()


@pytest.mark.asyncio
async def test_malformed_geocoding_result_is_not_fatal(mock_client, geo_settings):
    page = html_page(
        head=jsonld_script({"@type": "House", "address": "5 Pine Ct, Boise, ID", "offers": {"price": 350000}})
    )
    geocode = {"status": "OK", "results": [{"geometry": "oops"}]}
    async with mock_client(_router({LISTING_URL: page}, geocode=geocode), geo_settings) as client:
        record = await fetch_listing_details(LISTING_URL, settings=geo_settings, client=client)

    assert record.address == "5 Pine Ct, Boise, ID"
    assert record.price == "350000"
    assert record.latitude is None and record.longitude is None


@pytest.mark.asyncio
async def test_builds_own_client_when_none_given(monkeypatch):
    page = html_page(body='<div class="price">$321,000</div>')
    settings = PipelineSettings()
    real_new_client = scraper.new_client

    def patched_new_client(s):
        return real_new_client(s, transport=httpx.MockTransport(_router({LISTING_URL: page})))

    monkeypatch.setattr(scraper, "new_client", patched_new_client)
    record = await fetch_listing_details(LISTING_URL, settings=settings)
    assert record.price == "321000"
