import asyncio
import json
import logging
from typing import Optional, TypeVar

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from backend.listing_details.errors import ExtractorError
from backend.listing_details.settings import PipelineSettings
from backend.py_models.listing import ExtractionResult, ExtractionSource

log = logging.getLogger("listing_details.llm")

M = TypeVar("M", bound=BaseModel)

SYSTEM_PROMPT = (
    "You extract real estate listing data from raw HTML. "
    "Answer with a single JSON object matching the requested schema and nothing else. "
    "Use null for anything the page does not state."
)


# --- output schemas ---------------------------------------------------------

class _LLMSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class PriceExtraction(_LLMSchema):
    asking_price: Optional[str] = Field(
        None,
        alias="askingPrice",
        description="The asking price as a string of digits, e.g. '2780000'. null if no price is shown.",
    )


class ListingDetailsExtraction(_LLMSchema):
    address: Optional[str] = Field(None, description="Full address: street, city, state and zip when available.")
    asking_price: Optional[str] = Field(None, alias="askingPrice", description="Asking price as digits, e.g. '2780000'.")
    beds: Optional[str] = Field(None, description="Number of bedrooms, e.g. '4'.")
    baths: Optional[str] = Field(None, description="Number of bathrooms, e.g. '3' or '2.5'.")
    sqft: Optional[str] = Field(None, description="Interior square footage, e.g. '1750'.")
    property_type: Optional[str] = Field(None, alias="propertyType", description="e.g. 'Townhouse', 'Single Family', 'Condo'.")
    year_built: Optional[str] = Field(None, alias="yearBuilt", description="Year built, e.g. '1995'.")
    garage_spaces: Optional[str] = Field(None, alias="garageSpaces", description="Garage spaces, e.g. '2'.")
    levels: Optional[str] = Field(None, description="Levels or stories, e.g. '2' or 'Bi-level'.")
    lot_size: Optional[str] = Field(None, alias="lotSize", description="Lot size with units, e.g. '0.25 acres' or '6590 sqft'.")
    image_url: Optional[str] = Field(None, alias="imageUrl", description="Absolute URL of the primary listing photo.")
    description: Optional[str] = Field(None, description="Short summary of the property.")
    latitude: Optional[str] = Field(None, description="Latitude, e.g. '40.7128'.")
    longitude: Optional[str] = Field(None, description="Longitude, e.g. '-74.0060'.")

    @field_validator("image_url")
    @classmethod
    def _absolute_url(cls, v: Optional[str]) -> Optional[str]:
        if v and not v.strip().startswith(("http://", "https://")):
            return None
        return v


# --- client -----------------------------------------------------------------

class ListingLLM:
    """
    Async wrapper around the OpenAI chat completions API.
    `extract` sends one prompt and returns the reply validated against a
    pydantic schema; every failure surfaces as ExtractorError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def extract(self, prompt: str, schema: type[M]) -> M:
        schema_json = json.dumps(schema.model_json_schema(by_alias=True))
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": f"{SYSTEM_PROMPT}\nJSON schema: {schema_json}"},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0,
            )
        except openai.OpenAIError as e:
            raise ExtractorError(f"OpenAI request failed: {e}", source=schema.__name__) from e

        content = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not content:
            raise ExtractorError("OpenAI returned an empty response", source=schema.__name__)
        try:
            return schema.model_validate_json(content)
        except ValidationError as e:
            raise ExtractorError(f"response did not match {schema.__name__}: {e}", source=schema.__name__) from e


def build_llm(settings: PipelineSettings) -> Optional[ListingLLM]:
    """ListingLLM for the configured key, or None when no key is set."""
    if not settings.llm_enabled:
        return None
    return ListingLLM(
        api_key=settings.openai_api_key,
        model=settings.llm_model,
        base_url=settings.openai_base_url,
    )


# --- prompts ----------------------------------------------------------------

def page_projection(html: str, max_length: int) -> str:
    """The slice of the page the model sees. Oversized pages are truncated."""
    return html[:max_length] if len(html) > max_length else html


def _price_prompt(url: str, page: str) -> str:
    return (
        f"The HTML below is a property listing from {url}.\n"
        "Find the ASKING PRICE only. It is usually shown with a currency sign and "
        "thousands separators (e.g. $1,250,000 or 499000).\n"
        "Return it as askingPrice, digits only. If there is no price, return null.\n\n"
        f"HTML:\n```html\n{page}\n```\n"
    )


def _details_prompt(url: str, page: str, price_hint: Optional[str]) -> str:
    if price_hint:
        hint = f"The asking price was probably {price_hint}; confirm it or correct it."
    else:
        hint = "The asking price is important; look for it along with everything else."
    return (
        f"The HTML below is a property listing from {url}. Extract the property details.\n"
        f"{hint}\n"
        "Fields: address, askingPrice, beds, baths, sqft, propertyType, yearBuilt, "
        "garageSpaces, levels, lotSize, imageUrl, description, latitude, longitude.\n"
        "Use null for any field the page does not state.\n\n"
        f"HTML:\n```html\n{page}\n```\n"
    )


# --- extraction calls -------------------------------------------------------

async def extract_price(llm: ListingLLM, url: str, page: str) -> ExtractionResult:
    try:
        data = await llm.extract(_price_prompt(url, page), PriceExtraction)
    except Exception as e:
        log.error("LLM price extraction failed for %s: %s", url, e)
        return ExtractionResult(source=ExtractionSource.LLM_PRICE)
    return ExtractionResult(source=ExtractionSource.LLM_PRICE, price=data.asking_price)


async def extract_details(
    llm: ListingLLM,
    url: str,
    page: str,
    price_hint: Optional[str] = None,
) -> ExtractionResult:
    try:
        data = await llm.extract(_details_prompt(url, page, price_hint), ListingDetailsExtraction)
    except Exception as e:
        log.error("LLM detail extraction failed for %s: %s", url, e)
        return ExtractionResult(source=ExtractionSource.LLM_GENERAL)
    return ExtractionResult(
        source=ExtractionSource.LLM_GENERAL,
        address=data.address,
        price=data.asking_price,
        beds=data.beds,
        baths=data.baths,
        sqft=data.sqft,
        property_type=data.property_type,
        year_built=data.year_built,
        garage_spaces=data.garage_spaces,
        levels=data.levels,
        lot_size=data.lot_size,
        image_url=data.image_url,
        description=data.description,
        latitude=data.latitude,
        longitude=data.longitude,
    )


async def extract_with_llm(
    llm: Optional[ListingLLM],
    url: str,
    html: str,
    max_length: int,
    concurrent: bool = True,
) -> tuple[ExtractionResult, ExtractionResult]:
    """
    Run the price-only and general extraction calls.

    Returns (price_result, general_result). Without a model both are empty.
    Concurrently, neither call sees the other's answer; sequentially, the
    price answer is passed to the general call as a hint.
    """
    if llm is None:
        log.info("LLM not configured; skipping model extraction for %s", url)
        return (
            ExtractionResult(source=ExtractionSource.LLM_PRICE),
            ExtractionResult(source=ExtractionSource.LLM_GENERAL),
        )

    page = page_projection(html, max_length)
    if concurrent:
        price, general = await asyncio.gather(
            extract_price(llm, url, page),
            extract_details(llm, url, page),
        )
    else:
        price = await extract_price(llm, url, page)
        general = await extract_details(llm, url, page, price_hint=price.price)
    return price, general
