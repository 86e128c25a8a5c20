import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_price_re = re.compile(r"^\d+(?:\.\d+)?$")


class ExtractionSource(str, Enum):
    """Which extractor produced an ExtractionResult."""

    JSONLD = "jsonld"
    DOM = "dom"
    LLM_PRICE = "llm_price"
    LLM_GENERAL = "llm_general"


class _ListingFields(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    address: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    price: Optional[str] = Field(None, description="Asking price, digits only")
    beds: Optional[str] = None
    baths: Optional[str] = None
    sqft: Optional[str] = None
    property_type: Optional[str] = Field(None, alias="propertyType")
    year_built: Optional[str] = Field(None, alias="yearBuilt")
    garage_spaces: Optional[str] = Field(None, alias="garageSpaces")
    levels: Optional[str] = None
    lot_size: Optional[str] = Field(None, alias="lotSize")


class ExtractionResult(_ListingFields):
    """
    Partial listing data recovered by a single extractor.
    Values are raw text as found by that technique; coordinates stay unparsed
    until reconciliation.
    """

    source: ExtractionSource
    latitude: Optional[str] = None
    longitude: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(v for k, v in self.model_dump(exclude={"source"}).items())


class ListingRecord(_ListingFields):
    """Canonical, reconciled description of one listing page."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("price")
    @classmethod
    def _digits_only(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _price_re.match(v):
            raise ValueError(f"price must be a digit string, got {v!r}")
        return v

    @model_validator(mode="after")
    def _coordinate_pair(self) -> "ListingRecord":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be set together")
        return self

    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> dict:
        """Flat camelCase mapping with absent fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)
