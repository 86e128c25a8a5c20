from typing import Optional

from backend.listing_details.numbers import coordinate_pair, normalize_number
from backend.py_models.listing import ExtractionResult, ListingRecord


def _clean(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    return str(v).strip() or None


def _first(*values):
    """First non-empty value, else None."""
    for v in values:
        if v:
            return v
    return None


def _price(v: Optional[str]) -> Optional[str]:
    """Normalized price; an all-zero price counts as not listed."""
    n = normalize_number(v)
    if n is None or float(n) == 0:
        return None
    return n


def reconcile(
    structured: ExtractionResult,
    dom: ExtractionResult,
    llm_price: ExtractionResult,
    llm_general: ExtractionResult,
) -> ListingRecord:
    """
    Merge per-source results into one ListingRecord.

    Each field takes the first non-empty value along a fixed source order:

        price        jsonld -> llm price call -> llm general -> dom
        address      jsonld -> llm general
        title        jsonld -> address -> dom
        description  jsonld -> llm general -> dom (meta description)
        imageUrl     jsonld -> llm general -> dom (og:image)
        beds, baths, sqft, propertyType, yearBuilt
                     jsonld -> llm general
        garageSpaces, levels, lotSize
                     llm general
        lat/lng      jsonld pair -> llm general pair

    Coordinates are taken as a pair from one source or not at all.
    """
    address = _first(_clean(structured.address), _clean(llm_general.address))
    coords = _first(
        coordinate_pair(structured.latitude, structured.longitude),
        coordinate_pair(llm_general.latitude, llm_general.longitude),
    )
    lat, lng = coords if coords else (None, None)

    return ListingRecord(
        address=address,
        title=_first(_clean(structured.title), address, _clean(dom.title)),
        description=_first(
            _clean(structured.description),
            _clean(llm_general.description),
            _clean(dom.description),
        ),
        image_url=_first(
            _clean(structured.image_url),
            _clean(llm_general.image_url),
            _clean(dom.image_url),
        ),
        price=_first(
            _price(structured.price),
            _price(llm_price.price),
            _price(llm_general.price),
            _price(dom.price),
        ),
        beds=_first(normalize_number(structured.beds), normalize_number(llm_general.beds)),
        baths=_first(normalize_number(structured.baths), normalize_number(llm_general.baths)),
        sqft=_first(normalize_number(structured.sqft), normalize_number(llm_general.sqft)),
        property_type=_first(_clean(structured.property_type), _clean(llm_general.property_type)),
        year_built=_first(normalize_number(structured.year_built), normalize_number(llm_general.year_built)),
        garage_spaces=normalize_number(llm_general.garage_spaces),
        levels=_clean(llm_general.levels),
        lot_size=_clean(llm_general.lot_size),
        latitude=lat,
        longitude=lng,
    )
