import math
import re
from typing import Optional

_non_numeric = re.compile(r"[^0-9.]")


def extract_digits(text) -> str:
    """Keep only ASCII digits and '.' from `text`; '' when nothing survives."""
    if text is None:
        return ""
    return _non_numeric.sub("", str(text))


def normalize_number(text) -> Optional[str]:
    """
    extract_digits plus cleanup for storage: stray leading/trailing dots are
    dropped ("450,000." -> "450000") and anything with more than one decimal
    point is rejected.
    """
    digits = extract_digits(text).strip(".")
    if not digits or digits.count(".") > 1:
        return None
    return digits


def parse_coordinate(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        s = str(value).strip()
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            return None
    if not math.isfinite(num):
        return None
    return num


def coordinate_pair(lat, lng) -> Optional[tuple[float, float]]:
    """Both values parsed and in range, or None. Never half a pair."""
    lat_f = parse_coordinate(lat)
    lng_f = parse_coordinate(lng)
    if lat_f is None or lng_f is None:
        return None
    if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0):
        return None
    return lat_f, lng_f
