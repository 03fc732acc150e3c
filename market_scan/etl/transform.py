"""Utilities for transforming provider responses into ``RawListing`` objects."""

import logging
import re
from typing import Any, Dict, Optional, Tuple

from market_scan.core.categories import semas_large_class_name
from market_scan.models import (
    SOURCE_NAVER_LOCAL,
    SOURCE_SEMAS,
    Coordinates,
    RawListing,
)

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_NAVER_COORD_SCALE = 10_000_000


def tmap_poi_to_listing(poi: Dict[str, Any], source_id: str) -> Optional[RawListing]:
    name = _strip_or_none(poi.get("name"))
    if not name:
        logger.debug("Skipping TMAP POI without name: %s", poi.get("id"))
        return None

    biz_names = [
        _strip_or_none(poi.get(key))
        for key in ("upperBizName", "middleBizName", "lowerBizName", "detailBizName")
    ]
    category = next((value for value in reversed(biz_names[:3]) if value), None)
    phone = _strip_or_none(poi.get("telNo"))

    return RawListing(
        name=name,
        address=tmap_address(poi),
        source_id=source_id,
        category=category,
        phone=phone,
        coordinates=_coordinates(poi.get("frontLon") or poi.get("noorLon"), poi.get("frontLat") or poi.get("noorLat")),
        distance_meters=_km_to_meters(poi.get("radius")),
        provider_category_code=_strip_or_none(poi.get("mlClass")),
    )


def tmap_address(poi: Dict[str, Any]) -> Optional[str]:
    """Prefer the road address (``roadName firstBuildNo-secondBuildNo``), fall back to the lot address."""
    region = [_strip_or_none(poi.get(key)) for key in ("upperAddrName", "middleAddrName")]
    road_name = _strip_or_none(poi.get("roadName"))
    if road_name:
        number = _join_number(poi.get("firstBuildNo"), poi.get("secondBuildNo"))
        return " ".join(filter(None, [*region, road_name, number]))

    lower = _strip_or_none(poi.get("lowerAddrName"))
    detail = _strip_or_none(poi.get("detailAddrName"))
    number = _join_number(poi.get("firstNo"), poi.get("secondNo"))
    parts = [*region, lower, detail, number]
    if not any(parts):
        return None
    return " ".join(filter(None, parts))


def naver_item_to_listing(item: Dict[str, Any]) -> Optional[RawListing]:
    name = strip_tags(item.get("title"))
    if not name:
        return None

    category = _strip_or_none(item.get("category"))
    display_category = category.split(">")[-1].strip() if category else None
    coordinates = _naver_coordinates(item.get("mapx"), item.get("mapy"))

    return RawListing(
        name=name,
        address=_strip_or_none(item.get("roadAddress")) or _strip_or_none(item.get("address")),
        source_id=SOURCE_NAVER_LOCAL,
        category=display_category,
        phone=_strip_or_none(item.get("telephone")),
        coordinates=coordinates,
        provider_category_code=category,
    )


def semas_item_to_listing(item: Dict[str, Any]) -> Optional[RawListing]:
    name = _strip_or_none(item.get("bizesNm"))
    if not name:
        return None

    branch = _strip_or_none(item.get("brchNm"))
    if branch and branch not in name:
        name = f"{name} {branch}"

    small_code = _strip_or_none(item.get("indsSclsCd"))
    middle_code = _strip_or_none(item.get("indsMclsCd"))
    large_code = _strip_or_none(item.get("indsLclsCd"))

    return RawListing(
        name=name,
        address=_strip_or_none(item.get("rdnmAdr")) or _strip_or_none(item.get("lnoAdr")),
        source_id=SOURCE_SEMAS,
        category=_strip_or_none(item.get("indsSclsNm"))
        or _strip_or_none(item.get("indsMclsNm"))
        or semas_large_class_name(large_code, _strip_or_none(item.get("indsLclsNm"))),
        coordinates=_coordinates(item.get("lon"), item.get("lat")),
        provider_category_code=small_code or middle_code or large_code,
    )


def semas_codes(item: Dict[str, Any]) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Return the ``(large, middle, small)`` industry codes of a SEMAS store item."""
    return (
        _strip_or_none(item.get("indsLclsCd")),
        _strip_or_none(item.get("indsMclsCd")),
        _strip_or_none(item.get("indsSclsCd")),
    )


def strip_tags(value: Any) -> Optional[str]:
    text = _strip_or_none(value)
    if text is None:
        return None
    cleaned = _TAG_RE.sub("", text).replace("&amp;", "&").strip()
    return cleaned or None


def safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        if digits:
            return int(digits)
    return None


def _naver_coordinates(mapx: Any, mapy: Any) -> Optional[Coordinates]:
    lon = _safe_float(mapx)
    lat = _safe_float(mapy)
    if lon is None or lat is None:
        return None
    # Current responses are WGS84 scaled by 1e7; anything already in degrees is kept as-is.
    if abs(lon) > 180 or abs(lat) > 90:
        lon, lat = lon / _NAVER_COORD_SCALE, lat / _NAVER_COORD_SCALE
    return _coordinates(lon, lat)


def _coordinates(lon: Any, lat: Any) -> Optional[Coordinates]:
    lon_f = _safe_float(lon)
    lat_f = _safe_float(lat)
    if lon_f is None or lat_f is None:
        return None
    if not (-180.0 <= lon_f <= 180.0 and -90.0 <= lat_f <= 90.0):
        return None
    return (lon_f, lat_f)


def _km_to_meters(value: Any) -> Optional[float]:
    km = _safe_float(value)
    if km is None:
        return None
    return round(km * 1000, 1)


def _join_number(first: Any, second: Any) -> Optional[str]:
    first_s = _strip_or_none(first)
    second_s = _strip_or_none(second)
    if not first_s or first_s == "0":
        return None
    if second_s and second_s != "0":
        return f"{first_s}-{second_s}"
    return first_s


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def build_keyword_query(address_hint: Optional[str], term: str) -> str:
    """Scope a keyword search to the locality of ``address_hint``.

    ``"서울특별시 강남구 역삼동 123-4"`` with ``"카페"`` becomes ``"강남구 역삼동 카페"``:
    the last two address tokens without digits, followed by the term.
    """
    if not address_hint:
        return term
    tokens = [token for token in address_hint.split() if not any(ch.isdigit() for ch in token)]
    return " ".join([*tokens[-2:], term])
