"""Client utilities for the TMAP POI and reverse-geocoding APIs."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from market_scan.core.categories import CategoryProfile
from market_scan.core.geo import radius_to_km_param
from market_scan.etl.transform import build_keyword_query, safe_int, tmap_poi_to_listing
from market_scan.models import SOURCE_TMAP_AROUND, SOURCE_TMAP_KEYWORD, Coordinates, RawListing
from market_scan.vendors.base import AdapterError, AdapterResult, ProviderAdapter, extrapolate_total

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://apis.openapi.sk.com/tmap"
_PAGE_SIZE = 200


class TmapError(RuntimeError):
    """Raised when a TMAP utility call (not an adapter) fails."""


class _TmapPoiAdapter(ProviderAdapter):
    path = ""

    def _params(self, center: Coordinates, radius_meters: int, category: CategoryProfile, address_hint: Optional[str]) -> Dict[str, Any]:
        lon, lat = center
        return {
            "version": 1,
            "centerLon": lon,
            "centerLat": lat,
            "radius": radius_to_km_param(radius_meters),
            "reqCoordType": "WGS84GEO",
            "resCoordType": "WGS84GEO",
            "count": _PAGE_SIZE,
            "page": 1,
        }

    def _fetch(self, center, radius_meters, category, address_hint):
        if not self.settings.tmap_api_key:
            raise AdapterError(self.source_id, "TMAP_API_KEY is not configured")

        payload = self._get_json(
            _SESSION,
            f"{_BASE_URL}{self.path}",
            params=self._params(center, radius_meters, category, address_hint),
            headers={"Accept": "application/json", "appKey": self.settings.tmap_api_key},
        )
        if payload is None:
            return AdapterResult(source_id=self.source_id, total_count_reported=0)
        if "error" in payload:
            error = payload.get("error") or {}
            raise AdapterError(self.source_id, f"provider error {error.get('code') or error.get('id')}")

        info = payload.get("searchPoiInfo")
        if not isinstance(info, dict):
            raise AdapterError(self.source_id, "missing searchPoiInfo")
        total = safe_int(info.get("totalCount"))
        pois = _extract_pois(info)

        listings, returned = self._to_listings(pois, radius_meters, category)
        return AdapterResult(
            source_id=self.source_id,
            total_count_reported=extrapolate_total(total, len(listings), returned),
            listings=listings,
        )

    def _to_listings(self, pois: List[Any], radius_meters: int, category: CategoryProfile) -> Tuple[List[RawListing], int]:
        """Normalize POIs, dropping those outside the requested radius.

        TMAP only accepts whole-kilometre radii, so the search area can be
        wider than requested.
        """
        listings: List[RawListing] = []
        returned = 0
        for poi in pois:
            if not isinstance(poi, dict):
                continue
            listing = tmap_poi_to_listing(poi, self.source_id)
            if listing is None:
                continue
            returned += 1
            if listing.distance_meters is not None and listing.distance_meters > radius_meters:
                continue
            listing.is_target_category = category.matches_category_text(
                poi.get("upperBizName"),
                poi.get("middleBizName"),
                poi.get("lowerBizName"),
                poi.get("detailBizName"),
            )
            listings.append(listing)
        return listings, returned


class TmapKeywordAdapter(_TmapPoiAdapter):
    """Keyword search scoped to the locality of the address hint."""

    source_id = SOURCE_TMAP_KEYWORD
    path = "/pois"

    def _params(self, center, radius_meters, category, address_hint):
        params = super()._params(center, radius_meters, category, address_hint)
        params.update(
            {
                "searchKeyword": build_keyword_query(address_hint, category.search_term),
                "searchType": "all",
                "searchtypCd": "R",
            }
        )
        return params


class TmapAroundAdapter(_TmapPoiAdapter):
    """Around-POI search by TMAP category term."""

    source_id = SOURCE_TMAP_AROUND
    path = "/pois/search/around"

    def _params(self, center, radius_meters, category, address_hint):
        params = super()._params(center, radius_meters, category, address_hint)
        params["categories"] = category.search_term
        return params


def reverse_geocode(lat: float, lon: float, api_key: str, timeout: float = 5.0) -> Optional[str]:
    """Return a human-readable address for a coordinate, or ``None`` if TMAP has none."""
    if not api_key:
        raise TmapError("TMAP_API_KEY is not configured")
    params = {
        "version": 1,
        "lat": lat,
        "lon": lon,
        "coordType": "WGS84GEO",
        "addressType": "A10",
    }
    response = _SESSION.get(
        f"{_BASE_URL}/geo/reversegeocoding",
        params=params,
        headers={"Accept": "application/json", "appKey": api_key},
        timeout=timeout,
    )
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, dict):
        raise TmapError("malformed payload")
    if "error" in payload:
        error = payload.get("error")
        if not isinstance(error, dict):
            error = {}
        logger.error("reverse_geocode failed: code=%s message=%s", error.get("code"), error.get("message"))
        raise TmapError(error.get("message") or "reverse geocoding failed")

    info = payload.get("addressInfo") or {}
    if not isinstance(info, dict):
        raise TmapError("malformed payload")
    parts = [info.get("city_do"), info.get("gu_gun"), info.get("adminDong") or info.get("legalDong")]
    if any(parts):
        return " ".join(part for part in parts if part)
    return info.get("fullAddress") or None


def _extract_pois(info: Dict[str, Any]) -> List[Any]:
    """``pois.poi`` is a list, or a single object when TMAP finds one match."""
    pois = info.get("pois") or {}
    items = pois.get("poi") if isinstance(pois, dict) else None
    if isinstance(items, list):
        return items
    if isinstance(items, dict):
        return [items]
    return []
