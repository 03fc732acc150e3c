"""Naver local-search adapter."""

import logging

import requests

from market_scan.core.geo import haversine_meters
from market_scan.etl.transform import build_keyword_query, naver_item_to_listing
from market_scan.models import SOURCE_NAVER_LOCAL
from market_scan.vendors.base import AdapterError, AdapterResult, ProviderAdapter

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://openapi.naver.com/v1/search/local.json"
_DISPLAY = 5


class NaverLocalAdapter(ProviderAdapter):
    """Keyword search against Naver's local index.

    The API is not radius-aware and its ``total`` counts matches nation-wide,
    so results are filtered by distance here and no total is reported.
    """

    source_id = SOURCE_NAVER_LOCAL

    def _fetch(self, center, radius_meters, category, address_hint):
        if not (self.settings.naver_client_id and self.settings.naver_client_secret):
            raise AdapterError(self.source_id, "Naver client credentials are not configured")

        params = {
            "query": build_keyword_query(address_hint, category.search_term),
            "display": _DISPLAY,
            "sort": "random",
        }
        headers = {
            "X-Naver-Client-Id": self.settings.naver_client_id,
            "X-Naver-Client-Secret": self.settings.naver_client_secret,
        }
        payload = self._get_json(_SESSION, _BASE_URL, params=params, headers=headers)
        if payload is None:
            return AdapterResult(source_id=self.source_id, total_count_reported=None)
        if payload.get("errorCode"):
            raise AdapterError(self.source_id, f"provider error {payload.get('errorCode')}")

        items = payload.get("items")
        if not isinstance(items, list):
            raise AdapterError(self.source_id, "missing items")

        listings = []
        for item in items:
            if not isinstance(item, dict):
                continue
            listing = naver_item_to_listing(item)
            if listing is None:
                continue
            if listing.coordinates is not None:
                listing.distance_meters = round(haversine_meters(center, listing.coordinates), 1)
                if listing.distance_meters > radius_meters:
                    logger.debug("Dropping %s outside radius (%.0fm)", listing.name, listing.distance_meters)
                    continue
            listing.is_target_category = category.matches_category_text(listing.provider_category_code)
            listings.append(listing)

        return AdapterResult(source_id=self.source_id, total_count_reported=None, listings=listings)
