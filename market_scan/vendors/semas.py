"""Adapter for the SEMAS (small-business market) store statistics API.

SEMAS is the only provider whose listings carry a comparable industry-code
hierarchy, so it is also the source of the authoritative category breakdown.
"""

import logging
from typing import Dict, List

import requests

from market_scan.core.categories import semas_large_class_name
from market_scan.etl.transform import safe_int, semas_codes, semas_item_to_listing
from market_scan.models import SOURCE_SEMAS, CategoryBucket, RawListing
from market_scan.vendors.base import AdapterError, AdapterResult, ProviderAdapter, extrapolate_total

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://apis.data.go.kr/B553077/api/open/sdsc2/storeListInRadius"
_OK_CODE = "00"


class SemasAdapter(ProviderAdapter):
    source_id = SOURCE_SEMAS

    def _fetch(self, center, radius_meters, category, address_hint):
        if not self.settings.semas_api_key:
            raise AdapterError(self.source_id, "SEMAS_API_KEY is not configured")

        lon, lat = center
        params = {
            "serviceKey": self.settings.semas_api_key,
            "radius": radius_meters,
            "cx": lon,
            "cy": lat,
            "type": "json",
            "numOfRows": self.settings.semas_max_rows,
            "pageNo": 1,
        }
        payload = self._get_json(_SESSION, _BASE_URL, params=params, headers={"Accept": "application/json"})
        if payload is None:
            raise AdapterError(self.source_id, "empty response")

        header = payload.get("header") or {}
        result_code = str(header.get("resultCode") or "").strip()
        if result_code != _OK_CODE:
            # "03" (no data) included: an empty area must not pass as a confirmed zero.
            raise AdapterError(self.source_id, f"result code {result_code or 'missing'}")

        body = payload.get("body")
        if not isinstance(body, dict):
            raise AdapterError(self.source_id, "missing body")
        items = body.get("items") or []
        if not isinstance(items, list):
            raise AdapterError(self.source_id, "items is not a list")

        listings: List[RawListing] = []
        breakdown: Dict[str, CategoryBucket] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            listing = semas_item_to_listing(item)
            if listing is None:
                continue
            large, middle, small = semas_codes(item)
            listing.is_target_category = category.matches_code(large, middle, small)
            listings.append(listing)
            self._add_to_bucket(breakdown, semas_large_class_name(large, item.get("indsLclsNm")), listing)

        self.flag_by_name(listings, category)
        matched = sum(1 for listing in listings if listing.is_target_category)
        total = safe_int(body.get("totalCount"))
        if total is None:
            total = len(listings)

        return AdapterResult(
            source_id=self.source_id,
            total_count_reported=extrapolate_total(total, matched, len(listings)),
            listings=listings,
            category_breakdown=breakdown,
        )

    def _add_to_bucket(self, breakdown: Dict[str, CategoryBucket], name: str, listing: RawListing) -> None:
        bucket = breakdown.get(name)
        if bucket is None:
            bucket = breakdown[name] = CategoryBucket(category_name=name)
        bucket.count += 1
        if len(bucket.sample_items) < self.settings.category_sample_cap:
            bucket.sample_items.append(listing)
