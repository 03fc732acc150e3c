"""Common contract for the geodata provider adapters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from market_scan.core.categories import CategoryProfile
from market_scan.core.config import Settings
from market_scan.core.geo import haversine_meters
from market_scan.models import CategoryBucket, Coordinates, RawListing

logger = logging.getLogger(__name__)


class AdapterError(RuntimeError):
    """Raised when one provider cannot deliver usable listings.

    Always scoped to a single source: the orchestrator records it against that
    source and carries on with the others.
    """

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id
        self.reason = message


@dataclass(slots=True)
class AdapterResult:
    source_id: str
    total_count_reported: Optional[int]
    listings: List[RawListing] = field(default_factory=list)
    category_breakdown: Optional[Dict[str, CategoryBucket]] = None


class ProviderAdapter:
    """Base class wrapping one provider behind ``fetch_listings``.

    Subclasses implement ``_fetch``; this class adds the immediate retry,
    translation of transport errors into ``AdapterError``, distance fill-in and
    the name-keyword fallback for target-category flagging.
    """

    source_id: str = ""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.timeout = settings.adapter_timeout_seconds
        self.retries = settings.adapter_retries

    def fetch_listings(
        self,
        center: Coordinates,
        radius_meters: int,
        category: CategoryProfile,
        address_hint: Optional[str] = None,
    ) -> AdapterResult:
        attempt = 0
        while True:
            attempt += 1
            try:
                logger.info(
                    "Calling %s (attempt %s) center=%s radius=%s category=%s",
                    self.source_id,
                    attempt,
                    center,
                    radius_meters,
                    category.key,
                )
                result = self._fetch(center, radius_meters, category, address_hint)
                break
            except (AdapterError, requests.RequestException, ValueError) as exc:
                # Transport messages can echo the request URL, query-string keys included.
                reason = exc.reason if isinstance(exc, AdapterError) else _describe(exc)
                logger.warning("%s request failed (attempt %s/%s): %s", self.source_id, attempt, self.retries + 1, reason)
                if attempt > self.retries:
                    logger.error("%s exhausted retries", self.source_id)
                    if isinstance(exc, AdapterError):
                        raise
                    raise AdapterError(self.source_id, reason) from exc

        self._fill_distances(result.listings, center)
        self.flag_by_name(result.listings, category)
        logger.info(
            "%s returned %d listings (reported total=%s)",
            self.source_id,
            len(result.listings),
            result.total_count_reported,
        )
        return result

    def _fetch(
        self,
        center: Coordinates,
        radius_meters: int,
        category: CategoryProfile,
        address_hint: Optional[str],
    ) -> AdapterResult:
        raise NotImplementedError

    def _get_json(self, session: requests.Session, url: str, **kwargs: Any) -> Optional[Dict[str, Any]]:
        """GET ``url`` and decode JSON; ``None`` for 204 No Content."""
        response = session.get(url, timeout=self.timeout, **kwargs)
        if response.status_code == 204:
            return None
        if not 200 <= response.status_code < 300:
            raise AdapterError(self.source_id, f"HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise AdapterError(self.source_id, "malformed JSON payload") from exc
        if not isinstance(payload, dict):
            raise AdapterError(self.source_id, "unexpected payload type")
        return payload

    @staticmethod
    def _fill_distances(listings: List[RawListing], center: Coordinates) -> None:
        for listing in listings:
            if listing.distance_meters is None and listing.coordinates is not None:
                listing.distance_meters = round(haversine_meters(center, listing.coordinates), 1)

    @staticmethod
    def flag_by_name(listings: List[RawListing], category: CategoryProfile) -> int:
        """Name-keyword fallback when structured matching found nothing."""
        if not listings or any(listing.is_target_category for listing in listings):
            return 0
        hits = 0
        for listing in listings:
            if category.matches_name(listing.name):
                listing.is_target_category = True
                hits += 1
        if hits:
            logger.info("Name-keyword fallback flagged %d listings as %s", hits, category.key)
        return hits


AdapterFactory = Callable[[Settings], ProviderAdapter]


def _describe(exc: Exception) -> str:
    if isinstance(exc, requests.Timeout):
        return "request timed out"
    if isinstance(exc, requests.ConnectionError):
        return "connection failed"
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return f"HTTP {exc.response.status_code}"
    return exc.__class__.__name__


def extrapolate_total(reported: Optional[int], matched: int, returned: int) -> Optional[int]:
    """Scale ``matched`` up to the provider's full result size.

    When the provider returned everything it counted, ``matched`` is exact.
    When it truncated the page, the matched share of the returned sample is
    applied to the reported total. With no usable rows there is no sample to
    scale from, so a non-zero total is withheld (``None``).
    """
    if reported is None:
        return None
    if returned <= 0:
        return 0 if reported == 0 else None
    if reported <= returned:
        return matched
    return round(reported * matched / returned)


@dataclass(slots=True)
class SourceOutcome:
    """What one adapter task produced: a result or the error that replaced it."""

    source_id: str
    result: Optional[AdapterResult] = None
    error: Optional[AdapterError] = None

    @property
    def ok(self) -> bool:
        return self.result is not None
