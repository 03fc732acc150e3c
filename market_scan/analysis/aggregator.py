"""Merge per-source listings into deduplicated ``Business`` records."""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from market_scan.models import Business, RawListing, source_rank

logger = logging.getLogger(__name__)

_OPTIONAL_FIELDS = ("category", "phone", "coordinates", "distance_meters")


class AggregationError(ValueError):
    """Raised for a listing that cannot be keyed for deduplication."""


def normalize_key_part(value: Optional[str]) -> str:
    return "".join((value or "").lower().split())


def dedup_key(listing: RawListing) -> Tuple[str, str]:
    name = normalize_key_part(listing.name)
    address = normalize_key_part(listing.address)
    if not name or not address:
        raise AggregationError(f"listing from {listing.source_id} lacks name or address: {listing.name!r}")
    return name, address


def merge(listings_per_source: Iterable[Tuple[str, Sequence[RawListing]]]) -> List[Business]:
    """Fold listings sharing a dedup key into one ``Business`` each.

    Within a key, listings are visited in source-priority order (input order
    within one source), so the first non-null optional field is chosen
    deterministically. Output puts multi-source businesses first, then the
    closest; unknown distances sort last and remaining ties keep first-seen order.
    """
    groups: Dict[Tuple[str, str], List[Tuple[int, int, RawListing]]] = {}
    seen = 0
    for _source_id, listings in listings_per_source:
        for listing in listings:
            try:
                key = dedup_key(listing)
            except AggregationError as exc:
                logger.warning("Dropping listing: %s", exc)
                continue
            groups.setdefault(key, []).append((source_rank(listing.source_id), seen, listing))
            seen += 1

    merged: List[Tuple[int, Business]] = []
    for members in groups.values():
        first_seen = min(order for _, order, _ in members)
        ordered = [listing for _, _, listing in sorted(members, key=lambda member: (member[0], member[1]))]
        merged.append((first_seen, _fold(ordered)))

    merged.sort(key=lambda entry: _sort_key(entry[1], entry[0]))
    return [business for _, business in merged]


def _fold(listings: List[RawListing]) -> Business:
    head = listings[0]
    business = Business(
        name=head.name,
        address=head.address or "",
        sources={head.source_id},
        is_target_category=head.is_target_category,
        listing_count=0,
    )
    for listing in listings:
        business.sources.add(listing.source_id)
        business.is_target_category = business.is_target_category or listing.is_target_category
        business.listing_count += 1
        for field_name in _OPTIONAL_FIELDS:
            if getattr(business, field_name) is None:
                setattr(business, field_name, getattr(listing, field_name))
    return business


def _sort_key(business: Business, first_seen: int) -> Tuple[int, int, float, int]:
    distance = business.distance_meters
    return (
        -len(business.sources),
        1 if distance is None else 0,
        distance if distance is not None else 0.0,
        first_seen,
    )
