"""Category counting and competitor selection."""

import logging
from collections import Counter
from typing import Dict, List, Mapping, Optional, Tuple

from market_scan.core.categories import UNKNOWN_CATEGORY
from market_scan.models import Business, CategoryBucket

logger = logging.getLogger(__name__)


def breakdown_counts(buckets: Optional[Mapping[str, CategoryBucket]]) -> Optional[Dict[str, int]]:
    if buckets is None:
        return None
    return {name: bucket.count for name, bucket in buckets.items()}


def classify(
    businesses: List[Business],
    authoritative_breakdown: Optional[Mapping[str, int]],
) -> Tuple[Dict[str, int], List[Business]]:
    """Return ``(per_category_counts, competitors)``.

    Counts come from the statistics provider when it produced a breakdown;
    otherwise they are regrouped from the merged businesses' categories.
    """
    competitors = [business for business in businesses if business.is_target_category]

    if authoritative_breakdown:
        counts = dict(sorted(authoritative_breakdown.items(), key=lambda item: (-item[1], item[0])))
        return counts, competitors

    logger.info("No authoritative category breakdown; regrouping %d merged businesses", len(businesses))
    grouped = Counter(business.category or UNKNOWN_CATEGORY for business in businesses)
    counts = dict(sorted(grouped.items(), key=lambda item: (-item[1], item[0])))
    return counts, competitors
