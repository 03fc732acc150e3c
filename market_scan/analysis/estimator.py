"""Competitor-count estimation, density and risk tiers."""

import logging
from typing import Dict, List, Mapping, Optional, Tuple

from market_scan.core.config import DEFAULT_SOURCE_WEIGHTS, parse_source_weights
from market_scan.core.geo import circle_area_km2
from market_scan.models import AnalysisSummary, Business, Reliability, RiskTier

logger = logging.getLogger(__name__)

# Inclusive upper bounds; anything above the last bound is VeryHigh.
RISK_BREAKPOINTS: Tuple[Tuple[int, RiskTier], ...] = (
    (0, RiskTier.BLUE_OCEAN),
    (10, RiskTier.LOW),
    (30, RiskTier.MEDIUM),
    (70, RiskTier.HIGH),
)

RISK_DESCRIPTIONS: Dict[RiskTier, str] = {
    RiskTier.BLUE_OCEAN: "{count} competitors found within the radius; an untapped blue ocean.",
    RiskTier.LOW: "{count} competitors nearby; competition is light.",
    RiskTier.MEDIUM: "{count} competitors nearby; expect moderate competition and plan differentiation.",
    RiskTier.HIGH: "{count} competitors nearby; the area is crowded and needs a clear edge.",
    RiskTier.VERY_HIGH: "{count} competitors nearby; saturated market with very high entry risk.",
}

HIGH_RELIABILITY_MIN_CROSS_VERIFIED = 6


def risk_tier_for(count: int) -> RiskTier:
    for upper, tier in RISK_BREAKPOINTS:
        if count <= upper:
            return tier
    return RiskTier.VERY_HIGH


def weighted_estimate(totals: Mapping[str, Optional[int]], weights: Mapping[str, float]) -> Optional[float]:
    """Convex combination of the reported totals.

    Only sources with a reported total and a positive weight take part; their
    weights are renormalized to sum to 1, so a missing source's share is spread
    proportionally over the others. ``None`` when nobody qualifies.
    """
    reporting = {
        source_id: total
        for source_id, total in totals.items()
        if total is not None and weights.get(source_id, 0) > 0
    }
    ignored = [source_id for source_id, total in totals.items() if total is not None and source_id not in reporting]
    if ignored:
        logger.debug("Totals without a configured weight ignored: %s", ignored)
    if not reporting:
        return None
    weight_sum = sum(weights[source_id] for source_id in reporting)
    return sum(weights[source_id] / weight_sum * total for source_id, total in reporting.items())


def estimate(
    per_source_totals: Mapping[str, Optional[int]],
    businesses: List[Business],
    radius_meters: int,
    weights: Optional[Mapping[str, float]] = None,
) -> AnalysisSummary:
    """Summarize competition for one analysis.

    ``per_source_totals`` holds one entry per source that succeeded (``None``
    when it reported no total); an empty mapping means every source failed.
    ``weights`` defaults to ``DEFAULT_SOURCE_WEIGHTS``.
    """
    if weights is None:
        weights = parse_source_weights(DEFAULT_SOURCE_WEIGHTS)
    succeeded = len(per_source_totals)
    cross_verified = sum(1 for business in businesses if business.is_cross_verified)

    if succeeded == 0:
        count = 0
        reliability = Reliability.UNAVAILABLE
        logger.warning("No provider succeeded; returning a degraded estimate")
    else:
        combined = weighted_estimate(per_source_totals, weights)
        if combined is None:
            count = sum(1 for business in businesses if business.is_target_category)
            logger.info("No weighted totals reported; using %d merged competitors as the estimate", count)
        else:
            count = int(round(combined))
        if cross_verified >= HIGH_RELIABILITY_MIN_CROSS_VERIFIED:
            reliability = Reliability.HIGH
        else:
            reliability = Reliability.MEDIUM

    area = circle_area_km2(radius_meters)
    tier = risk_tier_for(count)
    return AnalysisSummary(
        estimated_competitor_count=count,
        area_km2=area,
        density_per_km2=count / area,
        risk_tier=tier,
        risk_description=RISK_DESCRIPTIONS[tier].format(count=count),
        cross_verified_count=cross_verified,
        reliability=reliability,
    )
