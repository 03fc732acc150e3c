import math

import pytest

from market_scan.analysis import estimator
from market_scan.models import Business, Reliability, RiskTier

WEIGHTS = {"semas": 0.4, "tmap_keyword": 0.3, "tmap_around": 0.3}


def _business(sources, target=True):
    return Business(name="x", address="y", sources=set(sources), is_target_category=target)


@pytest.mark.parametrize(
    "count, tier",
    [
        (0, RiskTier.BLUE_OCEAN),
        (1, RiskTier.LOW),
        (10, RiskTier.LOW),
        (11, RiskTier.MEDIUM),
        (30, RiskTier.MEDIUM),
        (31, RiskTier.HIGH),
        (70, RiskTier.HIGH),
        (71, RiskTier.VERY_HIGH),
    ],
)
def test_risk_tier_breakpoints(count, tier):
    assert estimator.risk_tier_for(count) is tier


def test_risk_tier_is_monotonic():
    ranks = [estimator.risk_tier_for(count).rank for count in range(0, 150)]
    assert ranks == sorted(ranks)


def test_area_and_density():
    summary = estimator.estimate({"semas": 10}, [], 500, WEIGHTS)
    assert summary.area_km2 == pytest.approx(0.785, abs=0.001)
    assert summary.density_per_km2 == 10 / summary.area_km2

    summary = estimator.estimate({"semas": 10}, [], 1000, WEIGHTS)
    assert summary.area_km2 == pytest.approx(3.1416, abs=0.001)


def test_weighted_estimate_uses_all_reporting_sources():
    combined = estimator.weighted_estimate({"semas": 15, "tmap_keyword": 40, "tmap_around": 20}, WEIGHTS)
    assert combined == pytest.approx(24.0)


def test_missing_source_weight_is_redistributed():
    combined = estimator.weighted_estimate({"semas": 10, "tmap_keyword": 30, "tmap_around": None}, WEIGHTS)
    # 0.4 and 0.3 renormalized to 4/7 and 3/7.
    assert combined == pytest.approx(10 * 4 / 7 + 30 * 3 / 7)


def test_estimate_stays_within_single_source_bounds():
    totals = {"semas": 5, "tmap_keyword": 80, "tmap_around": 33}
    combined = estimator.weighted_estimate(totals, WEIGHTS)
    assert min(totals.values()) <= combined <= max(totals.values())


def test_unweighted_sources_are_ignored():
    assert estimator.weighted_estimate({"naver_local": 999}, WEIGHTS) is None


def test_fallback_to_merged_competitors_when_no_weighted_total():
    businesses = [_business(["naver_local"]), _business(["naver_local"]), _business(["naver_local"], target=False)]

    summary = estimator.estimate({"naver_local": None}, businesses, 500, WEIGHTS)

    assert summary.estimated_competitor_count == 2
    assert summary.reliability is Reliability.MEDIUM


def test_all_sources_failed_is_unavailable():
    summary = estimator.estimate({}, [], 500, WEIGHTS)

    assert summary.estimated_competitor_count == 0
    assert summary.reliability is Reliability.UNAVAILABLE
    assert summary.degraded is True
    assert summary.risk_tier is RiskTier.BLUE_OCEAN


def test_confirmed_zero_is_not_degraded():
    summary = estimator.estimate({"semas": 0, "tmap_keyword": 0, "tmap_around": 0, "naver_local": None}, [], 500, WEIGHTS)

    assert summary.estimated_competitor_count == 0
    assert summary.reliability in {Reliability.LOW, Reliability.MEDIUM, Reliability.HIGH}
    assert summary.degraded is False


def test_reliability_high_needs_more_than_five_cross_verified():
    five = [_business(["semas", "tmap_keyword"]) for _ in range(5)]
    six = five + [_business(["semas", "naver_local"])]

    assert estimator.estimate({"semas": 1, "tmap_keyword": 1}, five, 500, WEIGHTS).reliability is Reliability.MEDIUM
    summary = estimator.estimate({"semas": 1, "tmap_keyword": 1}, six, 500, WEIGHTS)
    assert summary.reliability is Reliability.HIGH
    assert summary.cross_verified_count == 6


def test_description_interpolates_count():
    summary = estimator.estimate({"semas": 42}, [], 500, WEIGHTS)
    assert summary.risk_tier is RiskTier.HIGH
    assert "42" in summary.risk_description
    assert math.isclose(summary.density_per_km2, 42 / summary.area_km2)


def test_default_weights_apply_when_none_given():
    summary = estimator.estimate({"semas": 15, "tmap_keyword": 40, "tmap_around": 20}, [], 500)
    assert summary.estimated_competitor_count == 24
