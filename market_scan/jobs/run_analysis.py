"""Run one location analysis: fan out to the providers, reconcile, report."""

import argparse
import dataclasses
import json
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Sequence

import requests

from market_scan.analysis.aggregator import merge
from market_scan.analysis.classifier import breakdown_counts, classify
from market_scan.analysis.estimator import estimate
from market_scan.analysis.report import AnalysisReport, ReportMeta, assemble
from market_scan.core.categories import CategoryProfile, resolve_category
from market_scan.core.config import Settings, get_settings
from market_scan.models import AnalysisRequest
from market_scan.vendors.base import AdapterError, AdapterFactory, ProviderAdapter, SourceOutcome
from market_scan.vendors.naver_local import NaverLocalAdapter
from market_scan.vendors.semas import SemasAdapter
from market_scan.vendors.tmap import TmapAroundAdapter, TmapError, TmapKeywordAdapter, reverse_geocode
from market_scan.vendors import gemini

logger = logging.getLogger(__name__)

DEFAULT_ADAPTERS: Sequence[AdapterFactory] = (
    SemasAdapter,
    TmapKeywordAdapter,
    TmapAroundAdapter,
    NaverLocalAdapter,
)
FAN_IN_GRACE_SECONDS = 1.0

ReverseGeocoder = Callable[[float, float, str], Optional[str]]


def collect_listings(
    request: AnalysisRequest,
    category: CategoryProfile,
    adapters: Sequence[ProviderAdapter],
    settings: Settings,
) -> List[SourceOutcome]:
    """Call every adapter concurrently and return one outcome per adapter, in input order.

    Adapters still running at the deadline are cancelled and recorded as timed out.
    """
    if not adapters:
        return []
    deadline = settings.adapter_timeout_seconds * (settings.adapter_retries + 1) + FAN_IN_GRACE_SECONDS

    executor = ThreadPoolExecutor(max_workers=len(adapters), thread_name_prefix="adapter")
    futures = {
        executor.submit(_run_adapter_safe, adapter, request, category): adapter.source_id
        for adapter in adapters
    }
    try:
        done, not_done = wait(futures, timeout=deadline)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    outcomes: Dict[str, SourceOutcome] = {}
    for future in done:
        outcomes[futures[future]] = future.result()
    for future in not_done:
        future.cancel()
        source_id = futures[future]
        logger.error("%s did not finish within %.1fs", source_id, deadline)
        outcomes[source_id] = SourceOutcome(source_id=source_id, error=AdapterError(source_id, "timed out"))
    return [outcomes[adapter.source_id] for adapter in adapters]


def run_analysis(
    request: AnalysisRequest,
    *,
    adapters: Optional[Sequence[ProviderAdapter]] = None,
    settings: Optional[Settings] = None,
    reverse_geocoder: Optional[ReverseGeocoder] = reverse_geocode,
) -> AnalysisReport:
    settings = settings or get_settings()
    if request.address_hint is None and reverse_geocoder is not None:
        request = _with_geocoded_hint(request, settings, reverse_geocoder)

    category = resolve_category(request.category)
    if adapters is None:
        adapters = [factory(settings) for factory in DEFAULT_ADAPTERS]

    logger.info(
        "Starting analysis center=(%s, %s) radius=%sm category=%s",
        request.center_lon,
        request.center_lat,
        request.radius_meters,
        category.key,
    )
    outcomes = collect_listings(request, category, adapters, settings)
    succeeded = [outcome for outcome in outcomes if outcome.ok]
    logger.info("%d/%d providers succeeded", len(succeeded), len(outcomes))

    businesses = merge((outcome.source_id, outcome.result.listings) for outcome in succeeded)
    authoritative = next(
        (
            breakdown_counts(outcome.result.category_breakdown)
            for outcome in succeeded
            if outcome.result.category_breakdown is not None
        ),
        None,
    )
    per_category_counts, competitors = classify(businesses, authoritative)
    summary = estimate(
        {outcome.source_id: outcome.result.total_count_reported for outcome in succeeded},
        businesses,
        request.radius_meters,
        settings.source_weights,
    )
    report = assemble(summary, competitors, per_category_counts, ReportMeta.from_request(request), outcomes)
    logger.info(
        "Completed analysis: businesses=%d competitors=%d estimate=%d tier=%s reliability=%s",
        len(businesses),
        len(competitors),
        summary.estimated_competitor_count,
        summary.risk_tier.value,
        summary.reliability.value,
    )
    return report


def _run_adapter_safe(adapter: ProviderAdapter, request: AnalysisRequest, category: CategoryProfile) -> SourceOutcome:
    try:
        result = adapter.fetch_listings(request.center, request.radius_meters, category, request.address_hint)
    except AdapterError as exc:
        return SourceOutcome(source_id=adapter.source_id, error=exc)
    except Exception as exc:  # noqa: BLE001
        logger.exception("%s failed unexpectedly: %s", adapter.source_id, exc)
        return SourceOutcome(source_id=adapter.source_id, error=AdapterError(adapter.source_id, "unexpected error"))
    return SourceOutcome(source_id=adapter.source_id, result=result)


def _with_geocoded_hint(request: AnalysisRequest, settings: Settings, reverse_geocoder: ReverseGeocoder) -> AnalysisRequest:
    try:
        address = reverse_geocoder(request.center_lat, request.center_lon, settings.tmap_api_key)
    except (TmapError, requests.RequestException, ValueError) as exc:
        logger.warning("Reverse geocoding failed; continuing without an address hint: %s", exc)
        return request
    if not address:
        return request
    logger.info("Using reverse-geocoded address hint %s", address)
    return dataclasses.replace(request, address_hint=address)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Analyze competitor density around a location")
    parser.add_argument("--lon", dest="center_lon", type=float, required=True, help="Center longitude (WGS84)")
    parser.add_argument("--lat", dest="center_lat", type=float, required=True, help="Center latitude (WGS84)")
    parser.add_argument("--radius", dest="radius_meters", type=int, default=500, help="Search radius in meters")
    parser.add_argument("--category", dest="category", required=True, help="Business category, e.g. 'cafe' or '미용실'")
    parser.add_argument("--address", dest="address_hint", help="Free-text address used to scope keyword searches")
    parser.add_argument("--advice", dest="advice", action="store_true", help="Also generate advisory text")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        request = AnalysisRequest(
            center_lon=args.center_lon,
            center_lat=args.center_lat,
            radius_meters=args.radius_meters,
            category=args.category,
            address_hint=args.address_hint,
        )
    except ValueError as exc:
        parser.error(str(exc))

    settings = get_settings()
    report = run_analysis(request, settings=settings)
    output = report.to_dict()
    if args.advice:
        try:
            output["advice"] = gemini.generate_advice(report, settings)
        except gemini.AdvisorError as exc:
            logger.error("Advice generation failed: %s", exc)
            output["adviceError"] = str(exc)
    print(json.dumps(output, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
