import argparse
import json
import sys
import threading

import pytest
import requests

from market_scan.core.config import Settings
from market_scan.jobs import run_analysis
from market_scan.models import (
    SOURCE_NAVER_LOCAL,
    SOURCE_SEMAS,
    SOURCE_TMAP_AROUND,
    SOURCE_TMAP_KEYWORD,
    AnalysisRequest,
    CategoryBucket,
    RawListing,
    Reliability,
)
from market_scan.vendors.base import AdapterError, AdapterResult, ProviderAdapter
from market_scan.vendors import tmap
from market_scan.vendors.tmap import TmapError


class FakeAdapter(ProviderAdapter):
    def __init__(self, settings, source_id, result=None, errors=(), gate=None):
        super().__init__(settings)
        self.source_id = source_id
        self.result = result
        self.errors = list(errors)
        self.gate = gate
        self.calls = []

    def _fetch(self, center, radius_meters, category, address_hint):
        self.calls.append(address_hint)
        if self.gate is not None:
            self.gate.wait(5)
        if self.errors:
            raise self.errors.pop(0)
        return self.result


def _settings(**overrides):
    values = {"adapter_timeout_seconds": 0.2, "adapter_retries": 0}
    values.update(overrides)
    return Settings(**values)


def _request(**overrides):
    values = {"center_lon": 127.0276, "center_lat": 37.4979, "radius_meters": 500, "category": "cafe"}
    values.update(overrides)
    return AnalysisRequest(**values)


def _listings(source_id, names):
    return [
        RawListing(name=name, address=f"{name} street", source_id=source_id, is_target_category=True)
        for name in names
    ]


def _scenario_adapters(settings):
    return [
        FakeAdapter(
            settings,
            SOURCE_TMAP_KEYWORD,
            AdapterResult(SOURCE_TMAP_KEYWORD, 40, _listings(SOURCE_TMAP_KEYWORD, ["A1", "A2", "A3", "A4", "A5"])),
        ),
        FakeAdapter(
            settings,
            SOURCE_TMAP_AROUND,
            AdapterResult(SOURCE_TMAP_AROUND, 20, _listings(SOURCE_TMAP_AROUND, ["A1", "A2", "B1"])),
        ),
        FakeAdapter(settings, SOURCE_NAVER_LOCAL, errors=[AdapterError(SOURCE_NAVER_LOCAL, "HTTP 500")]),
        FakeAdapter(
            settings,
            SOURCE_SEMAS,
            AdapterResult(
                SOURCE_SEMAS,
                15,
                [],
                {"cafe": CategoryBucket("cafe", 15), "retail": CategoryBucket("retail", 40)},
            ),
        ),
    ]


def test_end_to_end_partial_failure():
    settings = _settings()

    report = run_analysis.run_analysis(
        _request(address_hint="강남구 역삼동"),
        adapters=_scenario_adapters(settings),
        settings=settings,
        reverse_geocoder=None,
    )
    data = report.to_dict()

    assert len(data["competitors"]) == 6
    assert data["summary"]["crossVerifiedCount"] == 2
    assert data["summary"]["estimatedCompetitorCount"] == 24
    assert data["summary"]["riskTier"] == "Medium"
    assert data["summary"]["reliability"] == "Medium"
    assert data["categoryBreakdown"] == {"cafe": 15, "retail": 40}
    assert data["perSource"][SOURCE_NAVER_LOCAL]["ok"] is False
    assert [item["name"] for item in data["competitors"][:2]] == ["A1", "A2"]
    assert report.degraded is False


def test_all_sources_failing_yields_unavailable_report():
    settings = _settings()
    adapters = [
        FakeAdapter(settings, source_id, errors=[AdapterError(source_id, "HTTP 503")])
        for source_id in (SOURCE_SEMAS, SOURCE_TMAP_KEYWORD, SOURCE_TMAP_AROUND, SOURCE_NAVER_LOCAL)
    ]

    report = run_analysis.run_analysis(_request(), adapters=adapters, settings=settings, reverse_geocoder=None)

    assert report.degraded is True
    assert report.summary.reliability is Reliability.UNAVAILABLE
    assert report.summary.estimated_competitor_count == 0
    assert report.competitors == []
    assert all(not status.ok for status in report.per_source.values())


def test_single_source_without_cross_verification_is_medium():
    settings = _settings()
    adapters = [
        FakeAdapter(settings, SOURCE_SEMAS, AdapterResult(SOURCE_SEMAS, 8, _listings(SOURCE_SEMAS, ["S1"]))),
        FakeAdapter(settings, SOURCE_TMAP_KEYWORD, errors=[AdapterError(SOURCE_TMAP_KEYWORD, "HTTP 500")]),
    ]

    report = run_analysis.run_analysis(_request(), adapters=adapters, settings=settings, reverse_geocoder=None)

    assert report.summary.reliability is Reliability.MEDIUM
    assert report.summary.estimated_competitor_count == 8


def test_slow_adapter_is_recorded_as_timed_out():
    settings = _settings(adapter_timeout_seconds=0.05)
    gate = threading.Event()
    slow = FakeAdapter(settings, SOURCE_NAVER_LOCAL, AdapterResult(SOURCE_NAVER_LOCAL, None, []), gate=gate)
    fast = FakeAdapter(
        settings, SOURCE_SEMAS, AdapterResult(SOURCE_SEMAS, 3, _listings(SOURCE_SEMAS, ["S1", "S2", "S3"]))
    )

    try:
        outcomes = run_analysis.collect_listings(
            _request(), run_analysis.resolve_category("cafe"), [fast, slow], settings
        )
    finally:
        gate.set()

    assert [outcome.source_id for outcome in outcomes] == [SOURCE_SEMAS, SOURCE_NAVER_LOCAL]
    assert outcomes[0].ok
    assert not outcomes[1].ok
    assert outcomes[1].error.reason == "timed out"


def test_transport_error_is_retried_then_wrapped():
    settings = _settings(adapter_retries=1)
    flaky = FakeAdapter(
        settings,
        SOURCE_TMAP_AROUND,
        AdapterResult(SOURCE_TMAP_AROUND, 1, _listings(SOURCE_TMAP_AROUND, ["T1"])),
        errors=[requests.ConnectionError("reset")],
    )
    broken = FakeAdapter(
        settings,
        SOURCE_TMAP_KEYWORD,
        errors=[requests.Timeout("slow"), requests.Timeout("slow")],
    )

    outcomes = run_analysis.collect_listings(
        _request(), run_analysis.resolve_category("cafe"), [flaky, broken], settings
    )

    assert outcomes[0].ok and len(flaky.calls) == 2
    assert outcomes[1].error.reason == "request timed out"
    assert len(broken.calls) == 2


def test_unexpected_adapter_exception_is_isolated():
    settings = _settings()
    adapters = [
        FakeAdapter(settings, SOURCE_SEMAS, errors=[KeyError("boom")]),
        FakeAdapter(settings, SOURCE_TMAP_KEYWORD, AdapterResult(SOURCE_TMAP_KEYWORD, 2, [])),
    ]

    report = run_analysis.run_analysis(_request(), adapters=adapters, settings=settings, reverse_geocoder=None)

    assert report.per_source[SOURCE_SEMAS].ok is False
    assert report.per_source[SOURCE_TMAP_KEYWORD].ok is True


def test_missing_address_hint_is_reverse_geocoded():
    settings = _settings(tmap_api_key="t-key")
    adapter = FakeAdapter(settings, SOURCE_NAVER_LOCAL, AdapterResult(SOURCE_NAVER_LOCAL, None, []))
    calls = []

    def fake_geocoder(lat, lon, api_key):
        calls.append((lat, lon, api_key))
        return "서울특별시 강남구 역삼1동"

    report = run_analysis.run_analysis(_request(), adapters=[adapter], settings=settings, reverse_geocoder=fake_geocoder)

    assert calls == [(37.4979, 127.0276, "t-key")]
    assert adapter.calls == ["서울특별시 강남구 역삼1동"]
    assert report.meta.address_hint == "서울특별시 강남구 역삼1동"


def test_reverse_geocoding_failure_is_not_fatal():
    settings = _settings()
    adapter = FakeAdapter(settings, SOURCE_SEMAS, AdapterResult(SOURCE_SEMAS, 0, []))

    def failing_geocoder(lat, lon, api_key):
        raise TmapError("TMAP_API_KEY is not configured")

    report = run_analysis.run_analysis(
        _request(), adapters=[adapter], settings=settings, reverse_geocoder=failing_geocoder
    )

    assert adapter.calls == [None]
    assert report.meta.address_hint is None
    assert report.summary.estimated_competitor_count == 0


class _JsonResponse:
    status_code = 200

    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class _StaticSession:
    def __init__(self, payload):
        self.payload = payload

    def get(self, url, params=None, headers=None, timeout=None):
        return _JsonResponse(self.payload)


@pytest.mark.parametrize("payload", [{"addressInfo": "oops"}, ["unexpected"]])
def test_malformed_reverse_geocoding_reply_is_not_fatal(monkeypatch, payload):
    monkeypatch.setattr(tmap, "_SESSION", _StaticSession(payload))
    settings = _settings(tmap_api_key="t-key")
    adapter = FakeAdapter(settings, SOURCE_SEMAS, AdapterResult(SOURCE_SEMAS, 3, _listings(SOURCE_SEMAS, ["S1"])))

    report = run_analysis.run_analysis(_request(), adapters=[adapter], settings=settings)

    assert adapter.calls == [None]
    assert report.meta.address_hint is None
    assert report.summary.estimated_competitor_count == 3


def test_build_parser_defaults():
    parser = run_analysis.build_parser()
    args = parser.parse_args(["--lon", "127.0", "--lat", "37.5", "--category", "카페"])
    assert isinstance(parser, argparse.ArgumentParser)
    assert args.radius_meters == 500
    assert args.category == "카페"
    assert args.address_hint is None
    assert args.advice is False


def test_main_prints_report(monkeypatch, capsys):
    settings = _settings()
    captured = {}
    real_run_analysis = run_analysis.run_analysis

    def fake_run_analysis(request, settings=None):
        captured["request"] = request
        return real_run_analysis(request, adapters=[], settings=settings, reverse_geocoder=None)

    monkeypatch.setattr(run_analysis, "get_settings", lambda: settings)
    monkeypatch.setattr(run_analysis, "run_analysis", fake_run_analysis)
    monkeypatch.setattr(
        sys, "argv", ["run_analysis", "--lon", "127.0", "--lat", "37.5", "--radius", "300", "--category", "cafe"]
    )

    run_analysis.main()

    output = json.loads(capsys.readouterr().out)
    assert captured["request"].radius_meters == 300
    assert output["summary"]["reliability"] == "unavailable"
    assert "advice" not in output


def test_main_rejects_invalid_radius(monkeypatch):
    monkeypatch.setattr(
        sys, "argv", ["run_analysis", "--lon", "127.0", "--lat", "37.5", "--radius", "0", "--category", "cafe"]
    )
    with pytest.raises(SystemExit):
        run_analysis.main()
