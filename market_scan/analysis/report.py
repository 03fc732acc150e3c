"""Assembly of the single report handed to callers and to the advisory step."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from market_scan.models import AnalysisRequest, AnalysisSummary, Business, source_rank
from market_scan.vendors.base import SourceOutcome


@dataclass(slots=True)
class ReportMeta:
    center_lon: float
    center_lat: float
    radius_meters: int
    category: str
    address_hint: Optional[str] = None
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_request(cls, request: AnalysisRequest, analyzed_at: Optional[datetime] = None) -> "ReportMeta":
        meta = cls(
            center_lon=request.center_lon,
            center_lat=request.center_lat,
            radius_meters=request.radius_meters,
            category=request.category,
            address_hint=request.address_hint,
        )
        if analyzed_at is not None:
            meta.analyzed_at = analyzed_at
        return meta

    def to_dict(self) -> Dict[str, Any]:
        return {
            "centerLon": self.center_lon,
            "centerLat": self.center_lat,
            "radiusMeters": self.radius_meters,
            "category": self.category,
            "addressHint": self.address_hint,
            "analyzedAtISO8601": self.analyzed_at.isoformat(),
        }


@dataclass(slots=True)
class SourceStatus:
    ok: bool
    reported_total: Optional[int]
    returned_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "reportedTotal": self.reported_total, "returnedCount": self.returned_count}


@dataclass(slots=True)
class AnalysisReport:
    meta: ReportMeta
    per_source: Dict[str, SourceStatus]
    summary: AnalysisSummary
    competitors: List[Business]
    category_breakdown: Dict[str, int]

    @property
    def degraded(self) -> bool:
        return self.summary.degraded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "perSource": {source_id: status.to_dict() for source_id, status in self.per_source.items()},
            "summary": self.summary.to_dict(),
            "competitors": [business.to_dict() for business in self.competitors],
            "categoryBreakdown": dict(self.category_breakdown),
        }


def assemble(
    summary: AnalysisSummary,
    competitors: List[Business],
    per_category_counts: Dict[str, int],
    meta: ReportMeta,
    outcomes: Sequence[SourceOutcome] = (),
) -> AnalysisReport:
    """Package derived data into an ``AnalysisReport``.

    Only the success flag and counts of each source are kept; adapter errors
    stay in the logs.
    """
    per_source: Dict[str, SourceStatus] = {}
    for outcome in sorted(outcomes, key=lambda item: source_rank(item.source_id)):
        result = outcome.result
        per_source[outcome.source_id] = SourceStatus(
            ok=outcome.ok,
            reported_total=result.total_count_reported if result else None,
            returned_count=len(result.listings) if result else 0,
        )
    return AnalysisReport(
        meta=meta,
        per_source=per_source,
        summary=summary,
        competitors=list(competitors),
        category_breakdown=dict(per_category_counts),
    )
