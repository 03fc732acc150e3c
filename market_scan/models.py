"""Core data models shared by the store-data aggregation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

SOURCE_SEMAS = "semas"
SOURCE_TMAP_KEYWORD = "tmap_keyword"
SOURCE_TMAP_AROUND = "tmap_around"
SOURCE_NAVER_LOCAL = "naver_local"

# Merge tie-break order: the first source in this tuple wins field conflicts.
SOURCE_PRIORITY: Tuple[str, ...] = (
    SOURCE_SEMAS,
    SOURCE_TMAP_KEYWORD,
    SOURCE_TMAP_AROUND,
    SOURCE_NAVER_LOCAL,
)

Coordinates = Tuple[float, float]  # (lon, lat)


def source_rank(source_id: str) -> int:
    try:
        return SOURCE_PRIORITY.index(source_id)
    except ValueError:
        return len(SOURCE_PRIORITY)


class RiskTier(str, Enum):
    BLUE_OCEAN = "BlueOcean"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "VeryHigh"

    @property
    def rank(self) -> int:
        return list(RiskTier).index(self)


class Reliability(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    UNAVAILABLE = "unavailable"


@dataclass(slots=True)
class AnalysisRequest:
    """Validated input of one analysis run."""

    center_lon: float
    center_lat: float
    radius_meters: int
    category: str
    address_hint: Optional[str] = None

    def __post_init__(self) -> None:
        if not -180.0 <= self.center_lon <= 180.0:
            raise ValueError("centerLon must be within [-180, 180]")
        if not -90.0 <= self.center_lat <= 90.0:
            raise ValueError("centerLat must be within [-90, 90]")
        if isinstance(self.radius_meters, bool) or int(self.radius_meters) != self.radius_meters or self.radius_meters <= 0:
            raise ValueError("radiusMeters must be a positive integer")
        self.radius_meters = int(self.radius_meters)
        if not self.category or not self.category.strip():
            raise ValueError("category must be provided")
        self.category = self.category.strip()
        if self.address_hint is not None:
            self.address_hint = self.address_hint.strip() or None

    @property
    def center(self) -> Coordinates:
        return (self.center_lon, self.center_lat)


@dataclass(slots=True)
class RawListing:
    """One business record as returned by a single provider, pre-merge."""

    name: str
    address: Optional[str]
    source_id: str
    category: Optional[str] = None
    phone: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    distance_meters: Optional[float] = None
    provider_category_code: Optional[str] = None
    is_target_category: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "category": self.category,
            "phone": self.phone,
            "coordinates": list(self.coordinates) if self.coordinates else None,
            "distanceMeters": self.distance_meters,
            "sourceId": self.source_id,
            "providerCategoryCode": self.provider_category_code,
        }


@dataclass(slots=True)
class Business:
    """Canonical, deduplicated business after merging listings across providers."""

    name: str
    address: str
    sources: Set[str]
    category: Optional[str] = None
    phone: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    distance_meters: Optional[float] = None
    is_target_category: bool = False
    listing_count: int = 1

    @property
    def is_cross_verified(self) -> bool:
        return len(self.sources) > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "category": self.category,
            "phone": self.phone,
            "coordinates": list(self.coordinates) if self.coordinates else None,
            "distanceMeters": self.distance_meters,
            "isTargetCategory": self.is_target_category,
            "sources": sorted(self.sources, key=source_rank),
        }


@dataclass(slots=True)
class CategoryBucket:
    category_name: str
    count: int = 0
    sample_items: List[RawListing] = field(default_factory=list, repr=False)


@dataclass(slots=True)
class AnalysisSummary:
    estimated_competitor_count: int
    area_km2: float
    density_per_km2: float
    risk_tier: RiskTier
    risk_description: str
    cross_verified_count: int
    reliability: Reliability

    @property
    def degraded(self) -> bool:
        return self.reliability is Reliability.UNAVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "estimatedCompetitorCount": self.estimated_competitor_count,
            "areaKm2": self.area_km2,
            "densityPerKm2": self.density_per_km2,
            "riskTier": self.risk_tier.value,
            "riskDescription": self.risk_description,
            "crossVerifiedCount": self.cross_verified_count,
            "reliability": self.reliability.value,
        }
