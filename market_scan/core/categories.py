"""Fixed category lookup tables shared by the provider adapters.

Each provider speaks its own vocabulary: SEMAS uses hierarchical industry codes
(``I2`` > ``I212`` > ``I21201``), TMAP exposes a business-name hierarchy
(``upperBizName`` > ``middleBizName`` > ...), and Naver returns a free-text
``category`` path. A ``CategoryProfile`` bundles what each adapter needs to
decide whether one of its listings belongs to the requested category.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

UNKNOWN_CATEGORY = "기타"


@dataclass(frozen=True)
class CategoryProfile:
    key: str
    display_name: str
    search_term: str
    semas_codes: Tuple[str, ...] = ()
    category_terms: Tuple[str, ...] = ()
    name_keywords: Tuple[str, ...] = ()
    aliases: Tuple[str, ...] = ()

    def matches_code(self, *codes: Optional[str]) -> bool:
        """True when any SEMAS code starts with one of the profile's code prefixes."""
        for code in codes:
            if code and any(code.upper().startswith(prefix) for prefix in self.semas_codes):
                return True
        return False

    def matches_category_text(self, *texts: Optional[str]) -> bool:
        haystack = " ".join(text for text in texts if text).lower()
        if not haystack:
            return False
        return any(term.lower() in haystack for term in self.category_terms)

    def matches_name(self, name: Optional[str]) -> bool:
        if not name:
            return False
        lowered = name.lower()
        return any(keyword.lower() in lowered for keyword in self.name_keywords)


_PROFILES: Tuple[CategoryProfile, ...] = (
    CategoryProfile(
        key="cafe",
        display_name="카페",
        search_term="카페",
        semas_codes=("I212",),
        category_terms=("카페", "커피", "cafe", "coffee"),
        name_keywords=("카페", "커피", "cafe", "coffee", "espresso"),
        aliases=("cafe", "coffee", "카페", "커피", "커피전문점", "i212"),
    ),
    CategoryProfile(
        key="restaurant",
        display_name="음식점",
        search_term="음식점",
        semas_codes=("I2",),
        category_terms=("음식점", "식당", "한식", "중식", "일식", "양식", "분식", "restaurant"),
        name_keywords=("식당", "restaurant", "kitchen", "bistro", "분식", "국밥"),
        aliases=("restaurant", "food", "음식", "음식점", "식당", "q", "i2"),
    ),
    CategoryProfile(
        key="hair_salon",
        display_name="미용실",
        search_term="미용실",
        semas_codes=("S207",),
        category_terms=("미용", "헤어", "hair"),
        name_keywords=("hair", "salon", "헤어", "미용"),
        aliases=("hair", "salon", "hair salon", "미용실", "헤어샵", "s207"),
    ),
    CategoryProfile(
        key="convenience_store",
        display_name="편의점",
        search_term="편의점",
        semas_codes=("G20405",),
        category_terms=("편의점", "convenience"),
        name_keywords=("편의점", "gs25", "세븐일레븐", "이마트24", "emart24", "7-eleven"),
        aliases=("convenience store", "convenience", "편의점", "g20405"),
    ),
    CategoryProfile(
        key="retail",
        display_name="소매",
        search_term="상점",
        semas_codes=("G2",),
        category_terms=("쇼핑", "소매", "마트", "상점", "retail"),
        name_keywords=("마트", "상회", "store", "shop"),
        aliases=("retail", "shop", "소매", "d", "g2"),
    ),
    CategoryProfile(
        key="living_service",
        display_name="생활서비스",
        search_term="생활서비스",
        semas_codes=("S2",),
        category_terms=("생활서비스", "세탁", "수선", "사진"),
        name_keywords=("세탁", "수선", "laundry", "repair"),
        aliases=("living service", "생활서비스", "f", "s2"),
    ),
    CategoryProfile(
        key="sports_leisure",
        display_name="스포츠/오락",
        search_term="헬스장",
        semas_codes=("R1",),
        category_terms=("스포츠", "레저", "헬스", "오락", "노래방", "pc방"),
        name_keywords=("헬스", "피트니스", "gym", "fitness", "pc방", "노래"),
        aliases=("sports", "leisure", "gym", "스포츠/오락", "스포츠", "n", "r1"),
    ),
    CategoryProfile(
        key="real_estate",
        display_name="부동산",
        search_term="부동산",
        semas_codes=("L1",),
        category_terms=("부동산", "중개"),
        name_keywords=("부동산", "공인중개", "realty"),
        aliases=("real estate", "부동산", "l", "l1"),
    ),
    CategoryProfile(
        key="education",
        display_name="학문/교육",
        search_term="학원",
        semas_codes=("P1",),
        category_terms=("교육", "학원", "교습"),
        name_keywords=("학원", "교습", "academy", "school"),
        aliases=("education", "academy", "학원", "학문/교육", "교육", "p", "p1"),
    ),
    CategoryProfile(
        key="medical",
        display_name="의료",
        search_term="병원",
        semas_codes=("Q1",),
        category_terms=("의료", "병원", "의원", "약국"),
        name_keywords=("의원", "병원", "약국", "clinic", "hospital", "pharmacy"),
        aliases=("medical", "clinic", "hospital", "의료", "병원", "r", "q1"),
    ),
    CategoryProfile(
        key="lodging",
        display_name="숙박",
        search_term="숙박",
        semas_codes=("I1",),
        category_terms=("숙박", "호텔", "모텔", "펜션"),
        name_keywords=("호텔", "모텔", "펜션", "hotel", "motel", "guesthouse"),
        aliases=("lodging", "hotel", "숙박", "o", "i1"),
    ),
)

PROFILES: Mapping[str, CategoryProfile] = MappingProxyType({profile.key: profile for profile in _PROFILES})

_ALIASES: Mapping[str, str] = MappingProxyType(
    {alias: profile.key for profile in _PROFILES for alias in (profile.key, *profile.aliases)}
)

# SEMAS large-class codes (current ``I2``-style and legacy single-letter) to display names.
SEMAS_LARGE_CLASS_NAMES: Mapping[str, str] = MappingProxyType(
    {
        "I1": "숙박",
        "I2": "음식",
        "G2": "소매",
        "S2": "수리·개인",
        "L1": "부동산",
        "M1": "과학·기술",
        "N1": "시설관리·임대",
        "P1": "교육",
        "Q1": "보건의료",
        "R1": "예술·스포츠",
        "Q": "음식점",
        "D": "소매",
        "F": "생활서비스",
        "N": "스포츠/오락",
        "L": "부동산",
        "P": "학문/교육",
        "R": "의료",
        "O": "숙박",
        "S": "수리/개인",
        "E": "제조",
    }
)


def resolve_category(requested: str) -> CategoryProfile:
    """Map a user-facing category (free text or code) to its profile.

    Unknown categories get an ad-hoc profile whose only matching rule is the
    requested text itself, so adapters still search and fuzzy-match by name.
    """
    text = (requested or "").strip()
    key = _ALIASES.get(text.lower())
    if key:
        return PROFILES[key]
    return CategoryProfile(
        key=text.lower(),
        display_name=text,
        search_term=text,
        category_terms=(text,),
        name_keywords=(text,),
    )


def semas_large_class_name(code: Optional[str], provider_name: Optional[str] = None) -> str:
    if code and code.upper() in SEMAS_LARGE_CLASS_NAMES:
        return SEMAS_LARGE_CLASS_NAMES[code.upper()]
    return provider_name or UNKNOWN_CATEGORY
