"""Keyword classification of queries into coarse municipal topic buckets."""

from dataclasses import dataclass, field

BYLAW_KEYWORDS = [
    "bylaw", "regulation", "zoning", "permit", "license", "licence",
    "noise", "parking", "animal", "dog", "cat", "building",
]
TAX_KEYWORDS = ["tax", "payment", "bill", "fee", "charge", "cost", "price", "rate"]
RECREATION_KEYWORDS = [
    "swim", "pool", "skate", "lesson", "recreation", "aquatic",
    "facility", "arena", "gym", "program", "registration",
]
WASTE_KEYWORDS = ["garbage", "waste", "trash", "recycle", "recycling", "pickup", "collection"]
MUNICIPAL_KEYWORDS = ["311", "city hall", "contact", "office", "hours", "phone", "email"]


@dataclass
class QueryClassification:
    """Topic bucket for a query."""

    category: str
    subcategory: str | None = None
    confidence: float = 0.5
    matched_keywords: list[str] = field(default_factory=list)


def _has_any(text: str, words: list[str]) -> bool:
    return any(word in text for word in words)


def _bylaw_subcategory(q: str) -> str:
    if _has_any(q, ["zoning", "land use"]):
        return "zoning"
    if _has_any(q, ["building", "construction"]):
        return "building_construction"
    if _has_any(q, ["parking", "traffic"]):
        return "traffic_parking"
    if _has_any(q, ["animal", "dog", "cat", "pet"]):
        return "animal_control"
    if "noise" in q:
        return "noise_control"
    if "business" in q and _has_any(q, ["license", "licence"]):
        return "business_licensing"
    return "general"


def _tax_subcategory(q: str) -> str:
    if "property" in q:
        return "property_tax"
    if "business" in q:
        return "business_tax"
    if _has_any(q, ["utility", "water", "sewer"]):
        return "utility_rates"
    if _has_any(q, ["recreation", "swim", "pool", "skate"]):
        return "recreation_fees"
    return "general"


def _recreation_subcategory(q: str) -> str:
    if _has_any(q, ["swim", "pool", "aquatic", "lesson"]):
        return "aquatic_programs"
    if _has_any(q, ["schedule", "hours"]):
        return "facility_schedules"
    if _has_any(q, ["register", "sign up", "enroll"]):
        return "registration_info"
    return "general"


def _waste_subcategory(q: str) -> str:
    if _has_any(q, ["garbage", "waste", "trash"]):
        return "waste_collection"
    if _has_any(q, ["recycle", "recycling"]):
        return "recycling"
    return "general"


# Evaluated in order; first bucket with a keyword hit wins.
_BUCKETS = [
    ("bylaw", BYLAW_KEYWORDS, _bylaw_subcategory, 0.9),
    ("tax", TAX_KEYWORDS, _tax_subcategory, 0.9),
    ("recreation", RECREATION_KEYWORDS, _recreation_subcategory, 0.9),
    ("waste", WASTE_KEYWORDS, _waste_subcategory, 0.9),
    ("municipal", MUNICIPAL_KEYWORDS, None, 0.7),
]


def classify(query: str) -> QueryClassification:
    """Classify a query by substring keyword matching.

    Args:
        query: Raw user query

    Returns:
        QueryClassification; ``general`` with confidence 0.5 when nothing matches
    """
    q = query.lower()
    for category, keywords, refine, confidence in _BUCKETS:
        matched = [kw for kw in keywords if kw in q]
        if matched:
            return QueryClassification(
                category=category,
                subcategory=refine(q) if refine else None,
                confidence=confidence,
                matched_keywords=matched,
            )
    return QueryClassification(category="general")
