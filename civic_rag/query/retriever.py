"""Candidate retrieval from the vector search collaborator."""

import logging
import re
from collections.abc import Sequence
from typing import Any

from civic_rag.config import Settings, get_settings
from civic_rag.vector.store import SearchHit, VectorStore

from .models import (
    Candidate,
    CandidateKind,
    ScoredBusiness,
    ScoredDocument,
    dedup_businesses,
    dedup_documents,
)

logger = logging.getLogger(__name__)

# Vector stores return extra hits so dedup still leaves ``limit`` results.
OVERFETCH_FACTOR = 3

NEARBY_AREAS = ("thornhill",)

# (match, must also match, must not match, synonyms); first applicable row wins.
BUSINESS_SYNONYMS = [
    (
        re.compile(r"mechanic|auto repair|car fix|car repair|oil change", re.IGNORECASE),
        None,
        None,
        "auto repair mechanic tire service oil change brake repair automotive",
    ),
    (
        re.compile(r"grocery|groceries|supermarket|food store", re.IGNORECASE),
        None,
        None,
        "grocery supermarket food store safeway save-on walmart",
    ),
    (
        re.compile(r"restaurant|dining|\beat\b|food", re.IGNORECASE),
        None,
        re.compile(r"grocery|store", re.IGNORECASE),
        "restaurant dining cafe pub steakhouse cuisine",
    ),
    (
        re.compile(r"pet store|pet shop|dog|cat|animal", re.IGNORECASE),
        re.compile(r"buy|purchase|get|store|shop", re.IGNORECASE),
        None,
        "pet store pet valu blue barn animal supplies pet shop",
    ),
]

DOCUMENT_SYNONYMS = [
    (re.compile(r"dog.*licen|cat.*licen|pet.*licen", re.IGNORECASE), None, "animal control bylaw 2159 licensing fees"),
    (
        re.compile(r"business.*licen|start.*business|open.*restaurant|open.*shop", re.IGNORECASE),
        None,
        "business licence bylaw 2112 licensing requirements fees",
    ),
    (re.compile(r"sign|signage|billboard", re.IGNORECASE), None, "sign bylaw 2102 regulation permit"),
    (re.compile(r"noise|loud|quiet", re.IGNORECASE), None, "noise control bylaw 2100 quiet hours"),
    (
        re.compile(r"building|construction|deck|addition|renovation", re.IGNORECASE),
        re.compile(r"permit", re.IGNORECASE),
        "building bylaw 2307 permit requirements fees",
    ),
    (re.compile(r"zoning|setback|lot|property.*use", re.IGNORECASE), None, "zoning bylaw 2069 regulations"),
]

CORPORATE_SUFFIX_RE = re.compile(
    r"\s+(LTD|LIMITED|INC|INCORPORATED|CORP|CORPORATION|LLC|CO\.|L\.L\.C\.|COMPANY)\.?$",
    re.IGNORECASE,
)
TRADE_NAME_RE = re.compile(
    r"(?:o/a|d/b/a|dba)\s+(.+?)(?:\s+(?:LTD|INC|CORP|LLC|CO\.|LIMITED|INCORPORATED|CORPORATION))?$",
    re.IGNORECASE,
)
LOWERCASE_WORDS = {"and", "the", "of", "in", "at", "to", "for", "a", "an"}
ACRONYMS = {"llc", "hvac", "bc", "dba"}

UNAVAILABLE = {"", "address not available", "phone not available", "no description available"}


def expand_business_terms(terms: str) -> str:
    """Append synonyms for common business searches."""
    for pattern, requires, excludes, synonyms in BUSINESS_SYNONYMS:
        if not pattern.search(terms):
            continue
        if requires is not None and not requires.search(terms):
            continue
        if excludes is not None and excludes.search(terms):
            continue
        return f"{terms} {synonyms}"
    return terms


def expand_document_terms(terms: str) -> str:
    """Append bylaw names and numbers for common municipal topics."""
    for pattern, requires, synonyms in DOCUMENT_SYNONYMS:
        if pattern.search(terms) and (requires is None or requires.search(terms)):
            return f"{terms} {synonyms}"
    return terms


def clean_business_name(raw_name: str) -> str:
    """Tidy a registry name for display.

    Prefers the "operating as" name, strips corporate suffixes and stray
    numbers, and title-cases names given in all capitals.
    """
    name = raw_name
    trade_name = TRADE_NAME_RE.search(name)
    if trade_name:
        name = trade_name.group(1).strip()

    cleaned = CORPORATE_SUFFIX_RE.sub("", name)
    cleaned = re.sub(r"\s+\d+$", "", cleaned)
    cleaned = re.sub(r"^[\d\-]+\s+", "", cleaned).strip()

    if cleaned and cleaned == cleaned.upper():
        words = []
        for word in cleaned.lower().split(" "):
            if word in LOWERCASE_WORDS:
                words.append(word)
            elif word in ACRONYMS:
                words.append(word.upper())
            else:
                words.append(word[:1].upper() + word[1:])
        cleaned = " ".join(words)
        cleaned = cleaned[:1].upper() + cleaned[1:]

    return cleaned or raw_name


def _present(value: Any) -> bool:
    return bool(value) and str(value).strip().lower() not in UNAVAILABLE


def candidates_from_businesses(businesses: Sequence[ScoredBusiness]) -> list[Candidate]:
    """Number businesses 1..n for the discriminator."""
    return [
        Candidate(
            id=idx,
            display_name=b.name,
            category=b.category,
            subcategory=b.subcategory,
            summary=b.address,
            retrieval_score=max(0.0, min(1.0, b.score)),
            kind=CandidateKind.BUSINESS,
        )
        for idx, b in enumerate(businesses, 1)
    ]


def candidates_from_documents(documents: Sequence[ScoredDocument]) -> list[Candidate]:
    return [
        Candidate(
            id=idx,
            display_name=d.title,
            category=d.category,
            subcategory="",
            summary=d.summary,
            retrieval_score=max(0.0, min(1.0, d.score)),
            kind=CandidateKind.DOCUMENT,
        )
        for idx, d in enumerate(documents, 1)
    ]


class Retriever:
    """Searches the business and document collections."""

    def __init__(self, vector_store: VectorStore, settings: Settings | None = None):
        self.vector_store = vector_store
        self.settings = settings or get_settings()

    async def search_businesses(self, terms: str, limit: int = 10) -> list[ScoredBusiness]:
        """Search businesses and apply local-relevance score adjustments.

        Args:
            terms: Search terms from the structured intent
            limit: Maximum businesses to return

        Returns:
            Deduplicated businesses, best first

        Raises:
            CollaboratorUnavailable: If the vector store fails
        """
        query = expand_business_terms(terms)
        if query != terms:
            logger.debug(f"Expanded business query: {query}")

        hits = await self.vector_store.similarity_search(
            self.settings.business_collection, query, limit * OVERFETCH_FACTOR
        )
        businesses = [self._to_business(hit, terms) for hit in hits]
        unique = dedup_businesses(businesses)[:limit]
        # Ranked on raw adjusted scores, reported clamped.
        for business in unique:
            business.score = min(business.score, 1.0)

        logger.info(f"Business search: {len(hits)} raw -> {len(unique)} unique")
        if unique:
            logger.debug(f"Top business: {unique[0].name} ({unique[0].score:.3f})")
        return unique

    async def search_documents(self, terms: str, limit: int = 5) -> list[ScoredDocument]:
        """Search municipal documents.

        Raises:
            CollaboratorUnavailable: If the vector store fails
        """
        query = expand_document_terms(terms)
        if query != terms:
            logger.debug(f"Expanded document query: {query}")

        hits = await self.vector_store.similarity_search(
            self.settings.document_collection, query, limit * OVERFETCH_FACTOR
        )
        documents = [self._to_document(hit) for hit in hits]
        unique = dedup_documents(documents)[:limit]

        logger.info(f"Document search: {len(hits)} raw -> {len(unique)} unique")
        return unique

    def _is_local(self, address: str) -> bool:
        lowered = address.lower()
        return any(area in lowered for area in (self.settings.service_area.lower(), *NEARBY_AREAS))

    def _to_business(self, hit: SearchHit, terms: str) -> ScoredBusiness:
        props = hit.properties
        raw_name = str(props.get("business_name") or props.get("name") or "Unknown")
        address = str(props.get("address") or "Address not available")
        phone = str(props.get("phone") or "Phone not available")
        description = str(props.get("description") or "No description available")
        verified = bool(props.get("verified", False))

        score = hit.score or 0.5
        if _present(address) and self.settings.service_area.lower() in address.lower():
            score *= 1.3
        if _present(phone):
            score *= 1.1
        if _present(description):
            score *= 1.1
        if verified:
            score *= 1.2

        name_lower = raw_name.lower()
        name_matches = sum(1 for word in terms.lower().split() if len(word) > 3 and word in name_lower)
        if name_matches:
            score *= 1 + name_matches * 0.15

        if _present(address) and not self._is_local(address):
            address = f"Operating in {self.settings.service_area.title()} (claim business to add address)"
            score *= 0.7

        return ScoredBusiness(
            name=clean_business_name(raw_name),
            category=str(props.get("category") or ""),
            subcategory=str(props.get("subcategory") or ""),
            address=address,
            phone=phone,
            description=description,
            score=score,
            claimed=bool(props.get("claimed", False)),
            verified=verified,
        )

    def _to_document(self, hit: SearchHit) -> ScoredDocument:
        props = hit.properties
        content = str(props.get("content") or "")
        category = str(props.get("category") or "")
        if props.get("subcategory"):
            category = f"{category} → {props['subcategory']}"
        return ScoredDocument(
            title=str(props.get("title") or "Untitled"),
            category=category,
            summary=str(props.get("summary") or content[:200] or "No summary available"),
            full_content=content,
            domain=str(props.get("domain") or ""),
            document_type=str(props.get("document_type") or ""),
            score=hit.score,
            original_score=hit.score,
        )
