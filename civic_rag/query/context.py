"""Query-aware assembly of retrieved records into prompt context."""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from civic_rag.config import Settings, get_settings

from .document_urls import resolve_official_url
from .models import RAGContext, ScoredBusiness, ScoredDocument

logger = logging.getLogger(__name__)

FEE_QUERY_RE = re.compile(
    r"\b(costs?|fees?|pric(e|es|ing)|how much|charg(e|es|ed)|rates?)\b",
    re.IGNORECASE,
)
CURRENCY_RE = re.compile(r"\$|\d+\.\d{2}")
FEE_TITLE_RE = re.compile(r"fee|cost|charge|rate", re.IGNORECASE)
PLANNING_QUERY_RE = re.compile(r"planning|permit|development", re.IGNORECASE)

# Query pattern -> title markers of the document that holds its fee schedule.
DOMAIN_MATCHES = [
    (re.compile(r"\b(dog|cat|pet)s?\b", re.IGNORECASE), ("animal", "2159")),
    (re.compile(r"business\s+licen[cs]e", re.IGNORECASE), ("business licen", "2112")),
    (re.compile(r"\bbuilding\b", re.IGNORECASE), ("building", "2307")),
]

CHUNK_STOP_WORDS = {"what", "how", "where", "when", "the", "and", "for"}
CHUNK_MARKERS = [
    (re.compile(r"fee|cost|price|\$\d+|penalty|fine", re.IGNORECASE), 20),
    (re.compile(r"contact|phone|email|address", re.IGNORECASE), 15),
    (re.compile(r"procedure|process|step|how to|apply", re.IGNORECASE), 15),
    (re.compile(r"prohibited|not allowed|must|shall|required", re.IGNORECASE), 10),
]
CHUNK_SEPARATOR = "\n\n---\n\n"


@dataclass
class ScoreAdjustment:
    """Record of the fee-query multipliers applied to one document."""

    title: str
    original_score: float
    adjusted_score: float
    reasons: list[str] = field(default_factory=list)


@dataclass
class AssembledContext:
    """Prompt context plus the documents it was built from."""

    text: str
    businesses: list[ScoredBusiness] = field(default_factory=list)
    documents: list[ScoredDocument] = field(default_factory=list)
    adjustments: list[ScoreAdjustment] = field(default_factory=list)
    sections: dict[str, list[str]] = field(default_factory=dict)


def is_fee_query(query: str) -> bool:
    return bool(FEE_QUERY_RE.search(query))


def has_pricing(text: str) -> bool:
    return bool(CURRENCY_RE.search(text))


def rank_documents(
    documents: Sequence[ScoredDocument],
    user_query: str,
) -> tuple[list[ScoredDocument], list[ScoreAdjustment]]:
    """Re-score documents for fee queries.

    Favors the complete, currency-bearing fee schedule of the query's domain
    over amendments and unrelated planning fee documents.

    Args:
        documents: Retrieved documents
        user_query: The user's query

    Returns:
        Re-sorted documents and the adjustments applied
    """
    if not is_fee_query(user_query):
        return list(documents), []

    ranked = []
    adjustments = []
    for doc in documents:
        title = doc.title.lower()
        content = doc.full_content
        score = doc.score
        reasons = []

        for query_re, markers in DOMAIN_MATCHES:
            if query_re.search(user_query) and any(marker in title for marker in markers):
                score *= 2.0
                reasons.append("domain_match")
                break
        if "consolidated" in title or "main" in title:
            score *= 1.4
            reasons.append("consolidated")
        if has_pricing(content):
            score *= 1.3
            reasons.append("has_fees")
        if "amendment" in title and "$" not in content:
            score *= 0.6
            reasons.append("amendment_without_fees")
        if "planning" in title and not PLANNING_QUERY_RE.search(user_query):
            score *= 0.5
            reasons.append("off_topic_planning")

        if reasons:
            logger.debug(f"Adjusted {doc.title}: {doc.score:.3f} -> {score:.3f} ({', '.join(reasons)})")
            adjustments.append(ScoreAdjustment(doc.title, doc.score, score, reasons))
        ranked.append(replace(doc, score=score))

    ranked.sort(key=lambda d: d.score, reverse=True)
    return ranked, adjustments


def chunk_document(content: str, chunk_size: int = 2000) -> list[str]:
    """Greedily pack paragraphs into chunks of at most ``chunk_size`` chars.

    A single paragraph longer than ``chunk_size`` becomes its own chunk.
    """
    chunks = []
    current = ""
    for paragraph in re.split(r"\n\n+", content):
        if current and len(current) + 2 + len(paragraph) > chunk_size:
            chunks.append(current.strip())
            current = paragraph
        else:
            current += ("\n\n" if current else "") + paragraph
    if current:
        chunks.append(current.strip())
    return chunks


def query_keywords(user_query: str) -> list[str]:
    return [
        word
        for word in user_query.lower().split()
        if len(word) > 3 and word not in CHUNK_STOP_WORDS
    ]


def score_chunk(chunk: str, index: int, keywords: Sequence[str]) -> int:
    lowered = chunk.lower()
    score = sum(10 * len(re.findall(re.escape(keyword), lowered)) for keyword in keywords)
    for marker, points in CHUNK_MARKERS:
        if marker.search(chunk):
            score += points
    if index < 3:
        score += 5
    return score


def select_relevant_chunks(chunks: Sequence[str], user_query: str, max_chunks: int = 3) -> list[str]:
    """Top ``max_chunks`` chunks by score; ties keep document order."""
    keywords = query_keywords(user_query)
    scored = [(score_chunk(chunk, idx, keywords), idx, chunk) for idx, chunk in enumerate(chunks)]
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [chunk for _, _, chunk in scored[:max_chunks]]


class ContextAssembler:
    """Turns a ``RAGContext`` into a size-bounded, labeled prompt context."""

    def __init__(self, settings: Settings | None = None, max_documents: int = 5):
        settings = settings or get_settings()
        self.max_document_chars = settings.max_document_chars
        self.chunk_size = settings.chunk_size
        self.max_chunks = settings.max_chunks
        self.max_documents = max_documents

    def assemble(self, rag_context: RAGContext, user_query: str) -> AssembledContext:
        """Build the context text for answer generation.

        Args:
            rag_context: Filtered businesses and documents
            user_query: The user's query, which drives fee handling and chunk selection

        Returns:
            AssembledContext with the text and the final document order
        """
        documents, adjustments = rank_documents(rag_context.documents, user_query)
        documents = documents[: self.max_documents]
        businesses = sorted(rag_context.businesses, key=lambda b: b.score, reverse=True)

        parts = []
        if businesses:
            parts.append("=== BUSINESSES ===\n\n")
            for i, business in enumerate(businesses, 1):
                parts.append(self._business_block(i, business))

        sections: dict[str, list[str]] = {}
        if documents:
            parts.append("=== MUNICIPAL DOCUMENTS ===\n\n")
            fee_query = is_fee_query(user_query)
            for i, document in enumerate(documents, 1):
                parts.append(self._document_block(i, document, user_query, fee_query, sections))

        return AssembledContext(
            text="".join(parts),
            businesses=businesses,
            documents=documents,
            adjustments=adjustments,
            sections=sections,
        )

    def _business_block(self, index: int, business: ScoredBusiness) -> str:
        block = (
            f"{index}. {business.name}\n"
            f"   Category: {business.category_label}\n"
            f"   Address: {business.address}\n"
            f"   Phone: {business.phone}\n"
        )
        if business.description:
            block += f"   Description: {business.description}\n"
        return block + "\n"

    def _document_block(
        self,
        index: int,
        document: ScoredDocument,
        user_query: str,
        fee_query: bool,
        sections: dict[str, list[str]],
    ) -> str:
        block = f"{index}. {document.title}\n   Category: {document.category}\n"
        source_url = resolve_official_url(document.title)
        if source_url:
            block += f"   Source URL: {source_url} (ALWAYS include this link in your response)\n"

        content = document.full_content
        if not content or len(content) <= 100:
            return block + f"   Summary: {document.summary}\n\n"

        if len(content) > self.max_document_chars and not fee_query:
            chunks = chunk_document(content, self.chunk_size)
            selected = select_relevant_chunks(chunks, user_query, self.max_chunks)
            sections[document.title] = selected
            logger.info(f"Selected {len(selected)} of {len(chunks)} chunks from {document.title}")
            return block + f"   Relevant Sections:\n{CHUNK_SEPARATOR.join(selected)}\n\n"

        if fee_query and ("$" in content or FEE_TITLE_RE.search(document.title)):
            logger.info(f"Fee query, sending full pricing document: {document.title}")
            return block + f"   Full Content (READ ALL PRICING TIERS):\n{content}\n\n"

        return block + f"   Full Content:\n{content}\n\n"
