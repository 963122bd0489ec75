"""Query pipeline models and data structures."""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class QueryKind(str, Enum):
    """Coarse kind of a user query."""

    BUSINESS_DIRECTORY = "business_directory"
    MUNICIPAL_PROCEDURE = "municipal_procedure"
    BYLAW = "bylaw"
    PERMIT = "permit"
    FINANCIAL = "financial"
    SERVICE_INQUIRY = "service_inquiry"
    CLARIFICATION_NEEDED = "clarification_needed"
    INFORMATION = "information"


class ConversationContextKind(str, Enum):
    """How a query relates to the conversation so far."""

    NEW_TOPIC = "new_topic"
    FOLLOWUP = "followup"
    CLARIFICATION = "clarification"


class QueryScope(str, Enum):
    """What the answer should focus on."""

    SPECIFIC_BUSINESS = "specific_business"
    GENERAL_CATEGORY = "general_category"
    INFORMATION = "information"


class CandidateKind(str, Enum):
    BUSINESS = "business"
    DOCUMENT = "document"


class Confidence(str, Enum):
    """Answer confidence, ordered low < medium < high."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return ["low", "medium", "high"].index(self.value)

    @classmethod
    def weakest(cls, *levels: "Confidence") -> "Confidence":
        return min(levels, key=lambda level: level.rank)


@dataclass
class StructuredIntent:
    """Normalized representation of a user query."""

    keywords: list[str] = field(default_factory=list)
    intent: str = "info_request"
    query_kind: QueryKind = QueryKind.MUNICIPAL_PROCEDURE
    search_terms: str = ""
    category_hints: list[str] = field(default_factory=list)
    conversation_context: ConversationContextKind = ConversationContextKind.NEW_TOPIC
    query_scope: QueryScope = QueryScope.GENERAL_CATEGORY
    specific_business_name: str | None = None
    is_multi_question: bool = False
    sub_questions: list[str] = field(default_factory=list)
    needs_clarification: bool = False
    skip_retrieval: bool = False
    user_topic: str | None = None
    topic_category: str | None = None
    topic_subcategory: str | None = None
    also_search_documents: bool = False


@dataclass(frozen=True)
class Candidate:
    """A retrieval result as seen by the discriminator."""

    id: int
    display_name: str
    category: str
    subcategory: str
    summary: str
    retrieval_score: float
    kind: CandidateKind


@dataclass
class ScoredBusiness:
    """Business record returned by the retriever."""

    name: str
    category: str = ""
    subcategory: str = ""
    address: str = "Address not available"
    phone: str = "Phone not available"
    description: str = "No description available"
    score: float = 0.0
    claimed: bool = False
    verified: bool = False

    @property
    def category_label(self) -> str:
        if self.subcategory:
            return f"{self.category} → {self.subcategory}"
        return self.category


@dataclass
class ScoredDocument:
    """Municipal document returned by the retriever."""

    title: str
    category: str = ""
    summary: str = "No summary available"
    full_content: str = ""
    domain: str = ""
    document_type: str = ""
    score: float = 0.0
    original_score: float = 0.0


@dataclass
class RAGContext:
    """Businesses and documents gathered for one query."""

    businesses: list[ScoredBusiness] = field(default_factory=list)
    documents: list[ScoredDocument] = field(default_factory=list)

    @property
    def sources(self) -> int:
        return len(self.businesses) + len(self.documents)

    def scores(self) -> list[float]:
        return [b.score for b in self.businesses] + [d.score for d in self.documents]

    def entity_names(self) -> list[str]:
        return [b.name for b in self.businesses] + [d.title for d in self.documents]


@dataclass
class RAGResponse:
    """Complete result of processing one user query."""

    answer: str
    context: RAGContext
    confidence: Confidence
    sources: int
    fast_path: bool = False
    intent: StructuredIntent | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "businesses": [vars(b) for b in self.context.businesses],
            "documents": [
                {k: v for k, v in vars(d).items() if k != "full_content"}
                for d in self.context.documents
            ],
            "confidence": self.confidence.value,
            "sources": self.sources,
        }


def normalize_key(value: str) -> str:
    """Lowercase, trim and collapse whitespace."""
    return re.sub(r"\s+", " ", (value or "").strip().lower())


def dedup_businesses(businesses: Iterable[ScoredBusiness]) -> list[ScoredBusiness]:
    """Collapse businesses with the same normalized name and address.

    The higher-scored record survives; output is in descending score order.
    """
    seen: set[tuple[str, str]] = set()
    unique = []
    for business in sorted(businesses, key=lambda b: b.score, reverse=True):
        key = (normalize_key(business.name), normalize_key(business.address))
        if key in seen:
            continue
        seen.add(key)
        unique.append(business)
    return unique


def dedup_documents(documents: Iterable[ScoredDocument]) -> list[ScoredDocument]:
    """Collapse documents with the same normalized title, keeping the best score."""
    seen: set[str] = set()
    unique = []
    for document in sorted(documents, key=lambda d: d.score, reverse=True):
        key = normalize_key(document.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(document)
    return unique


def merge_contexts(contexts: Iterable[RAGContext]) -> RAGContext:
    businesses: list[ScoredBusiness] = []
    documents: list[ScoredDocument] = []
    for context in contexts:
        businesses.extend(context.businesses)
        documents.extend(context.documents)
    return RAGContext(businesses=dedup_businesses(businesses), documents=dedup_documents(documents))
