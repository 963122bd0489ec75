"""Query understanding and retrieval orchestration module."""

from .classifier import QueryClassification, classify
from .context import AssembledContext, ContextAssembler
from .coordinator import ResponseCoordinator, is_fast_path_eligible
from .discriminator import Discriminator, DiscriminatorResult
from .document_urls import resolve_official_url
from .models import (
    Candidate,
    CandidateKind,
    Confidence,
    ConversationContextKind,
    QueryKind,
    QueryScope,
    RAGContext,
    RAGResponse,
    ScoredBusiness,
    ScoredDocument,
    StructuredIntent,
)
from .orchestrator import Orchestrator, is_business_query
from .retriever import Retriever

__all__ = [
    "AssembledContext",
    "Candidate",
    "CandidateKind",
    "Confidence",
    "ContextAssembler",
    "ConversationContextKind",
    "Discriminator",
    "DiscriminatorResult",
    "Orchestrator",
    "QueryClassification",
    "QueryKind",
    "QueryScope",
    "RAGContext",
    "RAGResponse",
    "ResponseCoordinator",
    "Retriever",
    "ScoredBusiness",
    "ScoredDocument",
    "StructuredIntent",
    "classify",
    "is_business_query",
    "is_fast_path_eligible",
    "resolve_official_url",
]
