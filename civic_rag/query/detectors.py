"""Deterministic intent detectors evaluated ahead of LLM decomposition.

Each detector is a pure function ``(query, snapshot) -> PartialIntent | None``.
The orchestrator runs them in ``DETECTORS`` order; the first one that returns
a complete intent wins.
"""

import re
from dataclasses import dataclass

from civic_rag.config import DEFAULT_AMBIGUOUS_SERVICE_TERMS, DEFAULT_COST_PATTERNS
from civic_rag.session.models import ConversationTurn, EntityContext, EntityType

from .models import (
    ConversationContextKind,
    QueryKind,
    QueryScope,
    StructuredIntent,
)

DATA_GAP_PHRASES = ("I don't have", "I'm sorry, but", "not available in")

LOCAL_REFERENT_RE = re.compile(
    r"\b(my|the|a|an|this|that)\s+\w+.*\b(them|they|their|it|he|she|his|her)\b",
    re.IGNORECASE,
)

PRONOUN_PATTERNS = [
    re.compile(r"\b(their|theyre|they're)\b"),
    re.compile(r"\bthey\b"),
    re.compile(r"\b(its|it's)\b"),
    re.compile(r"\bit\b"),
    re.compile(r"\bthem\b"),
]
# "one" only counts in referring phrases, never inside "phone" or "money".
ONE_REFERENCE_RE = re.compile(r"\b(which|that|this)\s+one\b|\bone\s+(is|has|does|offers)\b")

SERVICE_PATTERNS = [
    re.compile(r"^(do|does|can|will)\s+(they|it|he|she|you)", re.IGNORECASE),
    re.compile(r"^(what'?s?|whats?)\s+(their|its|your)", re.IGNORECASE),
    re.compile(r"^(are|is)\s+(they|it|he|she)", re.IGNORECASE),
    re.compile(r"^(how'?s?|hows?)\s+(their|its|your)", re.IGNORECASE),
]

TOPIC_PATTERNS = [
    (re.compile(r"(water|utility)\s*(bill|billing|charge|rate|high|expensive)", re.IGNORECASE), "water billing"),
    (re.compile(r"(trailer|rv|vehicle|camper)\s*(parking|storage|park)", re.IGNORECASE), "trailer parking"),
    (re.compile(r"building\s*permit", re.IGNORECASE), "building permit"),
    (re.compile(r"home\s*(business|occupation)", re.IGNORECASE), "home business"),
    (re.compile(r"business\s*licen", re.IGNORECASE), "business license"),
    (re.compile(r"dog\s*licen", re.IGNORECASE), "dog license"),
    (re.compile(r"(noise|sound|loud)\s*(bylaw|complain|issue)", re.IGNORECASE), "noise bylaw"),
    (re.compile(r"park.*trailer|trailer.*park", re.IGNORECASE), "trailer parking"),
    (re.compile(r"tree.*cut|cut.*tree|remove.*tree", re.IGNORECASE), "tree removal"),
    (re.compile(r"(hall|room|facility)\s*(rental|rent|book)", re.IGNORECASE), "facility rental"),
    (re.compile(r"swimming\s*lesson", re.IGNORECASE), "swimming lessons"),
    (re.compile(r"barking\s*dog|dog.*bark", re.IGNORECASE), "barking dog complaint"),
]

# (required substrings, topic) checked in order against a lowercased record name.
SEMANTIC_TOPICS = [
    (("tax", "exempt"), "tax exemption policy"),
    (("animal", "control"), "animal control bylaw"),
    (("noise", "control"), "noise bylaw"),
    (("noise",), "noise regulations"),
    (("permit", "building"), "building permit process"),
    (("owner", "building"), "building permit guidelines"),
    (("pool", "swim"), "swimming pool regulations"),
    (("zoning",), "zoning regulations"),
    (("business", "licen"), "business license requirements"),
    (("dog",), "animal control"),
    (("cat",), "animal control"),
    (("recreation", "access"), "recreation assistance programs"),
    (("snow", "removal"), "snow removal program"),
]

DOCUMENT_NAME_MARKERS = (".pdf", "bylaw", "extracted")


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of session state handed to detectors."""

    history: tuple[ConversationTurn, ...] = ()
    entity: EntityContext | None = None
    ambiguous_service_terms: tuple[str, ...] = tuple(DEFAULT_AMBIGUOUS_SERVICE_TERMS)
    cost_query_patterns: tuple[str, ...] = tuple(DEFAULT_COST_PATTERNS)
    pronouns_bound_locally: bool = False

    @property
    def last_turn(self) -> ConversationTurn | None:
        return self.history[-1] if self.history else None


@dataclass
class PartialIntent:
    """Detector output.

    ``intent`` set means decomposition is finished. ``referent`` is a history
    entity to carry into LLM decomposition. ``pronouns_bound_locally`` marks
    pronouns that refer to a noun in the same sentence.
    """

    intent: StructuredIntent | None = None
    referent: str | None = None
    pronouns_bound_locally: bool = False


def is_data_gap(response: str) -> bool:
    """True when an answer admitted it lacked the requested data."""
    return any(phrase in response for phrase in DATA_GAP_PHRASES)


def has_local_referent(query: str) -> bool:
    return bool(LOCAL_REFERENT_RE.search(query))


def has_pronoun(query: str) -> bool:
    q = query.lower()
    if ONE_REFERENCE_RE.search(q):
        return True
    return any(pattern.search(q) for pattern in PRONOUN_PATTERNS)


def extract_user_topic(query: str) -> str:
    """Map a query to a canonical topic label, or its first 40 characters."""
    for pattern, topic in TOPIC_PATTERNS:
        if pattern.search(query):
            return topic
    return query[:40].strip()


def extract_semantic_topic(name: str) -> str:
    """Turn a retrieved record name (often a file name) into a readable topic."""
    topic = re.sub(r"_extracted\.json|\.pdf", "", name, flags=re.IGNORECASE)
    lowered = topic.lower()
    for required, label in SEMANTIC_TOPICS:
        if all(part in lowered for part in required):
            return label

    # Only file-like names get cleaned; business names pass through intact.
    if topic != name or "_" in name:
        topic = re.sub(r"[0-9\-_%.]", " ", topic)
        topic = re.sub(r"\s+", " ", topic).strip()
    return topic[:50].strip() or name


def looks_like_business_name(name: str) -> bool:
    lowered = name.lower()
    return not any(marker in lowered for marker in DOCUMENT_NAME_MARKERS)


def turn_resolved_business(turn: ConversationTurn) -> bool:
    """Whether a turn's entity was a business rather than a document."""
    if turn.resolved_entity_type is not None:
        return turn.resolved_entity_type == EntityType.BUSINESS
    return any(looks_like_business_name(name) for name in turn.retrieved_entity_names)


def has_ambiguous_term(query: str, terms: tuple[str, ...]) -> str | None:
    for term in terms:
        if re.search(rf"\b{re.escape(term)}\b", query, re.IGNORECASE):
            return term
    return None


def detect_local_referent(query: str, snapshot: SessionSnapshot) -> PartialIntent | None:
    """Pronouns bound to a determiner+noun earlier in the query are local."""
    if has_local_referent(query):
        return PartialIntent(pronouns_bound_locally=True)
    return None


def detect_service_attribute(query: str, snapshot: SessionSnapshot) -> PartialIntent | None:
    """Questions about an attribute of the business just discussed.

    "do they take insurance?" after a dentist answer asks about the dentist,
    not for insurance agencies.
    """
    last_turn = snapshot.last_turn
    if last_turn is None or not turn_resolved_business(last_turn):
        return None

    term = has_ambiguous_term(query, snapshot.ambiguous_service_terms)
    if term is None:
        return None
    if not any(pattern.search(query.strip()) for pattern in SERVICE_PATTERNS):
        return None

    names = last_turn.retrieved_entity_names
    business = names[0] if names else "that business"
    return PartialIntent(
        intent=StructuredIntent(
            intent="service_inquiry",
            query_kind=QueryKind.SERVICE_INQUIRY,
            keywords=[term],
            conversation_context=ConversationContextKind.FOLLOWUP,
            query_scope=QueryScope.SPECIFIC_BUSINESS,
            specific_business_name=business,
            skip_retrieval=True,
            user_topic=business,
        )
    )


def detect_cost_query(query: str, snapshot: SessionSnapshot) -> PartialIntent | None:
    """Price questions about the last entity that was answered successfully.

    Searching the literal words would match businesses named after them
    ("R & A Price Leasing"), so the search terms are rebuilt around the entity.
    """
    lowered = query.lower().strip()
    if not any(re.search(pattern, lowered, re.IGNORECASE) for pattern in snapshot.cost_query_patterns):
        return None

    entity = None
    for turn in reversed(snapshot.history):
        if not is_data_gap(turn.response) and turn.retrieved_entity_names:
            entity = turn.retrieved_entity_names[0]
            break
    if entity is None:
        return None

    return PartialIntent(
        intent=StructuredIntent(
            keywords=["cost", "price", "fee", entity],
            intent="fee_inquiry",
            query_kind=QueryKind.FINANCIAL,
            search_terms=f"{entity} cost price fee rate",
            conversation_context=ConversationContextKind.FOLLOWUP,
            query_scope=QueryScope.INFORMATION,
        )
    )


def detect_pronoun_reference(query: str, snapshot: SessionSnapshot) -> PartialIntent | None:
    """Resolve "it/they/their/them" against the conversation."""
    if snapshot.pronouns_bound_locally or not has_pronoun(query):
        return None

    if not snapshot.history:
        return PartialIntent(
            intent=StructuredIntent(
                keywords=["clarification", "needed"],
                intent="clarification_needed",
                query_kind=QueryKind.CLARIFICATION_NEEDED,
                search_terms=query,
                query_scope=QueryScope.INFORMATION,
                needs_clarification=True,
            )
        )

    names = snapshot.last_turn.retrieved_entity_names
    if names:
        return PartialIntent(referent=extract_semantic_topic(names[0]))
    if snapshot.entity is not None:
        return PartialIntent(referent=snapshot.entity.entity_name)
    return None


DETECTORS = (
    detect_local_referent,
    detect_service_attribute,
    detect_cost_query,
    detect_pronoun_reference,
)
