"""Query decomposition into a structured intent."""

import logging
import re
import unicodedata
from collections.abc import Callable, Sequence
from dataclasses import replace

from civic_rag.config import Settings, get_settings
from civic_rag.errors import CollaboratorUnavailable, MalformedStructuredOutput
from civic_rag.llm.base import CompletionOptions, LLMProvider
from civic_rag.session.models import ConversationTurn, EntityContext

from .classifier import QueryClassification, classify
from .detectors import (
    DETECTORS,
    PartialIntent,
    SessionSnapshot,
    extract_user_topic,
)
from .models import (
    ConversationContextKind,
    QueryKind,
    QueryScope,
    StructuredIntent,
)
from .structured import coerce_enum, parse_json_object, string_list

logger = logging.getLogger(__name__)

Detector = Callable[[str, SessionSnapshot], PartialIntent | None]

FALLBACK_STOP_WORDS = {"what", "how", "where", "when", "the", "and"}

BUSINESS_SEARCH_WORDS = [
    "business", "company", "store", "shop", "restaurant", "service",
    "contractor", "find", "where can i", "looking for", "buy", "sell",
    "repair", "fix", "install",
]
DOCUMENT_SEARCH_WORDS = [
    "bylaw", "regulation", "permit", "tax", "policy", "rule", "law",
    "requirement", "how to", "application", "form", "council",
    "government", "municipal", "city hall",
]

CATEGORY_HINTS = {
    "bylaw": "bylaws",
    "tax": "financial",
    "recreation": "recreation",
    "waste": "waste_management",
    "municipal": "municipal_services",
}

SUB_QUESTION_SPLIT_RE = re.compile(r"(?<=[?!])\s+|\n+")
QUESTION_START_RE = re.compile(
    r"(what|where|when|who|whom|whose|which|why|how|is|are|was|were|do|does|did|"
    r"can|could|will|would|should|may|must|have|has)\b",
    re.IGNORECASE,
)

ORCHESTRATOR_PROMPT = """You are a query analyzer for Terrace municipal services. Analyze the user query and return ONLY valid JSON.

CRITICAL RULES:
- Business queries (find restaurant, contractor, plumber, HVAC, store, shop, etc) -> intent="business_search", queryKind="business_directory"
- Municipal queries (bylaws, permits, taxes, regulations, etc) -> intent="info_request", queryKind="municipal_procedure", "bylaw" or "permit"
- EXCEPTION: questions about business licence/permit COSTS, FEES or REQUIREMENTS -> intent="info_request", queryKind="financial" (search bylaws, NOT businesses)
- FOLLOW-UP queries: use the conversation history to resolve ambiguous references
  * "how much is it?" after a dog license discussion -> "dog license cost"
  * "what are their hours?" after a business mention -> "{business name} hours"
- A follow-up stays on the topic of the conversation unless the user explicitly changes it
- If the message contains several independent questions set isMultiQuestion=true and list them in subQuestions
- Return ONLY the JSON object, no explanations

Required JSON structure:
{
  "keywords": ["extracted", "keywords"],
  "intent": "business_search or info_request or complaint or permit or fee or contact",
  "queryKind": "business_directory or municipal_procedure or bylaw or permit or financial or information",
  "searchTerms": "expanded search terms with synonyms (resolve pronouns using conversation history)",
  "categoryHints": ["relevant", "categories"],
  "conversationContext": "new_topic or followup or clarification",
  "queryScope": "specific_business or general_category or information",
  "specificBusinessName": "optional, only when one named business is asked about",
  "isMultiQuestion": false,
  "subQuestions": []
}

Examples:
Query: "Find HVAC contractors"
{"keywords":["HVAC","contractors"],"intent":"business_search","queryKind":"business_directory","searchTerms":"HVAC heating cooling contractors air conditioning","categoryHints":["business_economy"],"conversationContext":"new_topic","queryScope":"general_category"}

Query: "What are noise bylaws?"
{"keywords":["noise","bylaws"],"intent":"info_request","queryKind":"bylaw","searchTerms":"noise control bylaw regulations quiet hours","categoryHints":["bylaws"],"conversationContext":"new_topic","queryScope":"information"}

Query: "how much is a business licence?"
{"keywords":["business","licence","cost","fee"],"intent":"info_request","queryKind":"financial","searchTerms":"business licence fees cost bylaw schedule rates","categoryHints":["bylaws","municipal_bylaws"],"conversationContext":"new_topic","queryScope":"information"}

Query: "where can I get a dog?"
{"keywords":["get","dog","buy","adopt"],"intent":"business_search","queryKind":"business_directory","searchTerms":"pet stores animal shelter dog adoption","categoryHints":["retail_shopping","pet_services"],"conversationContext":"new_topic","queryScope":"general_category"}"""

FOLLOWUP_INSTRUCTIONS = """CRITICAL INSTRUCTIONS FOR FOLLOW-UP QUERIES:
- A vague query, a query with pronouns ("it", "they", "that") or an incomplete one ("how much?") refers to the topic in the conversation history
- Look at what the user was asking about in TURN_-1 (most recent)
- Expand searchTerms with the SPECIFIC TOPIC from the conversation history
- Never default to business licensing when the conversation is about something else"""


def is_business_query(intent: StructuredIntent) -> bool:
    """Whether the intent should be answered from the business directory."""
    return (
        intent.query_kind == QueryKind.BUSINESS_DIRECTORY
        or intent.intent == "business_search"
        or any("business_economy" in hint for hint in intent.category_hints)
    )


def is_question(text: str) -> bool:
    stripped = text.strip()
    return stripped.endswith("?") or bool(QUESTION_START_RE.match(stripped))


def split_sub_questions(query: str) -> list[str]:
    """Split an utterance into independent questions of at least 3 words.

    Every piece must read as a question, so a trailing statement keeps the
    utterance whole. Returns an empty list unless there are two or more.
    """
    pieces = [part.strip() for part in SUB_QUESTION_SPLIT_RE.split(query) if part.strip()]
    if len(pieces) < 2 or not all(is_question(piece) for piece in pieces):
        return []
    questions = [piece for piece in pieces if len(piece.split()) >= 3]
    return questions if len(questions) >= 2 else []


def _ascii(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return decomposed.encode("ascii", "ignore").decode("ascii").strip()


def build_history_context(history: Sequence[ConversationTurn]) -> str:
    """Render the last 3 turns for the decomposition prompt."""
    recent = list(history)[-3:]
    lines = []
    for idx, turn in enumerate(recent):
        offset = idx - len(recent)
        response = turn.response
        if len(response) > 150:
            response = response[:150].strip() + "..."
        entry = f'TURN_{offset}:\n  User: "{_ascii(turn.query)}"\n  AI: "{_ascii(response)}"'
        if turn.retrieved_entity_names:
            names = ", ".join(_ascii(name) for name in turn.retrieved_entity_names[:2])
            entry += f" | retrieved=[{names}]"
        lines.append(entry)
    return "\n\n".join(lines)


class Orchestrator:
    """Decomposes utterances into ``StructuredIntent`` values.

    Deterministic detectors run first in priority order. Whatever they do
    not settle goes to a JSON-mode LLM call, with a keyword fallback when
    the model is unavailable or returns garbage.
    """

    def __init__(
        self,
        llm_provider: LLMProvider,
        settings: Settings | None = None,
        detectors: Sequence[Detector] = DETECTORS,
    ):
        self.llm_provider = llm_provider
        self.settings = settings or get_settings()
        self.detectors = tuple(detectors)

    def snapshot(
        self,
        history: Sequence[ConversationTurn],
        entity: EntityContext | None = None,
    ) -> SessionSnapshot:
        return SessionSnapshot(
            history=tuple(history),
            entity=entity,
            ambiguous_service_terms=tuple(self.settings.ambiguous_service_terms),
            cost_query_patterns=tuple(self.settings.cost_query_patterns),
        )

    async def decompose(
        self,
        raw_query: str,
        history: Sequence[ConversationTurn] = (),
        entity: EntityContext | None = None,
    ) -> StructuredIntent:
        """Decompose a query into a structured intent.

        Args:
            raw_query: The user's utterance
            history: Recent conversation turns, oldest first
            entity: The session's valid entity context, if any

        Returns:
            StructuredIntent; never raises for collaborator failures
        """
        user_topic = extract_user_topic(raw_query)
        classification = classify(raw_query)
        snapshot = self.snapshot(history, entity)

        referent = None
        for detector in self.detectors:
            partial = detector(raw_query, snapshot)
            if partial is None:
                continue
            if partial.intent is not None:
                logger.info(f"Detector {detector.__name__} resolved intent: {partial.intent.intent}")
                return self._finish(partial.intent, raw_query, user_topic, classification)
            if partial.pronouns_bound_locally:
                snapshot = replace(snapshot, pronouns_bound_locally=True)
            if partial.referent:
                referent = partial.referent
                logger.info(f"Pronoun detected, injecting context: {referent}")

        try:
            intent = await self._decompose_with_llm(raw_query, snapshot, referent)
        except (CollaboratorUnavailable, MalformedStructuredOutput) as e:
            logger.warning(f"Decomposition fell back to keywords: {e}")
            intent = self._fallback_intent(raw_query, referent, classification)

        if referent:
            intent.conversation_context = ConversationContextKind.FOLLOWUP
            if referent.lower() not in intent.search_terms.lower():
                intent.search_terms = f"{intent.search_terms} {referent}".strip()
            if intent.query_scope != QueryScope.INFORMATION:
                intent.query_scope = QueryScope.SPECIFIC_BUSINESS
                intent.specific_business_name = referent

        if not intent.is_multi_question:
            sub_questions = split_sub_questions(raw_query)
            if sub_questions:
                intent.is_multi_question = True
                intent.sub_questions = sub_questions

        return self._finish(intent, raw_query, user_topic, classification)

    def _finish(
        self,
        intent: StructuredIntent,
        raw_query: str,
        user_topic: str,
        classification: QueryClassification,
    ) -> StructuredIntent:
        intent.user_topic = intent.user_topic or user_topic
        intent.topic_category = classification.category
        intent.topic_subcategory = classification.subcategory
        if not intent.search_terms and not intent.skip_retrieval:
            intent.search_terms = raw_query
        if not intent.is_multi_question or len(intent.sub_questions) < 2:
            intent.is_multi_question = False
            intent.sub_questions = []
        if is_business_query(intent) and classification.category == "bylaw":
            intent.also_search_documents = True

        logger.debug(
            f"Intent: {intent.intent}, kind: {intent.query_kind.value}, "
            f"scope: {intent.query_scope.value}, terms: {intent.search_terms}"
        )
        return intent

    def _build_user_message(
        self,
        raw_query: str,
        snapshot: SessionSnapshot,
        referent: str | None,
    ) -> str:
        query = f"{raw_query} (referring to {referent})" if referent else raw_query
        if not snapshot.history:
            return f"USER_QUERY: {query}\n\nOutput JSON:"
        return (
            f"CONVERSATION_HISTORY:\n{build_history_context(snapshot.history)}\n\n"
            f"CURRENT_USER_QUERY: {query}\n\n{FOLLOWUP_INSTRUCTIONS}\n\nOutput JSON:"
        )

    async def _decompose_with_llm(
        self,
        raw_query: str,
        snapshot: SessionSnapshot,
        referent: str | None,
    ) -> StructuredIntent:
        result = await self.llm_provider.complete(
            ORCHESTRATOR_PROMPT,
            self._build_user_message(raw_query, snapshot, referent),
            CompletionOptions(temperature=0.3, max_tokens=300, json_mode=True),
        )
        if not result.success:
            raise CollaboratorUnavailable(self.llm_provider.name, result.error or "completion failed")

        logger.debug(f"Orchestrator output: {result.content[:200]}")
        data = parse_json_object("orchestrator", result.content, required=("intent", "searchTerms"))

        sub_questions = string_list(data.get("subQuestions"))
        specific_name = data.get("specificBusinessName")
        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}

        return StructuredIntent(
            keywords=string_list(data.get("keywords")),
            intent=str(data.get("intent") or "info_request"),
            query_kind=coerce_enum(
                QueryKind,
                data.get("queryKind", data.get("queryType")),
                QueryKind.MUNICIPAL_PROCEDURE,
            ),
            search_terms=str(data.get("searchTerms") or ""),
            category_hints=string_list(data.get("categoryHints")),
            conversation_context=coerce_enum(
                ConversationContextKind,
                data.get("conversationContext"),
                ConversationContextKind.NEW_TOPIC,
            ),
            query_scope=coerce_enum(QueryScope, data.get("queryScope"), QueryScope.GENERAL_CATEGORY),
            specific_business_name=str(specific_name) if specific_name else None,
            is_multi_question=bool(data.get("isMultiQuestion")) and len(sub_questions) >= 2,
            sub_questions=sub_questions,
            also_search_documents=bool(metadata.get("alsoSearchBylaws")),
        )

    def _fallback_intent(
        self,
        raw_query: str,
        referent: str | None,
        classification: QueryClassification,
    ) -> StructuredIntent:
        keywords = [
            word
            for word in raw_query.lower().split()
            if len(word) > 3 and word not in FALLBACK_STOP_WORDS
        ]

        hints = []
        if classification.category in CATEGORY_HINTS:
            hints.append(CATEGORY_HINTS[classification.category])
        q = raw_query.lower()
        if any(w in q for w in BUSINESS_SEARCH_WORDS) and not any(w in q for w in DOCUMENT_SEARCH_WORDS):
            hints.append("business_economy")

        search_terms = f"{raw_query} {referent}" if referent else raw_query
        return StructuredIntent(
            keywords=keywords,
            intent="information_request",
            query_kind=QueryKind.MUNICIPAL_PROCEDURE,
            search_terms=search_terms,
            category_hints=hints,
            conversation_context=ConversationContextKind.NEW_TOPIC,
            query_scope=QueryScope.GENERAL_CATEGORY,
        )
