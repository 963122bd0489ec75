"""End-to-end query pipeline with session-aware shortcuts."""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any

from civic_rag.config import Settings, get_settings
from civic_rag.errors import AmbiguousQuery, CollaboratorUnavailable, StaleContext
from civic_rag.llm.base import CompletionOptions, LLMProvider
from civic_rag.session.models import (
    ConversationTurn,
    EntityContext,
    EntityType,
    SessionContext,
)
from civic_rag.session.store import SessionStore

from .context import ContextAssembler
from .detectors import has_pronoun, is_data_gap
from .discriminator import Discriminator
from .models import (
    Confidence,
    QueryScope,
    RAGContext,
    RAGResponse,
    ScoredBusiness,
    ScoredDocument,
    StructuredIntent,
    merge_contexts,
)
from .orchestrator import Orchestrator, is_business_query
from .prompts import (
    PRONOUN_CLARIFICATION,
    RESTATE_AFTER_GAP,
    RESTATE_GENERIC,
    STALE_BUSINESS_CLARIFICATION,
    asked_question,
    build_conversation_context,
    build_system_prompt,
    build_user_content,
)
from .retriever import Retriever, candidates_from_businesses

logger = logging.getLogger(__name__)

VAGUE_MAX_CHARS = 20
VAGUE_PHRASE_RE = re.compile(
    r"\b(what time|how much|where|when|who|which one|what about)\b", re.IGNORECASE
)
INTERROGATIVES = {"what", "where", "when", "who", "which", "how", "why"}
ENTITY_NOUNS = (
    "library", "hall", "arena", "pool", "hospital", "museum", "park", "school",
    "fire hall", "rec center", "city hall", "permit", "license", "licence",
    "bylaw", "event", "program", "courthouse", "police", "fire station",
    "city office",
)
ARTICLE_NOUN_RE = re.compile(r"\b(the|a|an)\s+\w+", re.IGNORECASE)
PROPER_NOUN_RE = re.compile(r"\b[A-Z][a-z]+\b")
# Vague follow-ups only borrow context from a turn this recent.
VAGUE_CONTEXT_WINDOW_SECONDS = 120

GENERATION_OPTIONS = CompletionOptions(temperature=0.7, max_tokens=800)


def has_specific_entity(query: str) -> bool:
    """Whether a short query names something concrete."""
    if ARTICLE_NOUN_RE.search(query):
        return True
    if any(re.search(rf"\b{re.escape(noun)}\b", query, re.IGNORECASE) for noun in ENTITY_NOUNS):
        return True
    for match in PROPER_NOUN_RE.finditer(query):
        if match.start() == 0 and match.group().lower() in INTERROGATIVES:
            continue
        return True
    return False


def is_vague_query(query: str) -> bool:
    """Short interrogative-only queries such as "where?" or "how much?"."""
    stripped = query.strip()
    if len(stripped) >= VAGUE_MAX_CHARS:
        return False
    if not VAGUE_PHRASE_RE.search(stripped):
        return False
    return not has_specific_entity(stripped)


def is_fast_path_eligible(
    intent: StructuredIntent,
    entity: EntityContext | None,
    now: float,
    max_age_seconds: float,
) -> bool:
    """Whether the cached business can answer without retrieval.

    Requires a specific-business intent whose name matches a non-stale
    cached business (case-insensitive containment in either direction).
    """
    if intent.query_scope != QueryScope.SPECIFIC_BUSINESS or not intent.specific_business_name:
        return False
    if entity is None or entity.entity_type != EntityType.BUSINESS:
        return False
    if entity.is_stale(now, max_age_seconds):
        return False

    requested = intent.specific_business_name.strip().lower()
    cached = entity.entity_name.strip().lower()
    if not requested or not cached:
        return False
    return requested in cached or cached in requested


def compute_confidence(context: RAGContext) -> Confidence:
    # Fee re-ranking can push scores past 1.0.
    scores = [min(score, 1.0) for score in context.scores()]
    total = len(scores)
    average = sum(scores) / total if total else 0.0
    if average > 0.8 and total >= 3:
        return Confidence.HIGH
    if average > 0.6 or total >= 2:
        return Confidence.MEDIUM
    return Confidence.LOW


@dataclass
class TurnOutcome:
    """A computed answer whose session writes have not been applied yet."""

    response: RAGResponse
    turn: ConversationTurn
    entity: EntityContext | None = None
    answers_clarification: bool = False


class ResponseCoordinator:
    """Runs the query pipeline for one session at a time.

    Flow per query: clarification rewrite, vague-query guard, decomposition,
    then either a clarification, a service inquiry against the cached
    business, a multi-question fan-out, the fast path, or full retrieval.
    Session writes are applied once the answer is complete.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        retriever: Retriever,
        discriminator: Discriminator,
        assembler: ContextAssembler,
        generation_provider: LLMProvider,
        sessions: SessionStore,
        settings: Settings | None = None,
    ):
        self.orchestrator = orchestrator
        self.retriever = retriever
        self.discriminator = discriminator
        self.assembler = assembler
        self.generation_provider = generation_provider
        self.sessions = sessions
        self.settings = settings or get_settings()

    @property
    def municipality(self) -> str:
        return self.settings.service_area.title()

    async def query(self, user_query: str, session_id: str) -> RAGResponse:
        """Answer a user query within a conversation.

        Args:
            user_query: The user's message
            session_id: Caller-supplied conversation id

        Returns:
            RAGResponse with the answer, its context and a confidence level

        Raises:
            CollaboratorUnavailable: If the answer generation provider is down
        """
        logger.info(f"Processing query [{session_id[:8]}]: {user_query}")
        session = self.sessions.get_or_create(session_id)
        entity = self.sessions.get_valid_entity(session_id)

        last_turn = session.last_turn
        answers_clarification = last_turn is not None and last_turn.ai_asked_question
        query = self._resolve_clarification(user_query, session, entity)
        try:
            query = self._guard_vague_query(query, session, entity)
        except AmbiguousQuery as e:
            logger.info(f"Vague query needs clarification: {e.query}")
            outcome = self._clarification(user_query, e.clarification)
        else:
            outcome = await self._process(query, user_query, session, entity, allow_fan_out=True)

        outcome.answers_clarification = answers_clarification
        self._commit(session_id, outcome)
        logger.info(
            f"Answered with {outcome.response.confidence.value} confidence "
            f"from {outcome.response.sources} sources"
        )
        return outcome.response

    def _resolve_clarification(
        self,
        user_query: str,
        session: SessionContext,
        entity: EntityContext | None,
    ) -> str:
        last_turn = session.last_turn
        if last_turn is None or not last_turn.ai_asked_question:
            return user_query

        prefix = entity.entity_name if entity else last_turn.pending_clarification_topic
        # Pronoun follow-ups are resolved against history by the detectors.
        if not prefix or has_pronoun(user_query):
            return user_query
        logger.info(f"Treating query as answer to clarification about: {prefix}")
        return f"{prefix}: {user_query}"

    def _guard_vague_query(
        self,
        query: str,
        session: SessionContext,
        entity: EntityContext | None,
    ) -> str:
        if not is_vague_query(query):
            return query

        last_turn = session.last_turn
        now = self.sessions.clock()
        if (
            entity is not None
            and last_turn is not None
            and not is_data_gap(last_turn.response)
            and now - last_turn.timestamp < VAGUE_CONTEXT_WINDOW_SECONDS
        ):
            rewritten = f"{query} about {entity.entity_name}"
            logger.info(f"Expanded vague query with context: {rewritten}")
            return rewritten

        if last_turn is not None and (is_data_gap(last_turn.response) or "not available" in last_turn.response):
            names = last_turn.retrieved_entity_names
            topic = names[0] if names else "that topic"
            raise AmbiguousQuery(query, RESTATE_AFTER_GAP.format(topic=topic))
        raise AmbiguousQuery(query, RESTATE_GENERIC)

    async def _process(
        self,
        query: str,
        user_query: str,
        session: SessionContext,
        entity: EntityContext | None,
        allow_fan_out: bool,
    ) -> TurnOutcome:
        intent = await self.orchestrator.decompose(query, session.history, entity)
        logger.info(
            f"Intent: {intent.intent} ({intent.query_kind.value}, {intent.query_scope.value})"
        )

        if intent.needs_clarification:
            error = AmbiguousQuery(query, PRONOUN_CLARIFICATION)
            return self._clarification(user_query, error.clarification, intent)

        if intent.skip_retrieval:
            try:
                return await self._answer_service_inquiry(query, user_query, session, entity, intent)
            except StaleContext as e:
                logger.info("Service inquiry without a valid cached business")
                return self._clarification(user_query, e.clarification, intent)

        if allow_fan_out and intent.is_multi_question:
            return await self._fan_out(user_query, intent, session, entity)

        return await self._answer_with_retrieval(query, user_query, session, entity, intent)

    async def _answer_service_inquiry(
        self,
        query: str,
        user_query: str,
        session: SessionContext,
        entity: EntityContext | None,
        intent: StructuredIntent,
    ) -> TurnOutcome:
        if entity is None or entity.entity_type != EntityType.BUSINESS:
            raise StaleContext(session.id, STALE_BUSINESS_CLARIFICATION)

        logger.info(f"Answering service inquiry from cached business: {entity.entity_name}")
        context = RAGContext(businesses=[entity.entity_payload])
        assembled = self.assembler.assemble(context, query)
        system_prompt = build_system_prompt(
            QueryScope.SPECIFIC_BUSINESS, query, self.municipality, service_inquiry=True
        )
        answer = await self._generate(system_prompt, query, assembled.text)
        return self._outcome(user_query, answer, context, intent, fast_path=True)

    async def _fan_out(
        self,
        user_query: str,
        intent: StructuredIntent,
        session: SessionContext,
        entity: EntityContext | None,
    ) -> TurnOutcome:
        sub_questions = intent.sub_questions[: self.settings.max_sub_questions]
        logger.info(f"Multi-question query, answering {len(sub_questions)} parts")

        answered: list[tuple[str, TurnOutcome]] = []
        last_error: CollaboratorUnavailable | None = None
        for idx, sub_question in enumerate(sub_questions, 1):
            logger.info(f"Sub-question {idx}/{len(sub_questions)}: {sub_question}")
            try:
                outcome = await self._process(
                    sub_question, sub_question, session, entity, allow_fan_out=False
                )
            except CollaboratorUnavailable as e:
                logger.error(f"Sub-question {idx} failed: {e}")
                last_error = e
                continue
            answered.append((sub_question, outcome))

        if not answered:
            raise last_error or CollaboratorUnavailable("generation", "no sub-question answered")

        merged = merge_contexts(outcome.response.context for _, outcome in answered)
        answer = "\n\n---\n\n".join(
            f"**Question {i}: {question}**\n{outcome.response.answer}"
            for i, (question, outcome) in enumerate(answered, 1)
        )
        confidence = Confidence.weakest(
            compute_confidence(merged),
            *(outcome.response.confidence for _, outcome in answered),
        )
        outcome = self._outcome(user_query, answer, merged, intent, confidence=confidence)
        if outcome.entity is None:
            outcome.entity = next((o.entity for _, o in answered if o.entity is not None), None)
        return outcome

    async def _answer_with_retrieval(
        self,
        query: str,
        user_query: str,
        session: SessionContext,
        entity: EntityContext | None,
        intent: StructuredIntent,
    ) -> TurnOutcome:
        context = RAGContext()
        fast_path = is_fast_path_eligible(
            intent, entity, self.sessions.clock(), self.sessions.entity_ttl
        )

        if fast_path:
            logger.info(f"Fast path: reusing cached business {entity.entity_name}")
            context.businesses = [entity.entity_payload]
        elif is_business_query(intent):
            if intent.also_search_documents:
                businesses, documents = await asyncio.gather(
                    self._search_businesses(intent.search_terms),
                    self._search_documents(intent.search_terms),
                )
            else:
                businesses, documents = await self._search_businesses(intent.search_terms), []

            candidates = candidates_from_businesses(businesses)
            selection = await self.discriminator.filter(user_query, intent, candidates)
            context.businesses = [businesses[i - 1] for i in selection.final_selection]
            context.documents = documents
        else:
            context.documents = await self._search_documents(intent.search_terms)

        assembled = self.assembler.assemble(context, query)
        context = RAGContext(businesses=assembled.businesses, documents=assembled.documents)

        system_prompt = build_system_prompt(intent.query_scope, query, self.municipality)
        system_prompt += build_conversation_context(session.history, query)
        answer = await self._generate(system_prompt, query, assembled.text)
        return self._outcome(user_query, answer, context, intent, fast_path=fast_path)

    async def _search_businesses(self, terms: str) -> list[ScoredBusiness]:
        try:
            return await self.retriever.search_businesses(terms, self.settings.business_search_limit)
        except CollaboratorUnavailable as e:
            logger.error(f"Business search failed, continuing without results: {e}")
            return []

    async def _search_documents(self, terms: str) -> list[ScoredDocument]:
        try:
            return await self.retriever.search_documents(terms, self.settings.document_search_limit)
        except CollaboratorUnavailable as e:
            logger.error(f"Document search failed, continuing without results: {e}")
            return []

    async def _generate(self, system_prompt: str, query: str, context_text: str) -> str:
        result = await self.generation_provider.complete(
            system_prompt, build_user_content(query, context_text), GENERATION_OPTIONS
        )
        if not result.success or not result.content.strip():
            raise CollaboratorUnavailable(
                self.generation_provider.name, result.error or "empty completion"
            )
        return result.content.strip()

    def _best_entity(self, context: RAGContext, intent: StructuredIntent | None) -> EntityContext | None:
        now = self.sessions.clock()
        originating = intent.intent if intent else None
        if context.businesses:
            best = context.businesses[0]
            return EntityContext(EntityType.BUSINESS, best.name, best, now, originating)
        if context.documents:
            best = context.documents[0]
            return EntityContext(EntityType.DOCUMENT, best.title, best, now, originating)
        if intent is None:
            return None
        topic = intent.category_hints[0] if intent.category_hints else intent.user_topic
        if topic:
            payload: dict[str, Any] = {"category": topic}
            return EntityContext(EntityType.TOPIC, topic, payload, now, originating)
        return None

    def _outcome(
        self,
        user_query: str,
        answer: str,
        context: RAGContext,
        intent: StructuredIntent | None,
        fast_path: bool = False,
        confidence: Confidence | None = None,
    ) -> TurnOutcome:
        entity = self._best_entity(context, intent)
        asked = asked_question(answer)
        turn = ConversationTurn(
            query=user_query,
            response=answer,
            retrieved_entity_names=tuple(context.entity_names()),
            ai_asked_question=asked,
            pending_clarification_topic=user_query if asked else None,
            timestamp=self.sessions.clock(),
            resolved_entity_type=entity.entity_type if entity else None,
        )
        response = RAGResponse(
            answer=answer,
            context=context,
            confidence=confidence or compute_confidence(context),
            sources=context.sources,
            fast_path=fast_path,
            intent=intent,
        )
        return TurnOutcome(response=response, turn=turn, entity=entity)

    def _clarification(
        self,
        user_query: str,
        message: str,
        intent: StructuredIntent | None = None,
    ) -> TurnOutcome:
        turn = ConversationTurn(
            query=user_query,
            response=message,
            ai_asked_question=True,
            pending_clarification_topic=user_query,
            timestamp=self.sessions.clock(),
        )
        response = RAGResponse(
            answer=message,
            context=RAGContext(),
            confidence=Confidence.LOW,
            sources=0,
            intent=intent,
        )
        return TurnOutcome(response=response, turn=turn)

    def _commit(self, session_id: str, outcome: TurnOutcome) -> None:
        if outcome.answers_clarification:
            self.sessions.clear_pending_clarification(session_id)
        if outcome.entity is not None:
            self.sessions.set_entity(session_id, outcome.entity)
        self.sessions.record_turn(session_id, outcome.turn)

    async def health_check(self) -> dict[str, bool]:
        """Check health of the pipeline's collaborators.

        Returns:
            Health status dictionary
        """
        health = {
            "vector_store": await self.retriever.vector_store.health_check(),
            "orchestrator_llm": await self.orchestrator.llm_provider.health_check(),
            "generation_llm": await self.generation_provider.health_check(),
        }
        health["overall"] = all(health.values())
        return health
