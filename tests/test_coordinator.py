"""End-to-end tests for the response coordinator with faked collaborators."""

import pytest

from civic_rag.errors import CollaboratorUnavailable
from civic_rag.query.context import ContextAssembler
from civic_rag.query.coordinator import (
    ResponseCoordinator,
    compute_confidence,
    is_fast_path_eligible,
    is_vague_query,
)
from civic_rag.query.discriminator import Discriminator
from civic_rag.query.models import (
    Confidence,
    QueryKind,
    QueryScope,
    RAGContext,
    ScoredBusiness,
    ScoredDocument,
    StructuredIntent,
)
from civic_rag.query.orchestrator import Orchestrator
from civic_rag.query.prompts import PRONOUN_CLARIFICATION, RESTATE_GENERIC, STALE_BUSINESS_CLARIFICATION
from civic_rag.query.retriever import Retriever
from civic_rag.session import EntityContext, EntityType

HVAC_SEARCH = {
    "intent": "business_search",
    "queryKind": "business_directory",
    "searchTerms": "HVAC heating cooling contractors",
    "categoryHints": ["business_economy"],
    "queryScope": "general_category",
}
HVAC_HOURS = {
    "intent": "business_search",
    "queryKind": "business_directory",
    "searchTerms": "Coastal Mountain HVAC hours",
    "queryScope": "specific_business",
    "specificBusinessName": "Coastal Mountain HVAC",
}


class Pipeline:
    """A coordinator wired to scripted collaborators."""

    def __init__(self, orchestrator_llm, discriminator_llm, generation_llm, store, sessions, settings):
        self.orchestrator_llm = orchestrator_llm
        self.discriminator_llm = discriminator_llm
        self.generation_llm = generation_llm
        self.store = store
        self.sessions = sessions
        self.coordinator = ResponseCoordinator(
            orchestrator=Orchestrator(orchestrator_llm, settings),
            retriever=Retriever(store, settings),
            discriminator=Discriminator(discriminator_llm),
            assembler=ContextAssembler(settings),
            generation_provider=generation_llm,
            sessions=sessions,
            settings=settings,
        )

    async def ask(self, query, session_id="session-1"):
        return await self.coordinator.query(query, session_id)


@pytest.fixture
def pipeline(scripted_llm, fake_store, hits, sessions, settings):
    def build(orchestrator_replies=(), discriminator_replies=(), generation_replies=(), store=None):
        store = store or fake_store(
            {
                "businesses": [hits.business("COASTAL MOUNTAIN HVAC LTD.", score=0.8)],
                "documents": [
                    hits.document("Building Bylaw", content="Building permits are required for decks over 60cm. " * 3)
                ],
            }
        )
        return Pipeline(
            scripted_llm(*orchestrator_replies),
            scripted_llm(*discriminator_replies),
            scripted_llm(*generation_replies, default="Coastal Mountain HVAC installs furnaces."),
            store,
            sessions,
            settings,
        )

    return build


class TestPureHelpers:
    """Test the coordinator's decision functions."""

    def test_fast_path_eligibility(self):
        """Test the fast-path predicate."""
        business = ScoredBusiness(name="TIM HORTONS #4521")
        entity = EntityContext(EntityType.BUSINESS, "TIM HORTONS #4521", business, timestamp=1000.0)
        intent = StructuredIntent(query_scope=QueryScope.SPECIFIC_BUSINESS, specific_business_name="Tim Hortons")

        assert is_fast_path_eligible(intent, entity, now=1299.0, max_age_seconds=300)
        assert not is_fast_path_eligible(intent, entity, now=1300.0, max_age_seconds=300)
        assert not is_fast_path_eligible(intent, None, now=1000.0, max_age_seconds=300)

        general = StructuredIntent(query_scope=QueryScope.GENERAL_CATEGORY, specific_business_name="Tim Hortons")
        assert not is_fast_path_eligible(general, entity, now=1000.0, max_age_seconds=300)

        other = StructuredIntent(query_scope=QueryScope.SPECIFIC_BUSINESS, specific_business_name="Safeway")
        assert not is_fast_path_eligible(other, entity, now=1000.0, max_age_seconds=300)

    def test_document_entity_never_fast_path(self):
        """Test that only cached businesses can be reused."""
        entity = EntityContext(EntityType.DOCUMENT, "Noise Bylaw", ScoredDocument(title="Noise Bylaw"), 1000.0)
        intent = StructuredIntent(query_scope=QueryScope.SPECIFIC_BUSINESS, specific_business_name="Noise Bylaw")

        assert not is_fast_path_eligible(intent, entity, now=1000.0, max_age_seconds=300)

    def test_vague_queries(self):
        """Test short interrogative-only detection."""
        assert is_vague_query("where?")
        assert is_vague_query("how much?")
        assert not is_vague_query("where is the library?")
        assert not is_vague_query("when is Safeway open")
        assert not is_vague_query("hello")

    def test_vague_words_match_whole_words_only(self):
        """Test that interrogatives inside other words do not count."""
        assert is_vague_query("who?")
        assert not is_vague_query("whole list?")
        assert not is_vague_query("somewhere?")

    def test_confidence(self):
        """Test confidence from source count and scores."""
        high = RAGContext(businesses=[ScoredBusiness(name=n, score=0.9) for n in "abc"])
        medium = RAGContext(businesses=[ScoredBusiness(name=n, score=0.3) for n in "ab"])
        low = RAGContext(documents=[ScoredDocument(title="a", score=0.4)])

        assert compute_confidence(high) == Confidence.HIGH
        assert compute_confidence(medium) == Confidence.MEDIUM
        assert compute_confidence(low) == Confidence.LOW
        assert compute_confidence(RAGContext()) == Confidence.LOW

    def test_confidence_caps_boosted_scores(self):
        """Test that fee-boosted document scores count as at most 1.0."""
        boosted = RAGContext(
            documents=[ScoredDocument(title="Fees Bylaw", score=2.0 * 1.4 * 1.3, original_score=0.4)]
            + [ScoredDocument(title=t, score=0.1) for t in ("a", "b")]
        )

        # Average of 1.0, 0.1 and 0.1 stays below the high threshold.
        assert compute_confidence(boosted) == Confidence.MEDIUM


class TestConversation:
    """Test multi-turn behaviour."""

    @pytest.mark.asyncio
    async def test_service_inquiry_uses_cached_business(self, pipeline):
        """Test that "do they do financing?" after an HVAC search skips retrieval."""
        p = pipeline(orchestrator_replies=[HVAC_SEARCH], discriminator_replies=[{"finalSelection": [1]}])

        first = await p.ask("find hvac contractors")
        assert [b.name for b in first.context.businesses] == ["Coastal Mountain HVAC"]
        assert len(p.store.queries) == 1

        second = await p.ask("do they do financing?")

        assert second.intent.query_kind == QueryKind.SERVICE_INQUIRY
        assert second.fast_path is True
        assert [b.name for b in second.context.businesses] == ["Coastal Mountain HVAC"]
        assert len(p.store.queries) == 1
        assert len(p.orchestrator_llm.calls) == 1
        system_prompt = p.generation_llm.calls[-1][0]
        assert "particular service, payment option or policy" in system_prompt

    @pytest.mark.asyncio
    async def test_service_inquiry_with_stale_business(self, pipeline, clock):
        """Test that an expired business cannot answer attribute questions."""
        p = pipeline(orchestrator_replies=[HVAC_SEARCH], discriminator_replies=[{"finalSelection": [1]}])
        await p.ask("find hvac contractors")
        clock.advance(300)

        response = await p.ask("do they do financing?")

        assert response.answer == STALE_BUSINESS_CLARIFICATION
        assert response.confidence == Confidence.LOW
        assert len(p.generation_llm.calls) == 1

    @pytest.mark.asyncio
    async def test_fast_path_reuses_business(self, pipeline):
        """Test that asking about the cached business again skips search."""
        p = pipeline(
            orchestrator_replies=[HVAC_SEARCH, HVAC_HOURS],
            discriminator_replies=[{"finalSelection": [1]}],
        )
        await p.ask("find hvac contractors")

        response = await p.ask("what are Coastal Mountain HVAC's hours")

        assert response.fast_path is True
        assert len(p.store.queries) == 1
        assert len(p.discriminator_llm.calls) == 1

    @pytest.mark.asyncio
    async def test_stale_entity_triggers_full_retrieval(self, pipeline, clock):
        """Test that the fast path is not taken once the entity is stale."""
        p = pipeline(
            orchestrator_replies=[HVAC_SEARCH, HVAC_HOURS],
            discriminator_replies=[{"finalSelection": [1]}],
        )
        await p.ask("find hvac contractors")
        clock.advance(300)

        response = await p.ask("what are Coastal Mountain HVAC's hours")

        assert response.fast_path is False
        assert len(p.store.queries) == 2
        # Exact name match among the new candidates needs no filtering call.
        assert len(p.discriminator_llm.calls) == 1
        assert [b.name for b in response.context.businesses] == ["Coastal Mountain HVAC"]

    @pytest.mark.asyncio
    async def test_vague_first_query_asks_to_restate(self, pipeline):
        """Test that "where?" with no context asks for clarification without retrieval."""
        p = pipeline()

        response = await p.ask("where?")

        assert response.answer == RESTATE_GENERIC
        assert response.sources == 0
        assert response.confidence == Confidence.LOW
        assert p.store.queries == []
        assert p.orchestrator_llm.calls == []
        assert p.generation_llm.calls == []
        turn = p.sessions.get("session-1").last_turn
        assert turn.ai_asked_question is True

    @pytest.mark.asyncio
    async def test_vague_follow_up_borrows_recent_entity(self, pipeline):
        """Test that "how much?" right after an answer is about that answer."""
        p = pipeline(orchestrator_replies=[HVAC_SEARCH], discriminator_replies=[{"finalSelection": [1]}])
        await p.ask("find hvac contractors")

        response = await p.ask("how much?")

        assert response.intent.intent == "fee_inquiry"
        collection, query_text, _ = p.store.queries[-1]
        assert collection == "documents"
        assert query_text.startswith("Coastal Mountain HVAC cost price fee rate")

    @pytest.mark.asyncio
    async def test_pronoun_without_history(self, pipeline):
        """Test that an unresolved pronoun yields a clarification."""
        p = pipeline()

        response = await p.ask("what are their hours?")

        assert response.answer == PRONOUN_CLARIFICATION
        assert p.store.queries == []
        assert p.generation_llm.calls == []

    @pytest.mark.asyncio
    async def test_answer_to_clarifying_question_is_rewritten(self, pipeline):
        """Test that a reply to the assistant's question keeps its topic."""
        p = pipeline(
            orchestrator_replies=[
                {"intent": "permit", "queryKind": "permit", "searchTerms": "permit", "queryScope": "information"},
                {"intent": "permit", "queryKind": "permit", "searchTerms": "deck permit", "queryScope": "information"},
            ],
            generation_replies=["What are you planning to build?", "Decks over 60cm need a permit."],
        )
        await p.ask("I need a permit")
        assert p.sessions.get("session-1").last_turn.ai_asked_question is True

        await p.ask("a deck")

        assert "CURRENT_USER_QUERY: Building Bylaw: a deck" in p.orchestrator_llm.calls[1][1]
        history = p.sessions.get("session-1").history
        assert history[0].ai_asked_question is False
        assert history[1].query == "a deck"

    @pytest.mark.asyncio
    async def test_failed_reply_to_clarifying_question_keeps_it_pending(self, pipeline, unavailable):
        """Test that a failed answer leaves the assistant's question open."""
        permit = {"intent": "permit", "queryKind": "permit", "searchTerms": "permit", "queryScope": "information"}
        p = pipeline(
            orchestrator_replies=[permit, permit],
            generation_replies=["What are you planning to build?", unavailable],
        )
        await p.ask("I need a permit")

        with pytest.raises(CollaboratorUnavailable):
            await p.ask("a deck")

        history = p.sessions.get("session-1").history
        assert len(history) == 1
        assert history[0].ai_asked_question is True
        assert p.sessions.pending_clarification("session-1") == "I need a permit"


class TestRetrievalPaths:
    """Test single-turn retrieval behaviour."""

    @pytest.mark.asyncio
    async def test_document_question(self, pipeline):
        """Test a municipal question answered from documents."""
        p = pipeline(
            orchestrator_replies=[
                {"intent": "info_request", "queryKind": "permit", "searchTerms": "deck building permit",
                 "queryScope": "information"}
            ],
            generation_replies=["You need a building permit for decks over 60cm."],
        )

        response = await p.ask("do I need a permit for my deck")

        assert [d.title for d in response.context.documents] == ["Building Bylaw"]
        assert response.context.businesses == []
        assert p.store.queries[0][0] == "documents"
        user_content = p.generation_llm.calls[0][1]
        assert "=== MUNICIPAL DOCUMENTS ===" in user_content
        assert "Source URL: https://www.terrace.ca/media/3959" in user_content
        entity = p.sessions.get_valid_entity("session-1")
        assert entity.entity_type == EntityType.DOCUMENT

    @pytest.mark.asyncio
    async def test_vector_store_outage_degrades(self, pipeline, fake_store):
        """Test that a search outage still produces an answer without sources."""
        p = pipeline(
            orchestrator_replies=[HVAC_SEARCH],
            generation_replies=["I don't have any HVAC contractors to suggest right now."],
            store=fake_store(fail=True),
        )

        response = await p.ask("find hvac contractors")

        assert response.sources == 0
        assert response.confidence == Confidence.LOW
        assert "No matching businesses or documents were found." in p.generation_llm.calls[0][1]

    @pytest.mark.asyncio
    async def test_generation_outage_propagates(self, pipeline, unavailable):
        """Test that a failed answer leaves the session untouched."""
        p = pipeline(
            orchestrator_replies=[HVAC_SEARCH],
            discriminator_replies=[{"finalSelection": [1]}],
            generation_replies=[unavailable],
        )

        with pytest.raises(CollaboratorUnavailable):
            await p.ask("find hvac contractors")

        assert p.sessions.get("session-1").history == []

    @pytest.mark.asyncio
    async def test_multi_question_fan_out(self, pipeline):
        """Test that each question gets its own labelled answer."""
        pool = {"intent": "info_request", "searchTerms": "pool hours", "queryScope": "information"}
        dog = {"intent": "info_request", "queryKind": "financial", "searchTerms": "dog licence fee",
               "queryScope": "information"}
        p = pipeline(
            orchestrator_replies=[pool, pool, dog],
            generation_replies=["The pool opens at 6am.", "A dog licence is $25."],
        )

        response = await p.ask("What are the pool hours? How much is a dog licence?")

        assert response.answer == (
            "**Question 1: What are the pool hours?**\nThe pool opens at 6am."
            "\n\n---\n\n"
            "**Question 2: How much is a dog licence?**\nA dog licence is $25."
        )
        assert len(p.generation_llm.calls) == 2
        history = p.sessions.get("session-1").history
        assert len(history) == 1
        assert history[0].query == "What are the pool hours? How much is a dog licence?"

    @pytest.mark.asyncio
    async def test_health_check(self, pipeline):
        """Test collaborator health aggregation."""
        p = pipeline()

        health = await p.coordinator.health_check()

        assert health == {
            "vector_store": True,
            "orchestrator_llm": True,
            "generation_llm": True,
            "overall": True,
        }
