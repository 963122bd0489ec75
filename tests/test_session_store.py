"""Tests for session state and expiry."""

import asyncio

import pytest

from civic_rag.session import (
    ConversationTurn,
    EntityContext,
    EntityType,
    InMemorySessionBackend,
    SessionStore,
)


def _turn(query, clock, **kwargs):
    return ConversationTurn(query=query, response=f"answer to {query}", timestamp=clock(), **kwargs)


class TestSessionLifecycle:
    """Test session creation and expiry."""

    def test_get_or_create_creates_lazily(self, sessions, clock):
        """Test that an unknown id creates an empty session."""
        assert sessions.get("abc") is None

        session = sessions.get_or_create("abc")

        assert session.id == "abc"
        assert session.created_at == clock()
        assert session.history == []
        assert session.entity_context is None

    def test_access_refreshes_expiry(self, sessions, clock):
        """Test that each access extends the session lifetime."""
        sessions.get_or_create("abc")
        clock.advance(1700)
        assert sessions.get("abc") is not None
        clock.advance(1700)
        assert sessions.get("abc") is not None

    def test_idle_session_expires(self, sessions, clock):
        """Test that a session idle past its TTL is removed on access."""
        sessions.get_or_create("abc")
        clock.advance(1801)

        assert sessions.get("abc") is None
        assert len(sessions.backend) == 0

    def test_sweep_evicts_only_expired(self, sessions, clock):
        """Test the periodic sweep."""
        sessions.get_or_create("old")
        clock.advance(1000)
        sessions.get_or_create("new")
        clock.advance(900)

        evicted = sessions.sweep()

        assert evicted == 1
        assert [sid for sid, _ in sessions.backend.items()] == ["new"]

    def test_clear(self, sessions):
        """Test explicit session removal."""
        sessions.get_or_create("abc")
        sessions.clear("abc")
        assert sessions.get("abc") is None

    def test_custom_backend(self, clock):
        """Test that the store writes through an injected backend."""
        backend = InMemorySessionBackend()
        store = SessionStore(backend=backend, clock=clock)

        store.get_or_create("abc")

        assert backend.get("abc") is not None


class TestConversationHistory:
    """Test turn recording."""

    def test_history_keeps_last_five_turns(self, sessions, clock):
        """Test that history is trimmed to the most recent turns in order."""
        for i in range(7):
            sessions.record_turn("abc", _turn(f"q{i}", clock))
            clock.advance(1)

        history = sessions.get("abc").history

        assert len(history) == 5
        assert [turn.query for turn in history] == ["q2", "q3", "q4", "q5", "q6"]

    def test_pending_clarification(self, sessions, clock):
        """Test flagging and clearing a pending clarification on the last turn."""
        sessions.record_turn("abc", _turn("I need a permit", clock))

        sessions.mark_pending_clarification("abc", "permit")
        assert sessions.pending_clarification("abc") == "permit"
        assert sessions.get("abc").last_turn.ai_asked_question is True

        sessions.clear_pending_clarification("abc")
        assert sessions.pending_clarification("abc") is None
        assert sessions.get("abc").last_turn.ai_asked_question is False

    def test_pending_clarification_without_history(self, sessions):
        """Test that clarification flags on an empty session are a no-op."""
        sessions.mark_pending_clarification("abc", "permit")
        assert sessions.pending_clarification("abc") is None


class TestEntityContext:
    """Test entity caching and staleness."""

    def test_entity_valid_just_before_ttl(self, sessions, clock):
        """Test that a 299 second old entity is still handed out."""
        sessions.update_last_entity("abc", EntityType.BUSINESS, "Tim Hortons", {"name": "Tim Hortons"})
        clock.advance(299)

        entity = sessions.get_valid_entity("abc")

        assert entity is not None
        assert entity.entity_name == "Tim Hortons"

    def test_entity_stale_at_ttl(self, sessions, clock):
        """Test that an entity exactly at its TTL is stale."""
        sessions.update_last_entity("abc", EntityType.BUSINESS, "Tim Hortons", {})
        clock.advance(300)

        assert sessions.get_valid_entity("abc") is None

    def test_is_stale_boundary(self):
        """Test the staleness predicate directly."""
        entity = EntityContext(EntityType.TOPIC, "dog license", {}, timestamp=100.0)

        assert entity.is_stale(399.0, 300) is False
        assert entity.is_stale(400.0, 300) is True

    def test_update_replaces_entity(self, sessions, clock):
        """Test that the newest entity replaces the previous one."""
        sessions.update_last_entity("abc", EntityType.BUSINESS, "Safeway", {})
        clock.advance(10)
        sessions.update_last_entity("abc", EntityType.DOCUMENT, "Noise Bylaw", {}, intent="info_request")

        entity = sessions.get_valid_entity("abc")

        assert entity.entity_type == EntityType.DOCUMENT
        assert entity.originating_intent == "info_request"
        assert entity.timestamp == clock()

    def test_stats(self, sessions, clock):
        """Test session statistics."""
        sessions.get_or_create("a")
        sessions.update_last_entity("b", EntityType.BUSINESS, "Safeway", {})

        assert sessions.stats() == {"total_sessions": 2, "active_with_context": 1}


class TestSweeper:
    """Test the background sweep task."""

    @pytest.mark.asyncio
    async def test_sweeper_runs_and_stops(self, clock):
        """Test that the sweeper evicts expired sessions on its interval."""
        store = SessionStore(clock=clock, sweep_interval=0.01)
        store.get_or_create("abc")
        clock.advance(1801)

        store.start_sweeper()
        await asyncio.sleep(0.05)
        await store.stop_sweeper()

        assert len(store.backend) == 0
        assert store._sweeper is None
