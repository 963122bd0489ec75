"""In-process session store with an injectable key-value backend."""

import asyncio
import dataclasses
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from .models import ConversationTurn, EntityContext, EntityType, SessionContext

logger = logging.getLogger(__name__)


class SessionBackend(ABC):
    """Key-value storage for session records."""

    @abstractmethod
    def get(self, session_id: str) -> SessionContext | None:
        pass

    @abstractmethod
    def put(self, session: SessionContext) -> None:
        pass

    @abstractmethod
    def delete(self, session_id: str) -> None:
        pass

    @abstractmethod
    def items(self) -> list[tuple[str, SessionContext]]:
        pass


class InMemorySessionBackend(SessionBackend):
    """Dictionary-backed storage; sessions live as long as the process."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionContext] = {}

    def get(self, session_id: str) -> SessionContext | None:
        return self._sessions.get(session_id)

    def put(self, session: SessionContext) -> None:
        self._sessions[session.id] = session

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def items(self) -> list[tuple[str, SessionContext]]:
        return list(self._sessions.items())

    def __len__(self) -> int:
        return len(self._sessions)


class SessionStore:
    """Conversation state keyed by a caller-supplied session id.

    Sessions are created lazily, expire after ``session_ttl`` seconds without
    access, and keep at most ``max_turns`` turns. The cached entity is only
    handed out while younger than ``entity_ttl`` seconds.
    """

    def __init__(
        self,
        backend: SessionBackend | None = None,
        clock: Callable[[], float] = time.time,
        session_ttl: float = 30 * 60,
        entity_ttl: float = 5 * 60,
        max_turns: int = 5,
        sweep_interval: float = 10 * 60,
    ):
        self.backend = backend if backend is not None else InMemorySessionBackend()
        self.clock = clock
        self.session_ttl = session_ttl
        self.entity_ttl = entity_ttl
        self.max_turns = max_turns
        self.sweep_interval = sweep_interval
        self._sweeper: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, settings: Any, backend: SessionBackend | None = None) -> "SessionStore":
        """Build a store using the session fields of ``Settings``."""
        return cls(
            backend=backend,
            session_ttl=settings.session_ttl_seconds,
            entity_ttl=settings.entity_ttl_seconds,
            max_turns=settings.max_history_turns,
            sweep_interval=settings.session_sweep_interval_seconds,
        )

    def _is_expired(self, session: SessionContext, now: float) -> bool:
        return now - session.last_accessed_at > self.session_ttl

    def get(self, session_id: str) -> SessionContext | None:
        """Return a live session and refresh its access time."""
        session = self.backend.get(session_id)
        if session is None:
            return None

        now = self.clock()
        if self._is_expired(session, now):
            logger.info(f"Session {session_id[:8]} expired, removing")
            self.backend.delete(session_id)
            return None

        session.last_accessed_at = now
        self.backend.put(session)
        return session

    def get_or_create(self, session_id: str) -> SessionContext:
        session = self.get(session_id)
        if session is not None:
            return session

        now = self.clock()
        session = SessionContext(id=session_id, created_at=now, last_accessed_at=now)
        self.backend.put(session)
        logger.info(f"Created new session {session_id[:8]}")
        return session

    def touch(self, session_id: str) -> None:
        self.get_or_create(session_id)

    def record_turn(self, session_id: str, turn: ConversationTurn) -> None:
        """Append ``turn`` and keep only the most recent ``max_turns``."""
        session = self.get_or_create(session_id)
        session.history = [*session.history, turn][-self.max_turns:]
        self.backend.put(session)

    def set_entity(self, session_id: str, entity: EntityContext) -> None:
        session = self.get_or_create(session_id)
        session.entity_context = entity
        self.backend.put(session)
        logger.debug(f"Stored {entity.entity_type.value} context: {entity.entity_name}")

    def update_last_entity(
        self,
        session_id: str,
        entity_type: EntityType,
        name: str,
        payload: Any,
        intent: str | None = None,
    ) -> EntityContext:
        """Stamp a new entity context with the current time and store it."""
        entity = EntityContext(
            entity_type=entity_type,
            entity_name=name,
            entity_payload=payload,
            timestamp=self.clock(),
            originating_intent=intent,
        )
        self.set_entity(session_id, entity)
        return entity

    def get_valid_entity(self, session_id: str) -> EntityContext | None:
        """Return the cached entity unless it is stale."""
        session = self.get(session_id)
        if session is None or session.entity_context is None:
            return None

        entity = session.entity_context
        if entity.is_stale(self.clock(), self.entity_ttl):
            age = self.clock() - entity.timestamp
            logger.debug(f"Entity context expired ({round(age)}s old)")
            return None
        return entity

    def mark_pending_clarification(self, session_id: str, topic: str) -> None:
        """Flag the last turn as ending in a question about ``topic``."""
        self._replace_last_turn(session_id, ai_asked_question=True, pending_clarification_topic=topic)

    def clear_pending_clarification(self, session_id: str) -> None:
        self._replace_last_turn(session_id, ai_asked_question=False, pending_clarification_topic=None)

    def pending_clarification(self, session_id: str) -> str | None:
        session = self.get(session_id)
        if session is None or session.last_turn is None:
            return None
        return session.last_turn.pending_clarification_topic

    def _replace_last_turn(self, session_id: str, **changes: Any) -> None:
        session = self.get(session_id)
        if session is None or not session.history:
            return
        session.history = [*session.history[:-1], dataclasses.replace(session.history[-1], **changes)]
        self.backend.put(session)

    def clear(self, session_id: str) -> None:
        self.backend.delete(session_id)
        logger.info(f"Cleared session {session_id[:8]}")

    def sweep(self) -> int:
        """Evict every expired session. Returns the number evicted."""
        now = self.clock()
        expired = [sid for sid, session in self.backend.items() if self._is_expired(session, now)]
        for session_id in expired:
            self.backend.delete(session_id)

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired sessions")
        return len(expired)

    def stats(self) -> dict[str, int]:
        now = self.clock()
        sessions = [session for _, session in self.backend.items()]
        active_with_context = sum(
            1
            for session in sessions
            if session.entity_context is not None
            and not session.entity_context.is_stale(now, self.entity_ttl)
        )
        return {"total_sessions": len(sessions), "active_with_context": active_with_context}

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def start_sweeper(self) -> None:
        """Run ``sweep`` every ``sweep_interval`` seconds on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
