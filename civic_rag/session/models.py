"""Session and conversation state models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EntityType(str, Enum):
    """Kinds of entity a turn can resolve to."""

    BUSINESS = "business"
    DOCUMENT = "document"
    TOPIC = "topic"


@dataclass(frozen=True)
class ConversationTurn:
    """One answered query. Immutable once appended to a session."""

    query: str
    response: str
    retrieved_entity_names: tuple[str, ...] = ()
    ai_asked_question: bool = False
    pending_clarification_topic: str | None = None
    timestamp: float = 0.0
    resolved_entity_type: EntityType | None = None


@dataclass
class EntityContext:
    """The most recently resolved business, document or topic."""

    entity_type: EntityType
    entity_name: str
    entity_payload: Any
    timestamp: float
    originating_intent: str | None = None

    def is_stale(self, now: float, max_age_seconds: float) -> bool:
        """A context exactly ``max_age_seconds`` old is already stale."""
        return now - self.timestamp >= max_age_seconds


@dataclass
class SessionContext:
    """Per-conversation state."""

    id: str
    created_at: float
    last_accessed_at: float
    entity_context: EntityContext | None = None
    history: list[ConversationTurn] = field(default_factory=list)

    @property
    def last_turn(self) -> ConversationTurn | None:
        return self.history[-1] if self.history else None
