"""Conversation session state module."""

from .models import ConversationTurn, EntityContext, EntityType, SessionContext
from .store import InMemorySessionBackend, SessionBackend, SessionStore

__all__ = [
    "ConversationTurn",
    "EntityContext",
    "EntityType",
    "InMemorySessionBackend",
    "SessionBackend",
    "SessionContext",
    "SessionStore",
]
