"""Shared fixtures: in-process fakes for the LLM and vector store collaborators."""

import json

import pytest

from civic_rag.config import Settings
from civic_rag.errors import CollaboratorUnavailable
from civic_rag.llm.base import CompletionOptions, EmbeddingResult, LLMProvider, ResponseResult
from civic_rag.session import SessionStore
from civic_rag.vector.store import SearchHit, VectorStore


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedLLM(LLMProvider):
    """Returns queued replies in order and records every call.

    A queued exception is raised instead of returned; dicts are sent as JSON.
    Once the queue is empty ``default`` is returned.
    """

    name = "scripted"

    def __init__(self, *replies, default="Here is what I found."):
        self.replies = list(replies)
        self.default = default
        self.calls: list[tuple[str, str, CompletionOptions]] = []

    async def complete(self, system_prompt, user_content, options=None):
        self.calls.append((system_prompt, user_content, options or CompletionOptions()))
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return ResponseResult(content=reply, model="scripted")

    async def generate_embedding(self, text):
        return EmbeddingResult(embedding=[0.0], model="scripted")

    async def health_check(self):
        return True


class FakeVectorStore(VectorStore):
    """Serves canned hits per collection and records queries."""

    def __init__(self, hits=None, fail=False):
        self.hits = hits or {}
        self.fail = fail
        self.queries: list[tuple[str, str, int]] = []

    async def similarity_search(self, collection, query_text, limit=10):
        self.queries.append((collection, query_text, limit))
        if self.fail:
            raise CollaboratorUnavailable("chromadb", "connection refused")
        return list(self.hits.get(collection, []))[:limit]

    async def health_check(self):
        return not self.fail


def business_hit(name, address="4741 Lakelse Ave, Terrace, BC", score=0.8, **props):
    properties = {
        "business_name": name,
        "address": address,
        "phone": "250-555-0100",
        "description": f"{name} in Terrace",
        "category": "business_economy",
        **props,
    }
    return SearchHit(id=name, properties=properties, score=score)


def document_hit(title, content="", score=0.7, **props):
    properties = {"title": title, "content": content, "category": "bylaws", **props}
    return SearchHit(id=title, properties=properties, score=score)


UNAVAILABLE = CollaboratorUnavailable("scripted", "connection refused")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def sessions(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def fake_store():
    return FakeVectorStore


@pytest.fixture
def hits():
    """Builders for business and document search hits."""

    class Builders:
        business = staticmethod(business_hit)
        document = staticmethod(document_hit)

    return Builders


@pytest.fixture
def unavailable():
    return UNAVAILABLE
