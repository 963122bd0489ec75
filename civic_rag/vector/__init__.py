"""Vector search collaborator module."""

from .store import ChromaVectorStore, SearchHit, VectorStore

__all__ = ["ChromaVectorStore", "SearchHit", "VectorStore"]
