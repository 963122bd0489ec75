"""Vector search collaborator backed by ChromaDB."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import chromadb
from chromadb import QueryResult
from chromadb.config import Settings as ChromaSettings

from civic_rag.config import get_settings
from civic_rag.errors import CollaboratorUnavailable
from civic_rag.llm.base import LLMProvider

logger = logging.getLogger(__name__)


@dataclass
class SearchHit:
    """A single similarity-search result with schema-free properties."""

    id: str
    properties: dict[str, Any] = field(default_factory=dict)
    score: float = 0.0


class VectorStore(ABC):
    """Abstract similarity-search interface."""

    @abstractmethod
    async def similarity_search(
        self,
        collection: str,
        query_text: str,
        limit: int = 10,
    ) -> list[SearchHit]:
        """Return hits for ``query_text`` in descending score order.

        Raises:
            CollaboratorUnavailable: If the store cannot be queried
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        pass


class ChromaVectorStore(VectorStore):
    """ChromaDB implementation of the vector search collaborator.

    Query text is embedded with the configured embedding provider; document
    text is exposed under the ``content`` property next to the stored
    metadata.
    """

    def __init__(
        self,
        embedding_provider: LLMProvider,
        host: str | None = None,
        port: int | None = None,
    ):
        """Initialize ChromaDB client.

        Args:
            embedding_provider: Provider used to embed query text
            host: ChromaDB host (optional, uses config if not provided)
            port: ChromaDB port (optional, uses config if not provided)
        """
        if host is None or port is None:
            settings = get_settings()
            host = host or settings.chroma_host
            port = port or settings.chroma_port

        self.embedding_provider = embedding_provider
        self.chroma_url = f"http://{host}:{port}"

        try:
            self.client = chromadb.HttpClient(
                host=host,
                port=port,
                settings=ChromaSettings(anonymized_telemetry=False),
            )
            logger.info(f"Connected to ChromaDB at {self.chroma_url}")
        except Exception as e:
            logger.error(f"Failed to connect to ChromaDB at {self.chroma_url}: {e}")
            raise CollaboratorUnavailable("chromadb", str(e)) from e

    async def similarity_search(
        self,
        collection: str,
        query_text: str,
        limit: int = 10,
    ) -> list[SearchHit]:
        """Search ``collection`` for records similar to ``query_text``."""
        embedding = await self.embedding_provider.generate_embedding(query_text)
        if not embedding.success or not embedding.embedding:
            raise CollaboratorUnavailable("embeddings", embedding.error or "empty embedding")

        try:
            chroma_collection = self.client.get_collection(name=collection)
            results: QueryResult = chroma_collection.query(
                query_embeddings=[embedding.embedding],
                n_results=limit,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            logger.error(f"Failed to search collection {collection}: {e}")
            raise CollaboratorUnavailable("chromadb", str(e)) from e

        hits = []
        if results["ids"] and len(results["ids"]) > 0:
            for i, hit_id in enumerate(results["ids"][0]):
                properties = dict(results["metadatas"][0][i] or {}) if results["metadatas"] else {}
                if results["documents"]:
                    properties.setdefault("content", results["documents"][0][i] or "")
                distance = results["distances"][0][i] if results["distances"] else 0.0
                hits.append(
                    SearchHit(
                        id=hit_id,
                        properties=properties,
                        score=max(0.0, min(1.0, 1.0 - distance)),
                    )
                )

        logger.info(f"Found {len(hits)} results for query in {collection}")
        return hits

    async def health_check(self) -> bool:
        """Check if ChromaDB is healthy and accessible."""
        try:
            self.client.heartbeat()
            return True
        except Exception as e:
            logger.warning(f"ChromaDB health check failed: {e}")
            return False

    def list_collections(self) -> list[str]:
        """List all collections in ChromaDB."""
        try:
            collections = self.client.list_collections()
            return [c if isinstance(c, str) else c.name for c in collections]
        except Exception as e:
            logger.error(f"Failed to list collections: {e}")
            return []
