"""Ollama LLM provider implementation."""

import logging
from typing import Any

import httpx
from pydantic import BaseModel

from civic_rag.errors import CollaboratorUnavailable
from civic_rag.llm.base import CompletionOptions, EmbeddingResult, LLMProvider, ResponseResult

logger = logging.getLogger(__name__)


class OllamaConfig(BaseModel):
    """Configuration for Ollama provider."""

    host: str = "http://localhost:11434"
    model: str = "llama3.2"
    embedding_model: str = "nomic-embed-text"
    timeout: int = 30
    generation_timeout: float = 180.0


class OllamaProvider(LLMProvider):
    """Ollama LLM provider implementation."""

    name = "ollama"

    def __init__(self, config: OllamaConfig | None = None, **kwargs: Any) -> None:
        """Initialize Ollama provider.

        Args:
            config: Ollama configuration
            **kwargs: Additional configuration options
        """
        self.config = config or OllamaConfig(**kwargs)
        self.client = httpx.AsyncClient(
            base_url=self.config.host,
            timeout=self.config.timeout,
        )

    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        options: CompletionOptions | None = None,
    ) -> ResponseResult:
        """Run a non-streaming ``/api/chat`` call.

        JSON mode maps to Ollama's ``format: "json"``.
        """
        options = options or CompletionOptions()
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        if options.json_mode:
            payload["format"] = "json"

        logger.debug(f"Sending chat request to Ollama with model: {self.config.model}")
        try:
            response = await self.client.post(
                "/api/chat",
                json=payload,
                timeout=self.config.generation_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Ollama request timed out after {self.config.generation_timeout}s: {e}")
            raise CollaboratorUnavailable(self.name, f"timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Ollama HTTP error {e.response.status_code}: {e.response.text}")
            raise CollaboratorUnavailable(self.name, str(e)) from e
        except httpx.RequestError as e:
            logger.error(f"Ollama request failed: {e} (host: {self.config.host})")
            raise CollaboratorUnavailable(self.name, str(e)) from e

        return ResponseResult(
            content=data.get("message", {}).get("content", ""),
            model=self.config.model,
            token_count=data.get("eval_count"),
            finish_reason=data.get("done_reason"),
        )

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding using Ollama's embedding model."""
        try:
            response = await self.client.post(
                "/api/embed",
                json={
                    "model": self.config.embedding_model,
                    "input": text,
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Ollama embedding HTTP error: {e}")
            raise CollaboratorUnavailable(self.name, str(e)) from e
        except httpx.RequestError as e:
            logger.error(f"Ollama embedding request failed: {e}")
            raise CollaboratorUnavailable(self.name, str(e)) from e

        # Ollama returns a list of embeddings, one per input
        embedding = data["embeddings"][0] if data.get("embeddings") else []

        return EmbeddingResult(
            embedding=embedding,
            model=self.config.embedding_model,
        )

    async def health_check(self) -> bool:
        """Check if Ollama service is healthy."""
        try:
            response = await self.client.get("/api/tags")
            return response.status_code == 200
        except Exception as e:
            logger.warning(f"Ollama health check failed: {e}")
            return False

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.client.aclose()
