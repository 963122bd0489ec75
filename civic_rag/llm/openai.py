"""OpenAI LLM provider implementation.

Also serves OpenAI-compatible endpoints (xAI, Groq) through ``base_url``.
"""

import logging
from typing import Any

import openai
from pydantic import BaseModel

from civic_rag.errors import CollaboratorUnavailable
from civic_rag.llm.base import CompletionOptions, EmbeddingResult, LLMProvider, ResponseResult

logger = logging.getLogger(__name__)

XAI_BASE_URL = "https://api.x.ai/v1"
GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class OpenAIConfig(BaseModel):
    """Configuration for OpenAI provider."""

    api_key: str
    model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    base_url: str | None = None
    timeout: int = 30
    max_retries: int = 3


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider implementation."""

    name = "openai"

    def __init__(self, config: OpenAIConfig | None = None, **kwargs: Any) -> None:
        """Initialize OpenAI provider.

        Args:
            config: OpenAI configuration
            **kwargs: Additional configuration options
        """
        self.config = config or OpenAIConfig(**kwargs)
        self.client = openai.AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
        )

    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        options: CompletionOptions | None = None,
    ) -> ResponseResult:
        """Run a chat completion, using ``response_format`` for JSON mode."""
        options = options or CompletionOptions()
        request: dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if options.json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            logger.error(f"OpenAI completion request failed: {e}")
            raise CollaboratorUnavailable(self.name, str(e)) from e

        choice = response.choices[0]
        return ResponseResult(
            content=choice.message.content or "",
            model=self.config.model,
            token_count=response.usage.total_tokens if response.usage else None,
            finish_reason=choice.finish_reason,
        )

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding using OpenAI's embedding model."""
        try:
            response = await self.client.embeddings.create(
                model=self.config.embedding_model,
                input=text,
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI embedding request failed: {e}")
            raise CollaboratorUnavailable(self.name, str(e)) from e

        return EmbeddingResult(
            embedding=response.data[0].embedding,
            model=self.config.embedding_model,
            token_count=response.usage.total_tokens,
        )

    async def health_check(self) -> bool:
        """Check if the endpoint is accessible by listing models."""
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning(f"{self.name} health check failed: {e}")
            return False


class XAIProvider(OpenAIProvider):
    """xAI Grok through its OpenAI-compatible API."""

    name = "xai"

    def __init__(self, config: OpenAIConfig | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", XAI_BASE_URL)
        kwargs.setdefault("model", "grok-2-latest")
        super().__init__(config, **kwargs)


class GroqProvider(OpenAIProvider):
    """Groq-hosted Llama models through the OpenAI-compatible API."""

    name = "groq"

    def __init__(self, config: OpenAIConfig | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", GROQ_BASE_URL)
        kwargs.setdefault("model", "llama-3.1-8b-instant")
        super().__init__(config, **kwargs)
