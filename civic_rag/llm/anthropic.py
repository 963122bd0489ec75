"""Anthropic Claude LLM provider implementation."""

import logging
from typing import Any

import anthropic
from pydantic import BaseModel

from civic_rag.errors import CollaboratorUnavailable
from civic_rag.llm.base import (
    JSON_ONLY_SUFFIX,
    CompletionOptions,
    EmbeddingResult,
    LLMProvider,
    ResponseResult,
)

logger = logging.getLogger(__name__)


class AnthropicConfig(BaseModel):
    """Configuration for Anthropic provider."""

    api_key: str
    model: str = "claude-3-5-haiku-20241022"
    timeout: int = 30


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM provider implementation."""

    name = "anthropic"

    def __init__(self, config: AnthropicConfig | None = None, **kwargs: Any) -> None:
        """Initialize Anthropic provider.

        Args:
            config: Anthropic configuration
            **kwargs: Additional configuration options
        """
        self.config = config or AnthropicConfig(**kwargs)
        self.client = anthropic.AsyncAnthropic(
            api_key=self.config.api_key,
            timeout=self.config.timeout,
        )

    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        options: CompletionOptions | None = None,
    ) -> ResponseResult:
        """Run a Messages API call.

        The API has no JSON response format, so JSON mode is requested in the
        system prompt.
        """
        options = options or CompletionOptions()
        if options.json_mode:
            system_prompt += JSON_ONLY_SUFFIX

        try:
            response = await self.client.messages.create(
                model=self.config.model,
                max_tokens=options.max_tokens,
                temperature=options.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_content}],
            )
        except anthropic.AnthropicError as e:
            logger.error(f"Anthropic completion request failed: {e}")
            raise CollaboratorUnavailable(self.name, str(e)) from e

        # Anthropic returns content as a list of blocks
        content = ""
        for block in response.content:
            if block.type == "text":
                content += block.text

        return ResponseResult(
            content=content,
            model=self.config.model,
            token_count=response.usage.output_tokens + response.usage.input_tokens,
            finish_reason=response.stop_reason,
        )

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Anthropic doesn't provide embeddings.

        Raises:
            NotImplementedError: Always; use another provider for embeddings
        """
        raise NotImplementedError(
            "Anthropic doesn't provide embeddings. Configure OpenAI or Ollama for the vector store."
        )

    async def health_check(self) -> bool:
        """Check if Anthropic service is accessible."""
        try:
            await self.client.messages.create(
                model=self.config.model,
                max_tokens=10,
                messages=[{"role": "user", "content": "Hi"}],
            )
            return True
        except Exception as e:
            logger.warning(f"Anthropic health check failed: {e}")
            return False
