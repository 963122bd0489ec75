"""Google Gemini LLM provider implementation."""

import logging
from typing import Any

import google.generativeai as genai
from pydantic import BaseModel

from civic_rag.errors import CollaboratorUnavailable
from civic_rag.llm.base import CompletionOptions, EmbeddingResult, LLMProvider, ResponseResult

logger = logging.getLogger(__name__)


class GeminiConfig(BaseModel):
    """Configuration for Gemini provider."""

    api_key: str
    model: str = "gemini-1.5-flash"
    embedding_model: str = "models/text-embedding-004"


class GeminiProvider(LLMProvider):
    """Google Gemini LLM provider implementation."""

    name = "gemini"

    def __init__(self, config: GeminiConfig | None = None, **kwargs: Any) -> None:
        """Initialize Gemini provider.

        Args:
            config: Gemini configuration
            **kwargs: Additional configuration options
        """
        self.config = config or GeminiConfig(**kwargs)
        genai.configure(api_key=self.config.api_key)

    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        options: CompletionOptions | None = None,
    ) -> ResponseResult:
        """Generate content with the system prompt as system instruction."""
        options = options or CompletionOptions()
        model = genai.GenerativeModel(self.config.model, system_instruction=system_prompt)
        generation_config = genai.types.GenerationConfig(
            max_output_tokens=options.max_tokens,
            temperature=options.temperature,
            response_mime_type="application/json" if options.json_mode else "text/plain",
        )

        try:
            response = await model.generate_content_async(
                user_content,
                generation_config=generation_config,
            )
            text = response.text
        except Exception as e:
            logger.error(f"Gemini completion request failed: {e}")
            raise CollaboratorUnavailable(self.name, str(e)) from e

        return ResponseResult(
            content=text,
            model=self.config.model,
            token_count=response.usage_metadata.total_token_count
            if response.usage_metadata
            else None,
            finish_reason=response.candidates[0].finish_reason.name
            if response.candidates
            else None,
        )

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding using Gemini's embedding model."""
        try:
            result = genai.embed_content(
                model=self.config.embedding_model,
                content=text,
                task_type="retrieval_query",
            )
        except Exception as e:
            logger.error(f"Gemini embedding request failed: {e}")
            raise CollaboratorUnavailable(self.name, str(e)) from e

        return EmbeddingResult(
            embedding=result["embedding"],
            model=self.config.embedding_model,
        )

    async def health_check(self) -> bool:
        """Check if Gemini service is accessible."""
        try:
            genai.embed_content(
                model=self.config.embedding_model,
                content="health check",
            )
            return True
        except Exception as e:
            logger.warning(f"Gemini health check failed: {e}")
            return False
