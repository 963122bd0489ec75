"""Base LLM provider interface and factory pattern."""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class CompletionOptions(BaseModel):
    """Per-call generation options."""

    temperature: float = 0.7
    max_tokens: int = 1000
    json_mode: bool = False


class EmbeddingResult(BaseModel):
    """Result from embedding generation."""

    embedding: list[float]
    model: str
    token_count: int | None = None
    success: bool = True
    error: str | None = None


class ResponseResult(BaseModel):
    """Result from a completion call."""

    content: str
    model: str
    token_count: int | None = None
    finish_reason: str | None = None
    success: bool = True
    error: str | None = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name: str = "llm"

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        options: CompletionOptions | None = None,
    ) -> ResponseResult:
        """Run a chat completion.

        Args:
            system_prompt: Instructions for the model
            user_content: The user turn
            options: Temperature, token limit and strict-JSON mode

        Returns:
            ResponseResult with the generated text

        Raises:
            CollaboratorUnavailable: If the provider call fails
        """
        pass

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for the given text.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector and metadata
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is healthy and accessible.

        Returns:
            True if healthy, False otherwise
        """
        pass


JSON_ONLY_SUFFIX = "\n\nRespond with a single valid JSON object and nothing else."


class LLMProviderFactory:
    """Factory for creating LLM providers."""

    _providers: dict[str, type[LLMProvider]] = {}

    @classmethod
    def register(cls, name: str, provider_class: type[LLMProvider]) -> None:
        """Register a provider class.

        Args:
            name: Provider name (e.g., "ollama", "openai")
            provider_class: Provider class to register
        """
        cls._providers[name] = provider_class

    @classmethod
    def create(cls, name: str, **kwargs: Any) -> LLMProvider:
        """Create a provider instance.

        Args:
            name: Provider name
            **kwargs: Provider-specific configuration

        Returns:
            LLMProvider instance

        Raises:
            ValueError: If provider name is not registered
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(f"Unknown provider '{name}'. Available: {available}")

        return cls._providers[name](**kwargs)

    @classmethod
    def list_providers(cls) -> list[str]:
        """List all registered provider names."""
        return list(cls._providers.keys())
