"""Factory for creating LLM providers from configuration."""

from civic_rag.config import LLMProvider as LLMProviderEnum
from civic_rag.config import get_settings
from civic_rag.llm.base import LLMProvider, LLMProviderFactory


def create_llm_provider(provider_name: str | None = None) -> LLMProvider:
    """Create LLM provider from configuration.

    Args:
        provider_name: Override provider name, defaults to settings.llm_provider

    Returns:
        Configured LLM provider instance

    Raises:
        ValueError: If provider configuration is invalid
    """
    settings = get_settings()
    provider_name = provider_name or settings.llm_provider

    # Build provider-specific config
    if provider_name == LLMProviderEnum.OLLAMA:
        from civic_rag.llm.ollama import OllamaConfig

        config = OllamaConfig(
            host=settings.ollama_host,
            model=settings.ollama_model,
            embedding_model=settings.ollama_embedding_model,
        )
        return LLMProviderFactory.create("ollama", config=config)

    elif provider_name == LLMProviderEnum.OPENAI:
        from civic_rag.llm.openai import OpenAIConfig

        if not settings.openai_api_key:
            raise ValueError("OpenAI API key is required")

        config = OpenAIConfig(api_key=settings.openai_api_key, model=settings.openai_model)
        return LLMProviderFactory.create("openai", config=config)

    elif provider_name == LLMProviderEnum.XAI:
        from civic_rag.llm.openai import XAI_BASE_URL, OpenAIConfig

        if not settings.xai_api_key:
            raise ValueError("xAI API key is required")

        config = OpenAIConfig(
            api_key=settings.xai_api_key,
            model=settings.xai_model,
            base_url=XAI_BASE_URL,
        )
        return LLMProviderFactory.create("xai", config=config)

    elif provider_name == LLMProviderEnum.GROQ:
        from civic_rag.llm.openai import GROQ_BASE_URL, OpenAIConfig

        if not settings.groq_api_key:
            raise ValueError("Groq API key is required")

        config = OpenAIConfig(
            api_key=settings.groq_api_key,
            model=settings.groq_model,
            base_url=GROQ_BASE_URL,
        )
        return LLMProviderFactory.create("groq", config=config)

    elif provider_name == LLMProviderEnum.GEMINI:
        from civic_rag.llm.gemini import GeminiConfig

        if not settings.gemini_api_key:
            raise ValueError("Gemini API key is required")

        config = GeminiConfig(api_key=settings.gemini_api_key, model=settings.gemini_model)
        return LLMProviderFactory.create("gemini", config=config)

    elif provider_name == LLMProviderEnum.ANTHROPIC:
        from civic_rag.llm.anthropic import AnthropicConfig

        if not settings.anthropic_api_key:
            raise ValueError("Anthropic API key is required")

        config = AnthropicConfig(api_key=settings.anthropic_api_key)
        return LLMProviderFactory.create("anthropic", config=config)

    else:
        raise ValueError(f"Unknown LLM provider: {provider_name}")


def create_generation_provider() -> LLMProvider:
    """Create the provider used for final answer generation.

    Falls back to the main provider when no generation provider is configured.
    """
    settings = get_settings()
    return create_llm_provider(settings.generation_llm_provider or settings.llm_provider)


def create_embedding_provider(provider_name: str | None = None) -> LLMProvider:
    """Create LLM provider specifically for embeddings.

    Anthropic, xAI and Groq don't serve embeddings, so those fall back to
    OpenAI when a key is configured, otherwise to Ollama.

    Args:
        provider_name: Override provider name, defaults to settings.llm_provider

    Returns:
        Configured LLM provider instance suitable for embeddings
    """
    settings = get_settings()
    provider_name = provider_name or settings.llm_provider

    if provider_name in (LLMProviderEnum.ANTHROPIC, LLMProviderEnum.XAI, LLMProviderEnum.GROQ):
        if settings.openai_api_key:
            return create_llm_provider(LLMProviderEnum.OPENAI)
        return create_llm_provider(LLMProviderEnum.OLLAMA)

    return create_llm_provider(provider_name)
