"""LLM providers module."""

from civic_rag.llm.anthropic import AnthropicConfig, AnthropicProvider
from civic_rag.llm.base import CompletionOptions, LLMProvider, LLMProviderFactory, ResponseResult
from civic_rag.llm.factory import (
    create_embedding_provider,
    create_generation_provider,
    create_llm_provider,
)
from civic_rag.llm.gemini import GeminiConfig, GeminiProvider
from civic_rag.llm.ollama import OllamaConfig, OllamaProvider
from civic_rag.llm.openai import GroqProvider, OpenAIConfig, OpenAIProvider, XAIProvider

# Register all providers
LLMProviderFactory.register("ollama", OllamaProvider)
LLMProviderFactory.register("openai", OpenAIProvider)
LLMProviderFactory.register("xai", XAIProvider)
LLMProviderFactory.register("groq", GroqProvider)
LLMProviderFactory.register("gemini", GeminiProvider)
LLMProviderFactory.register("anthropic", AnthropicProvider)

__all__ = [
    "AnthropicConfig",
    "AnthropicProvider",
    "CompletionOptions",
    "GeminiConfig",
    "GeminiProvider",
    "GroqProvider",
    "LLMProvider",
    "LLMProviderFactory",
    "OllamaConfig",
    "OllamaProvider",
    "OpenAIConfig",
    "OpenAIProvider",
    "ResponseResult",
    "XAIProvider",
    "create_embedding_provider",
    "create_generation_provider",
    "create_llm_provider",
]
