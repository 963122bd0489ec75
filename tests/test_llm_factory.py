"""Tests for LLM factory functions."""

from unittest.mock import patch

import pytest

from civic_rag.config import LLMProvider as LLMProviderEnum
from civic_rag.llm.factory import (
    create_embedding_provider,
    create_generation_provider,
    create_llm_provider,
)
from civic_rag.llm.ollama import OllamaProvider
from civic_rag.llm.openai import XAI_BASE_URL, OpenAIProvider, XAIProvider


def _configure(mock_settings, provider, generation_provider=None, openai_key="test-key"):
    mock_settings.llm_provider = provider
    mock_settings.generation_llm_provider = generation_provider
    mock_settings.openai_api_key = openai_key
    mock_settings.openai_model = "gpt-4o-mini"
    mock_settings.xai_api_key = "xai-key"
    mock_settings.xai_model = "grok-2-latest"
    mock_settings.ollama_host = "http://test:11434"
    mock_settings.ollama_model = "llama3.2"
    mock_settings.ollama_embedding_model = "nomic-embed-text"


class TestLLMFactory:
    """Test LLM factory functions."""

    @patch("civic_rag.llm.factory.get_settings")
    def test_create_ollama_provider(self, mock_get_settings):
        """Test creating Ollama provider."""
        _configure(mock_get_settings.return_value, LLMProviderEnum.OLLAMA)

        provider = create_llm_provider()
        assert isinstance(provider, OllamaProvider)
        assert provider.config.host == "http://test:11434"
        assert provider.config.model == "llama3.2"

    @patch("civic_rag.llm.factory.get_settings")
    def test_create_openai_provider(self, mock_get_settings):
        """Test creating OpenAI provider."""
        _configure(mock_get_settings.return_value, LLMProviderEnum.OPENAI)

        provider = create_llm_provider()
        assert isinstance(provider, OpenAIProvider)
        assert provider.config.api_key == "test-key"

    @patch("civic_rag.llm.factory.get_settings")
    def test_create_openai_provider_missing_key(self, mock_get_settings):
        """Test creating OpenAI provider without API key."""
        _configure(mock_get_settings.return_value, LLMProviderEnum.OPENAI, openai_key=None)

        with pytest.raises(ValueError, match="OpenAI API key is required"):
            create_llm_provider()

    @patch("civic_rag.llm.factory.get_settings")
    def test_create_xai_provider(self, mock_get_settings):
        """Test creating xAI provider on the compatible endpoint."""
        _configure(mock_get_settings.return_value, LLMProviderEnum.XAI)

        provider = create_llm_provider()
        assert isinstance(provider, XAIProvider)
        assert provider.config.base_url == XAI_BASE_URL

    @patch("civic_rag.llm.factory.get_settings")
    def test_generation_provider_defaults_to_main_provider(self, mock_get_settings):
        """Test that answer generation reuses the main provider when unset."""
        _configure(mock_get_settings.return_value, LLMProviderEnum.OLLAMA)

        provider = create_generation_provider()
        assert isinstance(provider, OllamaProvider)

    @patch("civic_rag.llm.factory.get_settings")
    def test_generation_provider_override(self, mock_get_settings):
        """Test a separate provider for answer generation."""
        _configure(
            mock_get_settings.return_value,
            LLMProviderEnum.OLLAMA,
            generation_provider=LLMProviderEnum.OPENAI,
        )

        provider = create_generation_provider()
        assert isinstance(provider, OpenAIProvider)

    @patch("civic_rag.llm.factory.get_settings")
    def test_create_embedding_provider_anthropic_fallback(self, mock_get_settings):
        """Test embedding provider fallback for Anthropic."""
        _configure(mock_get_settings.return_value, LLMProviderEnum.ANTHROPIC)

        provider = create_embedding_provider()
        assert isinstance(provider, OpenAIProvider)

    @patch("civic_rag.llm.factory.get_settings")
    def test_create_embedding_provider_anthropic_fallback_ollama(self, mock_get_settings):
        """Test embedding provider fallback to Ollama for Anthropic."""
        _configure(mock_get_settings.return_value, LLMProviderEnum.ANTHROPIC, openai_key=None)

        provider = create_embedding_provider()
        assert isinstance(provider, OllamaProvider)
