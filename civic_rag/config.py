"""Configuration management using pydantic-settings."""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    OLLAMA = "ollama"
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    XAI = "xai"
    GROQ = "groq"


class Environment(str, Enum):
    """Application environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


DEFAULT_AMBIGUOUS_SERVICE_TERMS = [
    "insurance",
    "credit",
    "financing",
    "delivery",
    "catering",
    "tax",
    "legal",
    "accounting",
    "rating",
    "reviews",
    "certified",
    "licensed",
    "warranty",
    "guarantee",
]

DEFAULT_COST_PATTERNS = [
    r"^(what'?s?|whats?) (the )?(price|cost|fee|rate|charge)",
    r"^how much",
    r"^(what|how) (much|expensive)",
    r"^(tell|give) me (the )?(price|cost|fee)",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM Provider Configuration
    llm_provider: LLMProvider = Field(
        default=LLMProvider.OLLAMA,
        description="LLM provider used for decomposition, filtering and embeddings",
    )
    generation_llm_provider: LLMProvider | None = Field(
        default=None,
        description="Optional separate provider for final answer generation",
    )

    # Ollama Configuration
    ollama_host: str = Field(
        default="http://localhost:11434",
        description="Ollama API host URL",
    )
    ollama_model: str = Field(
        default="llama3.2",
        description="Ollama model to use",
    )
    ollama_embedding_model: str = Field(
        default="nomic-embed-text",
        description="Ollama embedding model to use",
    )

    # OpenAI Configuration
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI chat model to use",
    )

    # xAI / Groq (OpenAI-compatible endpoints)
    xai_api_key: str | None = Field(default=None, description="xAI API key")
    xai_model: str = Field(default="grok-2-latest", description="xAI model to use")
    groq_api_key: str | None = Field(default=None, description="Groq API key")
    groq_model: str = Field(
        default="llama-3.1-8b-instant",
        description="Groq model to use",
    )

    # Google Gemini Configuration
    gemini_api_key: str | None = Field(
        default=None,
        description="Google Gemini API key",
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Google Gemini model to use",
    )

    # Anthropic Configuration
    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic API key",
    )

    # ChromaDB Configuration
    chroma_host: str = Field(
        default="localhost",
        description="ChromaDB host",
    )
    chroma_port: int = Field(
        default=8000,
        description="ChromaDB port",
    )
    business_collection: str = Field(
        default="businesses",
        description="Vector collection holding business records",
    )
    document_collection: str = Field(
        default="documents",
        description="Vector collection holding municipal documents",
    )

    # Session Configuration
    session_ttl_seconds: int = Field(
        default=30 * 60,
        description="Idle time after which a session is evicted",
    )
    entity_ttl_seconds: int = Field(
        default=5 * 60,
        description="Age after which a cached entity is stale",
    )
    session_sweep_interval_seconds: int = Field(
        default=10 * 60,
        description="Interval between expired-session sweeps",
    )
    max_history_turns: int = Field(
        default=5,
        description="Conversation turns kept per session",
    )

    # Retrieval / Context Configuration
    service_area: str = Field(
        default="terrace",
        description="Locality name used to boost local business addresses",
    )
    business_search_limit: int = Field(default=10, description="Business candidates per search")
    document_search_limit: int = Field(default=5, description="Documents per search")
    max_document_chars: int = Field(
        default=40_000,
        description="Documents longer than this are chunked for non-fee queries",
    )
    chunk_size: int = Field(default=2_000, description="Maximum characters per chunk")
    max_chunks: int = Field(default=3, description="Chunks kept per large document")
    max_sub_questions: int = Field(default=3, description="Multi-question fan-out cap")

    # Heuristic word lists
    ambiguous_service_terms: list[str] = Field(
        default_factory=lambda: list(DEFAULT_AMBIGUOUS_SERVICE_TERMS),
        description="Words that are both service attributes and business categories",
    )
    cost_query_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COST_PATTERNS),
        description="Regular expressions recognising cost questions",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    http_port: int = Field(default=3000, description="HTTP server port")

    @property
    def chroma_url(self) -> str:
        """Get the full ChromaDB URL."""
        return f"http://{self.chroma_host}:{self.chroma_port}"

    def validate_provider_config(self) -> None:
        """Validate that required API keys are set for the selected providers."""
        required_keys = {
            LLMProvider.OPENAI: ("openai_api_key", "OpenAI"),
            LLMProvider.GEMINI: ("gemini_api_key", "Gemini"),
            LLMProvider.ANTHROPIC: ("anthropic_api_key", "Anthropic"),
            LLMProvider.XAI: ("xai_api_key", "xAI"),
            LLMProvider.GROQ: ("groq_api_key", "Groq"),
        }
        for provider in (self.llm_provider, self.generation_llm_provider):
            if provider in required_keys:
                attribute, label = required_keys[provider]
                if not getattr(self, attribute):
                    raise ValueError(f"{label} API key is required when using {label} provider")


# Global settings instance - lazy loaded
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
