"""
Configuration management for legal-graphrag.

Loads settings from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Value shipped in sample .env files; treated as "no key configured".
PLACEHOLDER_API_KEY = "your_anthropic_api_key_here"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        validation_alias=AliasChoices("environment", "node_env"),
    )
    debug: bool = False
    log_level: str = "INFO"
    organization: str = Field(default="GAIS", description="Organization owning uploads")

    # ==========================================================================
    # LLM API Keys
    # ==========================================================================
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")
    openai_api_key: str = Field(default="", description="Optional OpenAI key for fallback")

    # ==========================================================================
    # LLM Configuration
    # ==========================================================================
    model_name: str = "claude-sonnet-4-5-20250929"
    fallback_llm_model: str = "gpt-4o"
    llm_temperature: float = 0.0

    diagnosis_max_tokens: int = 8000
    diagnosis_timeout: float = 200.0
    generation_max_tokens: int = 4200
    generation_timeout: float = 90.0
    chat_max_tokens: int = 4000
    chat_timeout: float = 60.0

    # ==========================================================================
    # Search
    # ==========================================================================
    tavily_api_key: str = Field(default="", description="Tavily web search API key")
    tavily_url: str = "https://api.tavily.com/search"
    serpapi_key: str = Field(default="", description="SerpAPI key for auto-learn")
    serpapi_url: str = "https://serpapi.com/search"
    http_timeout: float = 20.0

    # Time budgets used by the diagnosis pipeline
    graph_search_budget: float = 40.0
    web_search_budget: float = 30.0

    # ==========================================================================
    # Neo4j
    # ==========================================================================
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = ""

    # ==========================================================================
    # Redis / Rate limiting
    # ==========================================================================
    redis_url: str = "redis://localhost:6379/0"
    rate_limit_backend: Literal["memory", "redis"] = "memory"
    rate_limit_sweep_interval: float = 60.0

    # ==========================================================================
    # Uploads
    # ==========================================================================
    max_upload_size_mb: int = Field(default=10, ge=1, description="Upload size limit")
    chunk_size: int = 1000

    # ==========================================================================
    # Document generation
    # ==========================================================================
    generation_batch_size: int = Field(default=2, ge=1)

    # ==========================================================================
    # API Configuration
    # ==========================================================================
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        """Accept NODE_ENV style values in any case."""
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def anthropic_configured(self) -> bool:
        """Whether a usable Anthropic key is present."""
        key = self.anthropic_api_key.strip()
        return bool(key) and key != PLACEHOLDER_API_KEY

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
