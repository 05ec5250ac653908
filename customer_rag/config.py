"""Application configuration loaded from environment variables.

Uses pydantic-settings for validation and type-safe loading from .env.
Every field has a default so the service starts against a local Ollama
instance without any .env file.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_EMBEDDING_PROVIDERS = ("ollama", "openai")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Optional: ANTHROPIC_API_KEY (answer generation), OPENAI_API_KEY
    (only when EMBEDDING_PROVIDER=openai).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API keys
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None

    # Embedding provider
    embedding_provider: str = "ollama"
    embedding_model_name: str = "nomic-embed-text"
    ollama_base_url: str = "http://localhost:11434"
    embedding_timeout: float = 30.0
    embedding_batch_size: int = 5

    # LLM configuration
    llm_model_name: str = "claude-sonnet-4-20250514"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 2000

    # Retrieval configuration
    default_top_k: int = 3
    customer_id_prefix: str = "CUST"

    # Request throttle
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_callers: int = 1000

    # Storage
    customers_path: str = "./data/customers.json"
    vector_db_path: str = "./data/vector_db/customer_vectors.db"
    populate_on_startup: bool = True

    # Application metadata
    app_name: str = "Customer Retrieval Assistant"
    log_level: str = "INFO"

    @field_validator("anthropic_api_key", "openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Reject placeholder values copied from an example .env."""
        if v is not None and v.strip().startswith("your_"):
            raise ValueError("API key must be set to a valid value (not placeholder)")
        return v

    @field_validator("embedding_provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        provider = v.strip().lower()
        if provider not in SUPPORTED_EMBEDDING_PROVIDERS:
            raise ValueError(
                f"embedding_provider must be one of {', '.join(SUPPORTED_EMBEDDING_PROVIDERS)}"
            )
        return provider

    @field_validator("embedding_batch_size", "default_top_k", "rate_limit_max_requests")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be >= 1")
        return v


settings = Settings()
