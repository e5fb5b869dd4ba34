# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the memory
subsystem. Settings are loaded from environment variables with sensible
defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from tutor_memory.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.memory.filter_batch_size)
    5
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL configuration for memory records.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        create_schema: Whether to create missing tables at startup.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "tutor"
    password: SecretStr = SecretStr("tutor_memory_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "tutor_memory"
    pool_size: int = 10
    max_overflow: int = 20
    create_schema: bool = True

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration.

    Attributes:
        host: Qdrant server host.
        http_port: HTTP API port.
        grpc_port: gRPC API port.
        api_key: Optional API key for authentication.
        prefer_grpc: Whether to prefer gRPC over HTTP.
        timeout: Request timeout in seconds.
        collection: Collection holding memory embeddings.
    """

    model_config = SettingsConfigDict(
        env_prefix="QDRANT_",
        extra="ignore",
    )

    host: str = "localhost"
    http_port: int = 6333
    grpc_port: int = 6334
    api_key: SecretStr | None = None
    prefer_grpc: bool = False
    timeout: float = 10.0
    collection: str = "memory_records"

    @property
    def url(self) -> str:
        """Build the Qdrant HTTP URL."""
        return f"http://{self.host}:{self.http_port}"


class LLMSettings(BaseSettings):
    """Evaluator model configuration using LiteLLM.

    Supports multiple providers: ollama, openai, anthropic, google.
    LiteLLM handles provider routing based on model prefix.

    Attributes:
        default_provider: Default LLM provider to use.
        ollama_base_url: Base URL for Ollama server.
        ollama_default_model: Default Ollama model.
        openai_api_key: OpenAI API key.
        openai_default_model: Default OpenAI model.
        anthropic_api_key: Anthropic API key.
        anthropic_default_model: Default Anthropic model.
        google_api_key: Google AI API key.
        google_default_model: Default Google model.
        request_timeout: Request timeout in seconds.
        max_retries: Maximum retry attempts.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    default_provider: Literal["ollama", "openai", "anthropic", "google"] = "anthropic"

    ollama_base_url: str = Field(
        default="http://localhost:11434",
        validation_alias="OLLAMA_BASE_URL",
    )
    ollama_default_model: str = Field(
        default="qwen2.5:7b",
        validation_alias="OLLAMA_DEFAULT_MODEL",
    )

    openai_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="OPENAI_API_KEY",
    )
    openai_default_model: str = Field(
        default="gpt-4o-mini",
        validation_alias="OPENAI_DEFAULT_MODEL",
    )

    anthropic_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="ANTHROPIC_API_KEY",
    )
    anthropic_default_model: str = Field(
        default="claude-3-5-haiku-20241022",
        validation_alias="ANTHROPIC_DEFAULT_MODEL",
    )

    google_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="GOOGLE_API_KEY",
    )
    google_default_model: str = Field(
        default="gemini-2.0-flash",
        validation_alias="GOOGLE_DEFAULT_MODEL",
    )

    request_timeout: float = 20.0
    max_retries: int = 1

    def get_default_model(self) -> str:
        """Get the default model for the configured provider.

        Returns:
            Model identifier string for the default provider.
        """
        models = {
            "ollama": f"ollama/{self.ollama_default_model}",
            "openai": self.openai_default_model,
            "anthropic": self.anthropic_default_model,
            "google": f"gemini/{self.google_default_model}",
        }
        return models[self.default_provider]

    def get_provider_params(self) -> dict[str, str]:
        """Get api_base / api_key parameters for the default provider.

        Returns:
            Dictionary passed straight to LiteLLM calls.
        """
        params: dict[str, str] = {}
        if self.default_provider == "ollama":
            params["api_base"] = self.ollama_base_url
            return params

        keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }
        key = keys[self.default_provider]
        if key is not None:
            params["api_key"] = key.get_secret_value()
        return params


class EmbeddingSettings(BaseSettings):
    """Embedding model configuration.

    Uses LiteLLM for API-based embedding generation.

    Attributes:
        model: Model name in LiteLLM format (e.g., 'text-embedding-3-small').
        dimension: Vector dimension (must match model output).
        batch_size: Batch size for embedding generation.
        api_base: Optional provider base URL.
        api_key: Optional provider API key.
        timeout: Per-call timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="EMBEDDING_",
        extra="ignore",
    )

    model: str = "text-embedding-3-small"
    dimension: int = 1536
    batch_size: int = 32
    api_base: str | None = None
    api_key: SecretStr | None = None
    timeout: float = 10.0


class MemorySettings(BaseSettings):
    """Memory lifecycle policy.

    Strength weights and the decay curve are policy, not protocol. They are
    exposed here so deployments can tune them without code changes.

    Attributes:
        filter_batch_size: Concurrent evaluations per filter batch.
        dedup_sample_size: Existing memories shown to the evaluator.
        evaluator_timeout: Timeout for a single filter evaluation.
        default_limit: Default number of memories returned per retrieval.
        candidate_pool_factor: Over-fetch factor for non-semantic ranking.
        weight_citations: Weight of normalized citation frequency.
        weight_arousal: Weight of combined emotional arousal.
        weight_importance: Weight of evaluator-assigned importance.
        unused_penalty: Strength removed per unused retrieval.
        citation_saturation: Citation count that maps to full citation score.
        biometric_arousal_weight: Share of biometric arousal when both are known.
        decay_floor: Importance floor that decay approaches.
        decay_stability_days: Base stability of the forgetting curve in days.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEMORY_",
        extra="ignore",
    )

    filter_batch_size: int = Field(default=5, ge=1)
    dedup_sample_size: int = Field(default=10, ge=0)
    evaluator_timeout: float = 15.0
    default_limit: int = 10
    candidate_pool_factor: int = Field(default=3, ge=1)

    weight_citations: float = 0.4
    weight_arousal: float = 0.3
    weight_importance: float = 0.3
    unused_penalty: float = 0.02
    citation_saturation: int = Field(default=10, ge=1)
    biometric_arousal_weight: float = Field(default=0.7, ge=0.5, le=1.0)

    decay_floor: float = Field(default=0.05, ge=0.0, le=1.0)
    decay_stability_days: float = Field(default=30.0, gt=0.0)


class CrossAppSettings(BaseSettings):
    """Cross-application memory sharing configuration.

    Attributes:
        secret: Shared secret expected in the X-Cross-App-Secret header.
            When unset, cross-app requests are refused with a server error.
        peer_url: Base URL of the cooperating application.
        peer_timeout: Timeout for calls to the cooperating application.
        max_limit: Upper bound for requested result counts.
        min_limit: Lower bound for requested result counts.
        max_query_length: Maximum accepted query length in characters.
    """

    model_config = SettingsConfigDict(
        env_prefix="CROSS_APP_",
        extra="ignore",
    )

    secret: SecretStr | None = None
    peer_url: str | None = None
    peer_timeout: float = 5.0
    max_limit: int = 100
    min_limit: int = 1
    max_query_length: int = 2000


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        reload: Whether to enable auto-reload.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 34000
    workers: int = 2
    reload: bool = False


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        db: Database settings.
        qdrant: Qdrant settings.
        llm: Evaluator model settings.
        embedding: Embedding model settings.
        memory: Memory lifecycle policy.
        cross_app: Cross-application sharing settings.
        api: API server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    cross_app: CrossAppSettings = Field(default_factory=CrossAppSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production without a cross-app secret.
        """
        if self.environment == "production":
            secret = self.cross_app.secret
            if secret is None or not secret.get_secret_value():
                raise ValueError(
                    "Cross-app secret must be provisioned in production. "
                    "Set CROSS_APP_SECRET environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
