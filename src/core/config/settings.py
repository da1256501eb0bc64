# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the
worksheet lifecycle engine. Settings are loaded from environment
variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.generation.max_attempts)
    3
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL configuration for the worksheet content store.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "worksheets"
    password: SecretStr = SecretStr("worksheets_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "worksheets"
    pool_size: int = 10
    max_overflow: int = 20

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def sync_url(self) -> str:
        """Build the sync database URL for migrations."""
        pwd = self.password.get_secret_value()
        return f"postgresql://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for message brokering and rate limiting.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr | None = None
    database: int = 0

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        if self.password is not None and self.password.get_secret_value():
            pwd = self.password.get_secret_value()
            return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"
        return f"redis://{self.host}:{self.port}/{self.database}"


class LLMSettings(BaseSettings):
    """LLM provider configuration using LiteLLM.

    The worksheet content generator talks to whichever provider is
    configured here. LiteLLM handles provider routing based on model prefix.

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
        max_retries: Maximum retry attempts inside LiteLLM.
        max_tokens: Token ceiling for a worksheet document.
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
        default="gpt-4o",
        validation_alias="OPENAI_DEFAULT_MODEL",
    )

    anthropic_api_key: SecretStr | None = Field(
        default=None,
        validation_alias="ANTHROPIC_API_KEY",
    )
    anthropic_default_model: str = Field(
        default="claude-3-5-sonnet-20241022",
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

    request_timeout: float = 90.0
    max_retries: int = 1
    max_tokens: int = 8192

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
        """Get api_base/api_key parameters for the configured provider.

        Returns:
            Keyword arguments to pass to LiteLLM's acompletion().
        """
        if self.default_provider == "ollama":
            return {"api_base": self.ollama_base_url}

        keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }
        key = keys[self.default_provider]
        if key is None:
            return {}
        return {"api_key": key.get_secret_value()}


class ImageGenerationSettings(BaseSettings):
    """Worksheet illustration service configuration.

    Attributes:
        api_url: Base URL of the image generation API.
        api_key: API key sent in the x-goog-api-key header.
        model: Image generation model to use.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="IMAGE_GEN_",
        extra="ignore",
    )

    api_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    api_key: SecretStr | None = None
    model: str = "gemini-2.5-flash-image"
    timeout: int = 60


class PdfRendererSettings(BaseSettings):
    """PDF rendering service configuration.

    Attributes:
        url: Base URL of the rendering service.
        api_key: Optional bearer token for the rendering service.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="PDF_RENDERER_",
        extra="ignore",
    )

    url: str = "http://localhost:3100"
    api_key: SecretStr | None = None
    timeout: int = 120


class MediaStorageSettings(BaseSettings):
    """Media storage service used for generated worksheet images.

    Attributes:
        url: Base URL of the media storage service.
        api_key: API key sent in the X-API-Key header.
        bucket: Storage bucket for worksheet images.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEDIA_STORAGE_",
        extra="ignore",
    )

    url: str = "http://localhost:3200"
    api_key: SecretStr | None = None
    bucket: str = "worksheet-images"
    timeout: int = 30


class GenerationSettings(BaseSettings):
    """Asynchronous worksheet generation configuration.

    Attributes:
        max_attempts: Content generation attempts before the worksheet fails.
        attempt_timeout_seconds: Upper bound for a single content attempt.
        retry_backoff_seconds: Base delay between attempts (multiplied by attempt).
        timeout_seconds: Age after which a worksheet stuck in generating is failed.
        sweep_interval_minutes: How often the stale generation sweep runs.
        poll_interval_seconds: Poll hint returned to clients while generating.
        max_images_activity: Image cap for activity worksheets.
        max_images_default: Image cap for every other worksheet type.
        image_timeout_seconds: Upper bound for one image request.
    """

    model_config = SettingsConfigDict(
        env_prefix="GENERATION_",
        extra="ignore",
    )

    max_attempts: int = 3
    attempt_timeout_seconds: float = 120.0
    retry_backoff_seconds: float = 2.0
    timeout_seconds: int = 900
    sweep_interval_minutes: int = 5
    poll_interval_seconds: int = 3
    max_images_activity: int = 5
    max_images_default: int = 8
    image_timeout_seconds: float = 90.0


class AnalyticsSettings(BaseSettings):
    """Analytics and recommendation configuration.

    Attributes:
        min_sample_size: Sample size under which effectiveness is low confidence.
        weak_domain_threshold: Screening score under which a domain counts as weak.
        recent_completion_window: Completions considered for difficulty suggestion.
        recommendation_candidates: Candidate pool size for recommendations.
    """

    model_config = SettingsConfigDict(
        env_prefix="ANALYTICS_",
        extra="ignore",
    )

    min_sample_size: int = 5
    weak_domain_threshold: float = 40.0
    recent_completion_window: int = 10
    recommendation_candidates: int = 50


class JWTSettings(BaseSettings):
    """JWT authentication configuration.

    Tokens are issued by the identity service; this service validates them.

    Attributes:
        secret_key: Secret key for verifying tokens.
        algorithm: JWT signing algorithm.
        access_token_expire_minutes: Access token expiration time.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr("change-this-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(
        default=30,
        validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration.

    Attributes:
        requests_per_minute: Maximum requests per minute per client.
        generation_per_minute: Maximum generation requests per minute per client.
        storage_uri: Optional limiter storage; falls back to Redis.
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore",
    )

    requests_per_minute: int = 120
    generation_per_minute: int = 10
    storage_uri: str | None = None


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class WorkerSettings(BaseSettings):
    """Background worker configuration.

    Attributes:
        processes: Number of worker processes.
        threads: Number of threads per process.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        extra="ignore",
    )

    processes: int = 2
    threads: int = 4


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Content store settings.
        redis: Redis settings.
        llm: LLM provider settings.
        image_generation: Illustration service settings.
        pdf_renderer: PDF rendering service settings.
        media_storage: Generated image storage settings.
        generation: Generation coordinator settings.
        analytics: Analytics and recommendation settings.
        jwt: JWT authentication settings.
        rate_limit: Rate limiting settings.
        cors: CORS settings.
        worker: Background worker settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "test", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    image_generation: ImageGenerationSettings = Field(default_factory=ImageGenerationSettings)
    pdf_renderer: PdfRendererSettings = Field(default_factory=PdfRendererSettings)
    media_storage: MediaStorageSettings = Field(default_factory=MediaStorageSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            default_jwt_secret = "change-this-in-production"
            if self.jwt.secret_key.get_secret_value() == default_jwt_secret:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
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
