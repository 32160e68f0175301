"""Application configuration using Pydantic settings."""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SecuritySettings(BaseModel):
    oidc_issuer_url: str | None = None
    oidc_audience: str | None = None
    anonymous_subject: str = "local-user"


class GoogleProviderSettings(BaseModel):
    api_key: str = Field(default="", description="Gemini API key")
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = "gemini-2.0-flash"
    thinking_model: str = "gemini-2.0-flash-thinking-exp-01-21"
    thinking_budget: int = Field(default=32_768, ge=0)


class OpenRouterSettings(BaseModel):
    api_key: str = Field(default="", description="OpenRouter API key, enables failover when set")
    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "anthropic/claude-3.5-sonnet"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = 4_000


class GenerationTuning(BaseModel):
    provider: Literal["google", "openrouter"] = "google"
    max_retries: int = Field(default=3, ge=0)
    backoff_base_ms: int = Field(default=2_000, ge=0)
    settle_delay_ms: int = Field(default=3_000, ge=0)
    progress_interval_ms: int = Field(default=800, ge=0)
    initial_categories: int = Field(default=2, ge=0, le=9)
    offline_fallback: bool = True
    stream: bool = False
    request_timeout_s: float = 120.0
    profile_overrides: dict[str, Literal["standard", "grounded", "deep_reasoning"]] = Field(default_factory=dict)

    @field_validator("profile_overrides")
    @classmethod
    def _known_kinds(cls, value: dict[str, str]) -> dict[str, str]:
        from .domain.types import DocumentKind  # local import to avoid circular dependency

        known = {kind.value for kind in DocumentKind}
        unknown = sorted(set(value) - known)
        if unknown:
            raise ValueError(f"Unknown document kinds in profile_overrides: {unknown}")
        return value


class ObservabilitySettings(BaseModel):
    otel_service_name: str = "blueprint-docgen"
    otel_exporter_otlp_endpoint: str | None = None
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"


class StorageSettings(BaseModel):
    backend: Literal["memory", "database"] = "database"
    database_url: str = Field(
        default="sqlite+aiosqlite:///./blueprint.db",
        description="SQLAlchemy async database URL",
    )


class BlueprintSettings(BaseSettings):
    security: SecuritySettings = SecuritySettings()
    google: GoogleProviderSettings = GoogleProviderSettings()
    openrouter: OpenRouterSettings = OpenRouterSettings()
    generation: GenerationTuning = GenerationTuning()
    observability: ObservabilitySettings = ObservabilitySettings()
    storage: StorageSettings = StorageSettings()
    environment: Literal["dev", "qa", "prod"] | str = "dev"

    model_config = SettingsConfigDict(env_nested_delimiter="__", env_prefix="BLUEPRINT_", case_sensitive=False)


@lru_cache(maxsize=1)
def get_settings(**kwargs: Any) -> BlueprintSettings:
    """Return cached settings instance."""
    return BlueprintSettings(**kwargs)


__all__ = [
    "BlueprintSettings",
    "GenerationTuning",
    "GoogleProviderSettings",
    "OpenRouterSettings",
    "get_settings",
]
