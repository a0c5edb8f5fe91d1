from __future__ import annotations

import os

from pydantic import BaseModel, Field

from .providers import ProviderDescriptor

GROQ_CHAT_ENDPOINT = "https://api.groq.com/openai/v1/chat/completions"
OPENROUTER_CHAT_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"

DEFAULT_FALLBACK_MODELS = (
    "meta-llama/llama-3.3-70b-instruct:free",
    "google/gemma-2-9b-it:free",
    "mistralai/mistral-7b-instruct:free",
    "microsoft/wizardlm-2-8x22b",
)


def _parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class ArogyaConfig(BaseModel):
    # Primary provider (single shot)
    primary_name: str = Field(default_factory=lambda: os.getenv("PRIMARY_PROVIDER_NAME", "groq"))
    primary_api_key: str | None = Field(default_factory=lambda: os.getenv("GROQ_API_KEY"))
    primary_endpoint: str = Field(default_factory=lambda: os.getenv("PRIMARY_ENDPOINT", GROQ_CHAT_ENDPOINT))
    primary_model: str = Field(default_factory=lambda: os.getenv("PRIMARY_MODEL", "llama-3.1-8b-instant"))
    primary_request_shape: str = Field(
        default_factory=lambda: os.getenv("PRIMARY_REQUEST_SHAPE", "openai-chat")
    )
    primary_auth_scheme: str = Field(default_factory=lambda: os.getenv("PRIMARY_AUTH_SCHEME", "bearer"))

    # Fallback provider (ordered model list, retried per model)
    fallback_name: str = Field(default_factory=lambda: os.getenv("FALLBACK_PROVIDER_NAME", "openrouter"))
    fallback_api_key: str | None = Field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY"))
    fallback_endpoint: str = Field(
        default_factory=lambda: os.getenv("FALLBACK_ENDPOINT", OPENROUTER_CHAT_ENDPOINT)
    )
    fallback_models: list[str] = Field(
        default_factory=lambda: _parse_csv(os.getenv("FALLBACK_MODELS")) or list(DEFAULT_FALLBACK_MODELS)
    )
    fallback_is_free_tier: bool = Field(default_factory=lambda: _env_bool("FALLBACK_IS_FREE_TIER", "true"))
    site_url: str = Field(
        default_factory=lambda: os.getenv("OPENROUTER_SITE_URL", "https://arogya-sahayakl.netlify.app")
    )
    app_title: str = Field(default_factory=lambda: os.getenv("OPENROUTER_APP_NAME", "Arogya Sahayak"))
    daily_quota_marker: str = Field(
        default_factory=lambda: os.getenv("DAILY_QUOTA_MARKER", "free-models-per-day")
    )

    # Generation
    temperature: float = Field(default_factory=lambda: float(os.getenv("TEMPERATURE", "0.7")))
    max_tokens: int = Field(default_factory=lambda: int(os.getenv("MAX_TOKENS", "1000")))
    default_max_retries: int = Field(default_factory=lambda: int(os.getenv("DEFAULT_MAX_RETRIES", "3")))

    # Deadlines
    upstream_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "60"))
    )
    call_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("CALL_TIMEOUT_SECONDS", "180"))
    )

    # Health tips
    health_tip_cache_ttl_seconds: float = Field(
        default_factory=lambda: float(os.getenv("HEALTH_TIP_CACHE_TTL_SECONDS", str(24 * 60 * 60)))
    )

    # Observability
    enable_metrics: bool = Field(default_factory=lambda: _env_bool("ENABLE_METRICS"))
    metrics_bind: str = Field(default_factory=lambda: os.getenv("METRICS_BIND", "127.0.0.1"))
    metrics_port: int = Field(default_factory=lambda: int(os.getenv("METRICS_PORT", "9109")))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = Field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))

    # Server hardening
    server_auth_token: str | None = Field(default_factory=lambda: os.getenv("SERVER_AUTH_TOKEN"))
    enable_api_docs: bool = Field(default_factory=lambda: _env_bool("ENABLE_API_DOCS"))
    allowed_hosts: list[str] = Field(default_factory=lambda: _parse_csv(os.getenv("ALLOWED_HOSTS")))
    cors_allow_origins: list[str] = Field(default_factory=lambda: _parse_csv(os.getenv("CORS_ALLOW_ORIGINS")))
    cors_allow_credentials: bool = Field(default_factory=lambda: _env_bool("CORS_ALLOW_CREDENTIALS"))
    max_request_body_bytes: int = Field(
        default_factory=lambda: int(os.getenv("MAX_REQUEST_BODY_BYTES", str(1024 * 1024)))
    )
    max_inflight_requests: int = Field(default_factory=lambda: int(os.getenv("MAX_INFLIGHT_REQUESTS", "32")))
    max_messages: int = Field(default_factory=lambda: int(os.getenv("MAX_MESSAGES", "64")))
    max_total_message_chars: int = Field(
        default_factory=lambda: int(os.getenv("MAX_TOTAL_MESSAGE_CHARS", "20000"))
    )

    def primary_descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            name=self.primary_name,
            endpoint=self.primary_endpoint,
            auth_scheme=self.primary_auth_scheme,
            request_shape=self.primary_request_shape,
            is_free_tier=False,
        )

    def fallback_descriptor(self) -> ProviderDescriptor:
        headers: dict[str, str] = {}
        if self.site_url:
            headers["HTTP-Referer"] = self.site_url
        if self.app_title:
            headers["X-Title"] = self.app_title
        return ProviderDescriptor(
            name=self.fallback_name,
            endpoint=self.fallback_endpoint,
            auth_scheme="bearer",
            request_shape="openai-chat",
            is_free_tier=self.fallback_is_free_tier,
            extra_headers=headers,
        )

    def secrets(self) -> list[str]:
        return [s for s in (self.primary_api_key, self.fallback_api_key, self.server_auth_token) if s]
