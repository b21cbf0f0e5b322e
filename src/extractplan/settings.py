"""Runtime settings loaded from `.env` and environment variables."""

from __future__ import annotations

import ssl
from functools import lru_cache

import httpx
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from extractplan.exceptions import SettingsError
from extractplan.typing.enums import PricingPolicy, RunnerBackend


class Settings(BaseSettings):
    """Package settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    project_name: str = "extractplan"
    app_env: str = Field(
        default="dev",
        validation_alias="APP_ENV",
        description="Application environment, e.g. 'dev', 'prod'.",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level, e.g. 'INFO', 'DEBUG'.",
    )
    log_json: bool = Field(
        default=True,
        validation_alias="LOG_JSON",
        description="Enable JSON formatted logs.",
    )
    log_file: str | None = Field(
        default=None,
        validation_alias="LOG_FILE",
        description="File path for log output.",
    )

    default_model: str = Field(
        default="gpt-3.5-turbo",
        validation_alias="DEFAULT_MODEL",
        description="Model used by fields without any model annotation.",
    )
    fallback_prompt: str = Field(
        default="",
        validation_alias="FALLBACK_PROMPT",
        description="Prompt used by groups without a prompt annotation.",
    )
    flatten_groups: bool = Field(
        default=False,
        validation_alias="FLATTEN_GROUPS",
        description="Ignore parent paths when grouping fields.",
    )
    pricing_policy: PricingPolicy = Field(
        default=PricingPolicy.ERROR,
        validation_alias="PRICING_POLICY",
        description="Behaviour when a model has no pricing entry.",
    )

    runner_backend: RunnerBackend = Field(
        default=RunnerBackend.THREAD,
        validation_alias="RUNNER_BACKEND",
        description="Concurrency backend used to dispatch group calls.",
    )
    max_concurrency: int = Field(
        default=8,
        ge=1,
        validation_alias="MAX_CONCURRENCY",
        description="Maximum number of concurrent group calls.",
    )
    timeout: float | None = Field(
        default=None,
        gt=0,
        validation_alias="TIMEOUT",
        description="Session timeout in seconds for one extraction pass.",
    )
    max_retries: int = Field(
        default=0,
        ge=0,
        validation_alias="MAX_RETRIES",
        description="Extra attempts for a failed prompt call.",
    )
    retry_backoff: float = Field(
        default=1.0,
        ge=0,
        validation_alias="RETRY_BACKOFF",
        description="Delay in seconds before the first retry, doubled on each further retry.",
    )

    http_proxy: str | None = Field(default=None, validation_alias="HTTP_PROXY", description="HTTP proxy URL.")
    https_proxy: str | None = Field(
        default=None,
        validation_alias="HTTPS_PROXY",
        description="HTTPS proxy URL.",
    )
    cert_path: str | None = Field(
        default=None,
        validation_alias="CERT_PATH",
        description="Path to SSL certificate.",
    )
    request_timeout: float = Field(
        default=30.0,
        validation_alias="REQUEST_TIMEOUT",
        description="HTTP request timeout in seconds.",
    )

    openai_base_url: str | None = Field(
        default=None,
        validation_alias="OPENAI_BASE_URL",
        description="Base URL for OpenAI API.",
    )
    openai_api_key: str | None = Field(
        default=None,
        validation_alias="OPENAI_API_KEY",
        description="API key for OpenAI.",
    )

    @field_validator("pricing_policy", "runner_backend", mode="before")
    @classmethod
    def _lowercase_enum(cls, value: object) -> object:
        """Accept enum values regardless of case.

        Returns:
            object: Lower-cased string or the original value.
        """
        return value.lower() if isinstance(value, str) else value


def build_ssl_context(settings: Settings) -> ssl.SSLContext:
    """Build a strict SSL context from settings.

    Args:
        settings (Settings): Runtime settings.

    Returns:
        ssl.SSLContext: Configured TLS context.
    """
    ssl_context = ssl.create_default_context(cafile=settings.cert_path)
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.minimum_version = ssl.TLSVersion.TLSv1_2
    return ssl_context


def build_httpx_client(settings: Settings) -> httpx.Client:
    """Build the HTTP client used by the inference backend.

    Args:
        settings (Settings): Runtime settings.

    Returns:
        httpx.Client: Client with TLS verification, timeout and optional proxy.
    """
    proxy_url = settings.https_proxy or settings.http_proxy
    return httpx.Client(
        verify=build_ssl_context(settings),
        timeout=settings.request_timeout,
        proxy=proxy_url,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance.

    Raises:
        SettingsError: If settings cannot be loaded or validated.

    Returns:
        Settings: The loaded settings instance.
    """
    try:
        return Settings()
    except ValidationError as exc:
        raise SettingsError(exc=exc) from exc
