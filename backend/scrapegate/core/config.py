"""Application configuration.

Environment variables are loaded from .env file and can be overridden.
All settings have sensible defaults for local development.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_METRICS_FORMATS = ["protobuf", "openmetrics", "text"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # Infrastructure
    # ==========================================================================

    # Environment mode - set to 'production' in production deployments
    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment: 'development', 'staging', or 'production'.",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # ==========================================================================
    # Metrics exposition
    # ==========================================================================

    metrics_path: str = Field(
        default="/metrics",
        alias="METRICS_PATH",
        description="Path that the scrape endpoint answers on.",
    )
    metrics_root_match: str = Field(
        default="lenient",
        alias="METRICS_ROOT_MATCH",
        description="'exact' or 'lenient' (ignores trailing slashes and whitespace).",
    )
    metrics_formats: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_METRICS_FORMATS),
        alias="METRICS_FORMATS",
    )
    metrics_runtime_collector_enabled: bool = Field(
        default=True, alias="METRICS_RUNTIME_COLLECTOR_ENABLED"
    )

    # Standalone metric server (python -m scrapegate)
    metrics_host: str = Field(default="0.0.0.0", alias="METRICS_HOST")
    metrics_port: int = Field(default=9100, alias="METRICS_PORT", gt=0, le=65535)

    # ==========================================================================
    # OpenTelemetry (optional)
    # ==========================================================================

    otel_enabled: bool = Field(default=False, alias="OTEL_ENABLED")
    otel_service_name: str = Field(default="scrapegate", alias="OTEL_SERVICE_NAME")
    otel_service_version: str = Field(default="0.1.0", alias="OTEL_SERVICE_VERSION")
    otel_exporter_otlp_endpoint: str = Field(
        default="http://jaeger:4317", alias="OTEL_EXPORTER_OTLP_ENDPOINT"
    )
    otel_exporter_otlp_headers: str | None = Field(
        default=None, alias="OTEL_EXPORTER_OTLP_HEADERS"
    )

    # ==========================================================================
    # Pydantic Settings Config
    # ==========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("metrics_path")
    @classmethod
    def validate_metrics_path(cls, value: str) -> str:
        """Require an absolute path such as '/metrics'."""
        value = value.strip()
        if not value.startswith("/"):
            raise ValueError("METRICS_PATH must start with '/'.")
        return value

    @field_validator("metrics_root_match")
    @classmethod
    def validate_root_match(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"exact", "lenient"}:
            raise ValueError("METRICS_ROOT_MATCH must be 'exact' or 'lenient'.")
        return normalized

    @field_validator("metrics_formats", mode="before")
    @classmethod
    def parse_metrics_formats(cls, value: Any) -> list[str]:
        """Parse comma-separated format names, always keeping 'text'."""
        if isinstance(value, str):
            parsed = [item.strip().lower() for item in value.split(",") if item.strip()]
        else:
            parsed = [str(item).strip().lower() for item in value] if value else []

        unknown = [item for item in parsed if item not in DEFAULT_METRICS_FORMATS]
        if unknown:
            raise ValueError(
                f"Unknown metrics format(s): {', '.join(unknown)}. "
                f"Choose from {', '.join(DEFAULT_METRICS_FORMATS)}."
            )
        if "text" not in parsed:
            parsed.append("text")
        # Keep first occurrence order
        return list(dict.fromkeys(parsed))

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
