"""Centralized configuration for component search using Pydantic Settings."""

from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Values are validated once at startup; an invalid environment fails fast.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # CouchDB / Nouveau
    couchdb_url: str = Field(default="http://localhost:5984", description="Base URL of the CouchDB server")
    couchdb_database: str = Field(default="sw360db", min_length=1, description="Database holding component documents")
    couchdb_username: str = Field(default="", description="CouchDB user; empty disables basic auth")
    couchdb_password: SecretStr = Field(default=SecretStr(""), description="CouchDB password")

    # HTTP settings
    http_timeout: float = Field(default=30.0, gt=0, description="Engine request timeout in seconds")
    http_connect_timeout: float = Field(default=10.0, gt=0, description="Engine connect timeout in seconds")

    # Search settings
    search_chunk_size: int = Field(
        default=200,
        ge=1,
        le=200,
        description="Maximum hits requested per engine call when walking result sets",
    )

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Tracing
    service_name: str = Field(default="component-search", description="Service name reported to tracing backends")
    otlp_enabled: bool = Field(default=False, description="Export spans to an OTLP collector")
    otlp_protocol: Literal["http", "grpc"] = Field(default="grpc", description="OTLP transport protocol")
    otlp_endpoint: str = Field(default="http://localhost:4317", description="OTLP collector endpoint")
    otlp_insecure: bool = Field(default=True, description="Use an insecure gRPC channel")

    @field_validator("couchdb_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("COUCHDB_URL must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        if value.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {value}")
        return value.lower()
