from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "SchoolConnect API"
    env: str = "dev"
    cors_origins: str = "http://localhost:3000"
    log_level: str = "INFO"

    storage_backend: str = "inmemory"  # inmemory|mongo
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "schoolconnect"

    # JWT Authentication
    jwt_secret_key: str = "schoolconnect-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7
    auth_cookie_name: str = "auth-token"

    # Quiz generation
    llm_provider: str = "gemini"  # gemini|mock
    llm_model: str = "gemini-1.5-flash"
    llm_temperature: float = 0.7
    llm_top_p: float = 1.0
    llm_max_output_tokens: int = 4096
    gemini_api_key: str | None = None
    gemini_base_url: str | None = None

    # Transactional email
    email_provider: str = "log"  # log|resend
    resend_api_key: str | None = None
    resend_base_url: str | None = None
    email_from: str = "SchoolConnect <no-reply@schoolconnect.local>"
    app_url: str = "http://localhost:3000"
    email_batch_size: int = 50
    email_batch_pause_seconds: float = 1.0

    # Observability (OpenTelemetry)
    observability_enabled: bool = True
    otel_service_name: str = "schoolconnect-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_console: bool = False
    otel_sample_rate: float = 0.1


settings = Settings()
