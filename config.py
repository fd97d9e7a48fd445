"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

JWT_SECRET is required in production. In development an empty secret is
rejected at token-signing time rather than at import so unit tests and
tooling can build settings without one.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "fixly"
    # Bounded wait for server selection and per-operation timeout
    mongo_timeout_ms: int = 5000


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional — without Redis the process falls back to an in-memory store,
    # which makes rate limits and revocations per-instance
    redis_uri: Optional[str] = None
    redis_socket_timeout: float = 1.0
    redis_connect_timeout: float = 2.0
    memory_sweep_interval_seconds: int = 60


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_secret: str = ""
    jwt_issuer: str = "fixly-app"
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 900  # 15 minutes
    refresh_token_ttl_seconds: int = 604800  # 7 days
    reset_token_ttl_seconds: int = 900
    jwt_rotate_refresh_tokens: bool = False


class OTPSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_signup_ttl_minutes: int = 10
    otp_reset_ttl_minutes: int = 15
    otp_max_attempts: int = 5
    # Product decision: signup/reset issuance tells the caller whether the
    # account exists (409 / 404). Set to false to answer uniformly.
    otp_reveal_account_existence: bool = True
    email_verified_ttl_hours: int = 1
    age_verified_ttl_hours: int = 24 * 7


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@fixly.app"
    zepto_from_name: str = "Fixly"
    email_timeout_seconds: float = 5.0


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_url: str = "https://fixly.app"
    app_name: str = "fixly-auth"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    otp: Optional[OTPSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.otp is None:
            self.otp = OTPSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        if self.is_production and not self.jwt.jwt_secret:
            raise ValueError("JWT_SECRET must be set in production")

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
