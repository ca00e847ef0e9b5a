"""Application settings and configuration.

This module defines all configuration options for the LiteNotes application.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_KDF_ITERATIONS = 100_000


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    This class defines all configuration options for the LiteNotes application.
    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="LiteNotes", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./litenotes.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Key cache holding unwrapped data keys between login and token expiry
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    key_cache_backend: str = Field(default="redis", alias="KEY_CACHE_BACKEND")
    key_cache_prefix: str = Field(default="dek:", alias="KEY_CACHE_PREFIX")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Note encryption
    kdf_iterations: int = Field(default=210_000, alias="KDF_ITERATIONS")

    # Account rules
    username_min_length: int = Field(default=3, alias="USERNAME_MIN_LENGTH")
    password_min_length: int = Field(default=7, alias="PASSWORD_MIN_LENGTH")

    # Failed-login throttling
    login_max_failed_attempts: int = Field(default=4, alias="LOGIN_MAX_FAILED_ATTEMPTS")
    login_lockout_seconds: int = Field(default=300, alias="LOGIN_LOCKOUT_SECONDS")

    # Password reset and outbound mail
    password_reset_ttl_minutes: int = Field(default=60, alias="PASSWORD_RESET_TTL_MINUTES")
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")
    mail_from: str = Field(default="LiteNotes <no-reply@litenotes.local>", alias="MAIL_FROM")
    smtp_host: str | None = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=2525, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USERNAME")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_use_tls: bool = Field(default=True, alias="SMTP_USE_TLS")
    smtp_timeout_seconds: float = Field(default=10.0, alias="SMTP_TIMEOUT_SECONDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("kdf_iterations")
    @classmethod
    def validate_kdf_iterations(cls, v: int) -> int:
        """Refuse work factors below the supported floor."""
        if v < MIN_KDF_ITERATIONS:
            raise ValueError(f"KDF_ITERATIONS must be at least {MIN_KDF_ITERATIONS}")
        return v

    @field_validator("key_cache_backend")
    @classmethod
    def validate_key_cache_backend(cls, v: str) -> str:
        """Accept only the cache backends shipped with the application."""
        backend = v.strip().lower()
        if backend not in {"redis", "memory"}:
            raise ValueError("KEY_CACHE_BACKEND must be 'redis' or 'memory'")
        return backend

    @property
    def access_token_ttl_seconds(self) -> int:
        """Return the bearer token lifetime in seconds."""
        return self.access_token_expire_minutes * 60

    @property
    def key_cache_ttl_seconds(self) -> int:
        """Return the cached data key lifetime.

        Always identical to the access token lifetime so that an authenticated
        session never outlives its encryption context, nor the reverse.

        Returns:
            Time-to-live in seconds for key cache entries
        """
        return self.access_token_ttl_seconds

    @property
    def smtp_enabled(self) -> bool:
        """Return True when an SMTP relay has been configured."""
        return bool(self.smtp_host)


settings = Settings()  # type: ignore[call-arg]
