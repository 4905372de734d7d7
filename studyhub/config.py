"""Configuration management for StudyHub.

This module provides centralized configuration using Pydantic Settings.
Values are read from environment variables and an optional ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, human-readable output
    - PRODUCTION: JSON logs, strict secret validation
    - TESTING: Throwaway database, cheap password hashing, quiet logs
    - STAGING: Production-like with INFO logging

Example:
    >>> from studyhub.config import settings, Environment
    >>> print(settings.database_url)
    sqlite:///data/studyhub.db
    >>> if settings.is_production:
    ...     print("Running in production mode")
"""

from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "studyhub-development-secret"


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, human-readable output
        PRODUCTION: JSON logging, strict secrets
        TESTING: Fast hashing, minimal logging
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        environment: Runtime profile
        data_dir: Base directory for the database, logs and backups
        database_path: Path to SQLite database file
        backup_dir: Directory holding JSON snapshots
        backup_retention: Number of snapshots kept after each backup
        jwt_secret: HMAC secret used to sign session tokens
        token_ttl_hours: Session token lifetime
        bcrypt_rounds: bcrypt cost factor for password hashing
        default_page_size: Page size used when a listing omits ``limit``
        max_page_size: Upper bound accepted for ``limit``
        host: Bind address for ``studyhub serve``
        port: Bind port for ``studyhub serve``
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for all data files (database, logs, backups)",
    )

    # Database Configuration
    database_path: Path = Field(
        Path("studyhub.db"),  # Will be updated to data_dir/studyhub.db by validator
        description="Path to SQLite database file (defaults to data_dir/studyhub.db)",
    )

    # Backup Configuration
    backup_dir: Optional[Path] = Field(
        None,
        description="Directory for JSON backups (defaults to data_dir/backups)",
    )
    backup_retention: int = Field(
        10,
        ge=1,
        le=1000,
        description="Number of backup files to keep",
    )

    # Authentication
    jwt_secret: str = Field(
        DEV_JWT_SECRET,
        alias="JWT_SECRET",
        description="Secret used to sign session tokens",
    )
    token_ttl_hours: int = Field(
        24,
        ge=1,
        le=24 * 30,
        description="Lifetime of a session token in hours",
    )
    bcrypt_rounds: int = Field(
        10,
        ge=4,
        le=16,
        description="bcrypt cost factor",
    )

    # Listing
    default_page_size: int = Field(
        10,
        ge=1,
        le=100,
        description="Default number of items per page",
    )
    max_page_size: int = Field(
        100,
        ge=1,
        le=1000,
        description="Maximum number of items per page",
    )

    # HTTP server
    host: str = Field("127.0.0.1", description="Bind address for the API server")
    port: int = Field(8000, ge=1, le=65535, description="Bind port for the API server")

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_to_file: bool = Field(
        default=True,
        description="Enable file logging in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        path = Path(v).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("jwt_secret")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        """Reject secrets too short to sign tokens safely."""
        if not v or len(v) < 16:
            raise ValueError("JWT secret must be at least 16 characters")
        return v

    @model_validator(mode="after")
    def set_path_defaults(self) -> "Settings":
        """Place the database and backups under data_dir unless set explicitly."""
        if self.database_path == Path("studyhub.db"):
            self.database_path = self.data_dir / "studyhub.db"
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        if self.backup_dir is None:
            self.backup_dir = self.data_dir / "backups"
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging, JSON logs, development secret refused
            - DEVELOPMENT: DEBUG logging, human-readable logs
            - TESTING: ERROR logging, no file logging, minimum bcrypt cost
            - STAGING: INFO logging, JSON logs

        Returns:
            Modified settings instance with environment-specific adjustments

        Raises:
            ValueError: If production runs with the development JWT secret
        """
        if self.environment == Environment.PRODUCTION:
            if self.jwt_secret == DEV_JWT_SECRET:
                raise ValueError("JWT_SECRET must be set in production")
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False

        elif self.environment == Environment.TESTING:
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False
            self.bcrypt_rounds = 4

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True

        return self

    @property
    def database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"

    @property
    def log_file(self) -> Path | None:
        """Get log file path, or None when file logging is disabled."""
        return self.data_dir / "studyhub.log" if self.log_to_file else None

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    @property
    def is_staging(self) -> bool:
        """Check if running in staging environment."""
        return self.environment == Environment.STAGING

    def redact_secret(self, secret: Optional[str] = None) -> str:
        """Redact a secret for display.

        Args:
            secret: Secret to redact (defaults to jwt_secret)

        Returns:
            Redacted secret string
        """
        secret = secret or self.jwt_secret
        if not secret:
            return "None"
        return f"{secret[:4]}...{secret[-2:]}" if len(secret) > 12 else "***"


def get_settings() -> Settings:
    """Get a freshly loaded settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
