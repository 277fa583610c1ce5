"""
AutoNews Configuration System
=============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ProcessingSettings(BaseModel):
    """Queue processing and normalization configuration."""
    queue_batch_size: int = Field(default=10, ge=1, le=500, description="Queue entries converted per run")
    rewrite_batch_size: int = Field(default=5, ge=1, le=100, description="Queue entries rewritten per run")
    excerpt_length: int = Field(default=200, ge=10, le=2000, description="Excerpt length before the ellipsis")
    slug_max_length: int = Field(default=100, ge=10, le=255, description="Maximum slug length")
    max_content_length: int = Field(default=50000, ge=1000, le=1000000, description="Max stored article body length")
    ai_content_chars: int = Field(default=6000, ge=500, le=100000, description="Max content characters sent to the AI")


class FetchSettings(BaseModel):
    """RSS fetching configuration."""
    user_agent: str = Field(default="AutoNews RSS Aggregator 1.0", description="User-Agent header for feed requests")
    request_timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")
    default_fetch_interval: int = Field(default=3600, ge=60, description="Default fetch interval for new sources (seconds)")

    @field_validator('user_agent')
    @classmethod
    def validate_user_agent(cls, v):
        """User-Agent must not be blank."""
        if not v or not v.strip():
            raise ValueError("user_agent must not be empty")
        return v.strip()


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/autonews.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/autonews.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class AISettings(BaseModel):
    """AI rewrite configuration."""
    groq_api_key: Optional[str] = Field(default=None, description="Groq API key")
    groq_model: str = Field(default="llama-3.1-70b-versatile", description="Groq chat model")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=4000, ge=100, le=32000, description="Maximum tokens per response")
    rewrite_timeout: int = Field(default=120, ge=5, le=600, description="Per-request timeout in seconds")

    def has_credentials(self) -> bool:
        return bool(self.groq_api_key)


class AutoNewsSettings(BaseSettings):
    """Main application settings."""

    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    ai: AISettings = Field(default_factory=AISettings)

    app_name: str = Field(default="AutoNews", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "AUTONEWS_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration.

        A missing AI key is not an error here; only the AI commands need it.
        """
        errors = []

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> AutoNewsSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = AutoNewsSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


# Global settings instance
_settings: Optional[AutoNewsSettings] = None


def get_settings(reload: bool = False) -> AutoNewsSettings:
    """Get global settings instance.

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
