"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Store defaults live here; per-store overrides live in the stored settings record
"""

import logging
import os
from functools import lru_cache
from typing import Literal, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from health_survey.domain.models import Settings

# Load environment variables from .env file
load_dotenv()


class StorageConfig(BaseModel):
    """Where survey records are kept."""

    backend: Literal["memory", "file"] = Field(default="file", description="Key-value backend")
    data_dir: str = Field(default="./data", description="Directory for the JSON file backend")
    namespace: str = Field(
        default="healthFeedback", min_length=1, description="Prefix for the stored record keys"
    )


class RetentionConfig(BaseModel):
    """Defaults written to a fresh store's settings record."""

    retention_days: int = Field(default=365, gt=0, description="Days to keep submissions")
    max_submissions: int = Field(default=10000, gt=0, description="Stored submissions cap")
    anonymize_data: bool = Field(default=True, description="Scrub PII before writing")
    export_format: Literal["json", "csv"] = Field(default="json", description="Preferred export")

    def default_settings(self) -> Settings:
        return Settings(
            data_retention_days=self.retention_days,
            max_submissions=self.max_submissions,
            anonymize_data=self.anonymize_data,
            export_format=self.export_format,
        )


class ExportConfig(BaseModel):
    """Export output settings."""

    output_dir: str = Field(default="./exports", description="Directory for written exports")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    storage: StorageConfig = Field(default_factory=StorageConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
    v = val.strip().lower()
    if v in {"dev", "development"}:
        return "development"
    if v in {"stage", "staging"}:
        return "staging"
    return "production"


def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
    v = val.strip().upper()
    return cast(
        Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
    )


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    storage_config = StorageConfig(
        backend=cast(
            Literal["memory", "file"],
            "memory" if os.getenv("SURVEY_STORAGE_BACKEND", "file").strip().lower() == "memory"
            else "file",
        ),
        data_dir=os.getenv("SURVEY_DATA_DIR", "./data"),
        namespace=os.getenv("SURVEY_NAMESPACE", "healthFeedback"),
    )

    retention_config = RetentionConfig(
        retention_days=int(os.getenv("SURVEY_RETENTION_DAYS", "365")),
        max_submissions=int(os.getenv("SURVEY_MAX_SUBMISSIONS", "10000")),
        anonymize_data=_parse_bool(os.getenv("SURVEY_ANONYMIZE"), True),
        export_format=cast(
            Literal["json", "csv"],
            "csv" if os.getenv("SURVEY_EXPORT_FORMAT", "json").strip().lower() == "csv" else "json",
        ),
    )

    export_config = ExportConfig(output_dir=os.getenv("SURVEY_EXPORT_DIR", "./exports"))

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        storage=storage_config,
        retention=retention_config,
        export=export_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def configure_logging(config: LoggingConfig) -> None:
    """Apply level and renderer choice to stdlib logging and structlog."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, config.level), force=True)

    renderer: structlog.typing.Processor = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Development helpers
def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\nSTORAGE")
    print(f"Backend: {config.storage.backend}")
    print(f"Data Dir: {config.storage.data_dir}")
    print(f"Namespace: {config.storage.namespace}")

    print("\nRETENTION")
    print(f"Retention: {config.retention.retention_days} days")
    print(f"Max Submissions: {config.retention.max_submissions}")
    print(f"Anonymize: {config.retention.anonymize_data}")


if __name__ == "__main__":
    print_config_summary()
