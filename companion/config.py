"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Local-only defaults (no network endpoints)
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class AdvisoryConfig(BaseModel):
    """Symptom triage and assistant settings."""

    triage_delay_seconds: float = Field(
        default=2.0, ge=0.0, description="Nominal time a symptom analysis takes"
    )
    max_recommendations: int = Field(
        default=5, ge=0, le=5, description="Recommendations kept per analysis"
    )
    max_causes: int = Field(default=3, ge=0, le=3, description="Possible causes kept per analysis")


class StorageConfig(BaseModel):
    """Where and how records are persisted."""

    backend: Literal["memory", "file"] = Field(
        default="file", description="Key-value backend used by the stores"
    )
    data_dir: str = Field(default="./.companion_data", description="Directory for file backend")
    symptom_history_limit: int = Field(
        default=50, gt=0, description="Symptom-check records kept before the oldest are evicted"
    )


class PreferencesConfig(BaseModel):
    """Defaults applied before any preference has been saved."""

    default_language: str = Field(default="en", min_length=1)
    default_voice_enabled: bool = Field(default=True)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    advisory: AdvisoryConfig = Field(default_factory=AdvisoryConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    preferences: PreferencesConfig = Field(default_factory=PreferencesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

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

    def _backend_to_literal(val: str) -> Literal["memory", "file"]:
        return "memory" if val.strip().lower() == "memory" else "file"

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    advisory_config = AdvisoryConfig(
        triage_delay_seconds=float(os.getenv("TRIAGE_DELAY_SECONDS", "2.0")),
    )

    storage_config = StorageConfig(
        backend=_backend_to_literal(os.getenv("STORAGE_BACKEND", "file")),
        data_dir=os.getenv("STORAGE_DIR", "./.companion_data"),
        symptom_history_limit=int(os.getenv("SYMPTOM_HISTORY_LIMIT", "50")),
    )

    preferences_config = PreferencesConfig(
        default_language=os.getenv("DEFAULT_LANGUAGE", "en"),
        default_voice_enabled=_parse_bool(os.getenv("DEFAULT_VOICE_ENABLED"), True),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        advisory=advisory_config,
        storage=storage_config,
        preferences=preferences_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def reset_config_cache() -> None:
    """Forget the cached configuration so the next get_config() re-reads the environment."""
    get_config.cache_clear()


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"✅ Configuration loaded for {config.environment} environment")

        if config.storage.backend == "file":
            print(f"✅ Records stored under {config.storage.data_dir}")
        else:
            print("⚠️  Memory backend selected, records will not survive a restart")

    except Exception as e:
        print(f"❌ Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\n🩺 ADVISORY CONFIGURATION")
    print(f"Triage Delay: {config.advisory.triage_delay_seconds}s")
    print(f"Max Recommendations: {config.advisory.max_recommendations}")
    print(f"Max Causes: {config.advisory.max_causes}")

    print("\n💾 STORAGE CONFIGURATION")
    print(f"Backend: {config.storage.backend}")
    print(f"Data Directory: {config.storage.data_dir}")
    print(f"Symptom History Limit: {config.storage.symptom_history_limit}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
