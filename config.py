from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import ClassVar, Dict, List, Type
from functools import lru_cache


_SETTINGS_CONFIG = SettingsConfigDict(
    env_prefix="REBALANCE_",
    env_file=".env",
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
)


class Settings(BaseSettings):
    model_config = _SETTINGS_CONFIG

    environment: ClassVar[str] = "default"

    app_name: str = "Holdings Rebalance API"
    app_version: str = "1.0.0"
    debug: bool = False

    host: str = "0.0.0.0"
    port: int = 8000

    # structlog renderer: json or text
    log_level: str = "INFO"
    log_format: str = "json"

    # Requests per client address on POST /rebalance
    rate_limit_per_minute: int = 30

    allowed_origins: List[str] = ["*"]
    allowed_methods: List[str] = ["GET", "POST", "OPTIONS"]
    allowed_headers: List[str] = ["*"]

    # Log every HTTP request and response
    enable_detailed_logging: bool = True


class DevelopmentSettings(Settings):
    environment: ClassVar[str] = "development"

    debug: bool = True
    log_level: str = "DEBUG"  # includes one line per generated exchange
    log_format: str = "text"
    rate_limit_per_minute: int = 120


class ProductionSettings(Settings):
    environment: ClassVar[str] = "production"

    allowed_origins: List[str] = []  # Must be specified in production
    enable_detailed_logging: bool = False


class TestingSettings(Settings):
    environment: ClassVar[str] = "testing"

    log_level: str = "WARNING"
    log_format: str = "text"
    rate_limit_per_minute: int = 1000


ENVIRONMENTS: Dict[str, Type[Settings]] = {
    settings_class.environment: settings_class
    for settings_class in (DevelopmentSettings, ProductionSettings, TestingSettings)
}


class EnvironmentSelector(BaseSettings):
    """Reads ``REBALANCE_ENV`` to decide which settings class applies."""

    model_config = _SETTINGS_CONFIG

    env: str = Settings.environment


def get_settings_for_environment(env: str) -> Settings:
    """Get settings for a named environment, falling back to the defaults."""
    settings_class = ENVIRONMENTS.get(env.lower(), Settings)
    return settings_class()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings for the environment named by ``REBALANCE_ENV``."""
    return get_settings_for_environment(EnvironmentSelector().env)
