"""Configuration management using pydantic-settings.

All environment variables are loaded and validated here.
API keys are stored as SecretStr to prevent accidental logging.
Numeric limits never fail validation: an unusable value falls back to
its documented default so a bad deployment still serves streams.
"""

import math
from typing import Annotated, Any

import structlog
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = structlog.get_logger(__name__)

# Documented fallbacks for numeric settings
DEFAULT_MAX_STREAMS_PER_ITEM = 10
DEFAULT_TRACKERS_LIST_URL = (
    "https://raw.githubusercontent.com/ngosang/trackerslist/master/trackers_best.txt"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Nothing is required: without TMDB/OMDb keys the service searches by
    the raw IMDb id, and without a size cap every size is accepted.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Search backend
    bitmagnet_graphql_endpoint: str = Field(
        default="http://localhost:3333/graphql",
        description="BitMagnet GraphQL endpoint",
    )

    bitmagnet_search_limit: int = Field(
        default=50,
        description="Number of hits requested per search query",
        ge=1,
    )

    # Optional: Media APIs
    tmdb_api_key: SecretStr | None = Field(
        default=None,
        description="The Movie Database API key (title/year lookup)",
    )

    omdb_api_key: SecretStr | None = Field(
        default=None,
        description="OMDb API key (fallback title/year lookup)",
    )

    # Ranking
    max_streams_per_item: int = Field(
        default=DEFAULT_MAX_STREAMS_PER_ITEM,
        description="Maximum number of streams returned per item",
    )

    max_size_gb: float | None = Field(
        default=None,
        description="Drop torrents larger than this many GiB (unset = no cap)",
    )

    preferred_languages: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Language codes or names preferred when seeders and quality tie",
    )

    # Caching
    stream_cache_ttl: int = Field(
        default=900,
        description="Stream list cache TTL in seconds",
        ge=0,
    )

    metadata_cache_ttl: int = Field(
        default=3600,
        description="Combined metadata cache TTL in seconds",
        ge=0,
    )

    # Public trackers
    trackers_list_url: str = Field(
        default=DEFAULT_TRACKERS_LIST_URL,
        description="Plain-text list of public tracker announce URLs",
    )

    trackers_cache_ttl: int = Field(
        default=86400,
        description="Public tracker list cache TTL in seconds",
        ge=0,
    )

    trackers_refresh_hours: int = Field(
        default=12,
        description="Background refresh interval for the tracker list",
        ge=1,
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    environment: str = Field(
        default="production",
        description="Environment name (development, production)",
    )

    @field_validator("max_streams_per_item", mode="before")
    @classmethod
    def validate_max_streams(cls, v: Any) -> int:
        """Fall back to the default for missing, non-numeric or non-positive values."""
        try:
            value = int(v)
        except (TypeError, ValueError):
            logger.warning("invalid_max_streams_per_item", value=v)
            return DEFAULT_MAX_STREAMS_PER_ITEM
        if value <= 0:
            logger.warning("invalid_max_streams_per_item", value=v)
            return DEFAULT_MAX_STREAMS_PER_ITEM
        return value

    @field_validator("max_size_gb", mode="before")
    @classmethod
    def validate_max_size(cls, v: Any) -> float | None:
        """Treat empty, non-numeric or non-positive caps as no cap."""
        if v is None or v == "":
            return None
        try:
            value = float(v)
        except (TypeError, ValueError):
            logger.warning("invalid_max_size_gb", value=v)
            return None
        if math.isnan(value) or value <= 0:
            logger.warning("invalid_max_size_gb", value=v)
            return None
        return value

    @field_validator("preferred_languages", mode="before")
    @classmethod
    def split_languages(cls, v: Any) -> Any:
        """Accept a comma separated string as well as a JSON list."""
        if isinstance(v, str):
            return [part.strip().lower() for part in v.split(",") if part.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is development or production."""
        allowed = {"development", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v_lower

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def has_tmdb(self) -> bool:
        """Check if TMDB lookups are configured."""
        return self.tmdb_api_key is not None and bool(self.tmdb_api_key.get_secret_value())

    @property
    def has_omdb(self) -> bool:
        """Check if OMDb lookups are configured."""
        return self.omdb_api_key is not None and bool(self.omdb_api_key.get_secret_value())

    def get_safe_dict(self) -> dict[str, Any]:
        """Get configuration as dict with sensitive values masked.

        Returns:
            Dictionary with SecretStr values shown as '***'
        """
        result = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)

            # Mask SecretStr values
            if isinstance(value, SecretStr):
                result[field_name] = "***"
            else:
                result[field_name] = value

        return result


# Global settings instance
settings = Settings()
