"""Configuration management for Mongo Extract."""

from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from bson import json_util
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from mongo_extract.core.exceptions import ConfigurationError


class JsonFormat(str, Enum):
    """JSON conventions used to render documents."""

    EXTENDED = "extended"
    STANDARD = "standard"


class OutputFormat(str, Enum):
    """Payload formats for emitted units."""

    JSON = "json"
    CSV = "csv"

    @property
    def mime_type(self) -> str:
        """MIME type attached to units of this format."""
        return "text/csv" if self is OutputFormat.CSV else "application/json"

    @property
    def extension(self) -> str:
        """File extension for units of this format."""
        return self.value


def parse_document(value: Any, field_name: str = "document") -> dict[str, Any] | None:
    """
    Parse a query document given as Extended JSON text or a mapping.

    Args:
        value: Extended JSON string, mapping or None
        field_name: Name used in error messages

    Returns:
        Parsed document, or None when the value is empty

    Raises:
        ValueError: If the value is not a well-formed document
    """
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            value = json_util.loads(value)
        except Exception as e:
            raise ValueError(f"{field_name} is not valid Extended JSON: {e}") from e
    if not isinstance(value, Mapping):
        raise ValueError(f"{field_name} must be a document, got {type(value).__name__}")
    return dict(value)


# ============================================================================
# MongoDB Configuration
# ============================================================================
class MongoDBSettings(BaseModel):
    """MongoDB connection configuration."""

    uri: str = Field(default="mongodb://localhost:27017", description="Connection URI")
    database: str = Field(default="", description="Database name")
    collection: str = Field(default="", description="Collection name")
    auth_source: str = Field(default="admin")
    max_pool_size: int = Field(default=10, gt=0)
    timeout: int = Field(default=30, gt=0, description="Server selection timeout in seconds")


# ============================================================================
# Query Configuration
# ============================================================================
class QuerySettings(BaseModel):
    """Query documents and cursor options."""

    filter: dict[str, Any] | None = Field(default=None, description="Selection criteria")
    projection: dict[str, Any] | None = Field(default=None, description="Fields to return")
    sort: dict[str, Any] | None = Field(default=None, description="Sort specification")
    limit: int | None = Field(default=None, gt=0, description="Maximum documents per query")
    batch_size: int | None = Field(default=None, gt=0, description="Server-side cursor batch size")

    @field_validator("filter", "projection", "sort", mode="before")
    @classmethod
    def _parse_documents(cls, value: Any, info: ValidationInfo) -> dict[str, Any] | None:
        return parse_document(value, info.field_name)


# ============================================================================
# Output Configuration
# ============================================================================
class OutputSettings(BaseModel):
    """How extracted records become output units."""

    json_format: JsonFormat = Field(default=JsonFormat.EXTENDED)
    format: OutputFormat = Field(default=OutputFormat.JSON)
    results_per_unit: int | None = Field(
        default=None,
        gt=0,
        description="Records per unit; unset emits one unit per record",
    )
    whole_window: bool = Field(
        default=False,
        description="Emit every record of a window (or of the query) as one unit",
    )


# ============================================================================
# Incremental Configuration
# ============================================================================
class IncrementalSettings(BaseModel):
    """Date-windowed extraction configuration."""

    enabled: bool = Field(default=False)
    range_field: str = Field(default="", description="Datetime field the windows filter on")
    range_days: int = Field(default=1, ge=1, description="Window length in days")
    from_date: str | None = Field(default=None, description="yyyy-MM-ddTHH:mm:ss.SSSZ")
    to_date: str | None = Field(default=None, description="yyyy-MM-ddTHH:mm:ss.SSSZ")

    @model_validator(mode="after")
    def _require_range_field(self) -> "IncrementalSettings":
        if self.enabled and not self.range_field.strip():
            raise ValueError("range_field is required when incremental mode is enabled")
        return self


# ============================================================================
# Enrichment Configuration
# ============================================================================
class EnrichmentSettings(BaseModel):
    """Address lookup service configuration."""

    enabled: bool = Field(default=False)
    endpoint: str = Field(default="https://kalinka.edumall.io/location_detect")
    timeout: float = Field(default=10.0, gt=0)
    address_field: str = Field(default="address")


# ============================================================================
# Retry Configuration
# ============================================================================
class RetrySettings(BaseModel):
    """Backoff applied before re-running a rolled back extraction."""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=1.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    max_delay: float = Field(default=60.0, ge=0)


# ============================================================================
# Logging Configuration
# ============================================================================
class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="json")
    file: str | None = Field(default=None)


# ============================================================================
# Main Settings
# ============================================================================
class Settings(BaseSettings):
    """Settings for one extraction run. Never mutated once validated."""

    model_config = SettingsConfigDict(
        env_prefix="MONGO_EXTRACT_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    mongodb: MongoDBSettings = Field(default_factory=MongoDBSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    incremental: IncrementalSettings = Field(default_factory=IncrementalSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Settings":
        """
        Build and validate settings from a mapping.

        Raises:
            ConfigurationError: If any section is malformed
        """
        try:
            return cls(**dict(data))
        except ValidationError as e:
            errors = e.errors()
            first = errors[0] if errors else {}
            field = ".".join(str(part) for part in first.get("loc", ()))
            raise ConfigurationError(
                f"Invalid configuration: {first.get('msg', str(e))}",
                field=field or None,
                details={"errors": len(errors)},
            ) from e

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path) as f:
            config_dict = yaml.safe_load(f) or {}

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration file must contain a mapping",
                details={"path": str(path)},
            )

        # Expand environment variables
        config_dict = cls._expand_env_vars(config_dict)

        return cls.from_mapping(config_dict)

    @classmethod
    def _expand_env_vars(cls, config: Any) -> Any:
        """Recursively expand environment variables in config."""
        if isinstance(config, dict):
            return {k: cls._expand_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [cls._expand_env_vars(item) for item in config]
        elif isinstance(config, str):
            # Handle ${VAR} and ${VAR:default} syntax
            if config.startswith("${") and "}" in config:
                var_part = config[2 : config.index("}")]
                if ":" in var_part:
                    var_name, default = var_part.split(":", 1)
                else:
                    var_name, default = var_part, None

                value = os.environ.get(var_name, default)
                return value if value is not None else config
            return config
        return config

    def query_spec(self) -> "QuerySpec":
        """Build the immutable query description for a run."""
        from mongo_extract.extraction.query import QuerySpec

        return QuerySpec(
            filter=self.query.filter,
            projection=self.query.projection,
            sort=self.query.sort,
            limit=self.query.limit,
            batch_size=self.query.batch_size,
        )


@lru_cache
def get_settings(config_path: str | None = None) -> Settings:
    """Get cached settings instance."""
    if config_path:
        return Settings.from_yaml(config_path)

    # Try default locations
    default_paths = [
        Path("config/settings.yaml"),
        Path("settings.yaml"),
        Path.home() / ".mongo_extract" / "settings.yaml",
    ]

    for path in default_paths:
        if path.exists():
            return Settings.from_yaml(path)

    return Settings.from_mapping({})
