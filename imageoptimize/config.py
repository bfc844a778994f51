from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from imageoptimize.core.constants import (
    DEFAULT_CODEC_PRIORITY,
    DEFAULT_CODEC_TIMEOUT,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_MAX_SEARCH_ITERATIONS,
    DEFAULT_QUALITY_THRESHOLD,
)
from imageoptimize.models.optimization import CodecTarget, OptimizationConfig


class Settings(BaseSettings):
    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Render logs as JSON")
    log_file: Optional[str] = Field(
        default=None, description="Optional rotating log file path"
    )
    max_log_size_mb: int = Field(
        default=10, description="Maximum size of each log file in MB"
    )
    log_backup_count: int = Field(
        default=3, description="Number of backup log files to keep"
    )

    # Optimization defaults
    default_codecs: Union[str, List[str]] = Field(
        default=",".join(DEFAULT_CODEC_PRIORITY),
        description="Codecs tried when none are given, in priority order",
    )
    quality_threshold: float = Field(
        default=DEFAULT_QUALITY_THRESHOLD,
        description="Maximum acceptable dissimilarity score",
    )
    max_search_iterations: int = Field(
        default=DEFAULT_MAX_SEARCH_ITERATIONS,
        description="Maximum encode/score evaluations per codec",
    )
    codec_timeout: Optional[float] = Field(
        default=DEFAULT_CODEC_TIMEOUT, description="Per-codec timeout in seconds"
    )
    max_workers: Optional[int] = Field(
        default=None, description="Worker pool size (defaults to CPU count)"
    )

    # Source loading
    fetch_timeout: float = Field(
        default=DEFAULT_FETCH_TIMEOUT, description="HTTP source timeout in seconds"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="IMAGEOPTIMIZE_",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @field_validator("default_codecs", mode="before")
    @classmethod
    def parse_comma_separated_list(cls, v):
        """Parse comma-separated string into list."""
        if isinstance(v, str):
            return [item.strip().lower() for item in v.split(",") if item.strip()]
        return [str(item).strip().lower() for item in v]

    @field_validator("default_codecs")
    @classmethod
    def validate_codecs(cls, v):
        allowed = [codec.value for codec in CodecTarget]
        unknown = [item for item in v if item not in allowed]
        if unknown:
            raise ValueError(f"default_codecs entries must be among {allowed}")
        return v

    @field_validator("quality_threshold", "fetch_timeout")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    def to_optimization_config(self, **overrides) -> OptimizationConfig:
        """Build the optimization configuration, applying explicit overrides."""
        values = {
            "allowed_codecs": tuple(self.default_codecs),
            "quality_threshold": self.quality_threshold,
            "max_search_iterations": self.max_search_iterations,
            "codec_timeout": self.codec_timeout,
            "max_workers": self.max_workers,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return OptimizationConfig(**values)
