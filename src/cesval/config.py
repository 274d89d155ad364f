"""Configuration management for cesval using Pydantic models."""

import json
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_FILE_NAME = ".cesval.json"


class OutputFormat(str, Enum):
    """Report output formats."""
    TABLE = "table"
    JSON = "json"
    MARKDOWN = "markdown"


class LogLevel(str, Enum):
    """Logging levels."""
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"


class ValidationConfig(BaseModel):
    """Validation configuration section."""
    root_depth_limit: int = Field(alias="rootDepthLimit", default=2)
    toolset_depth_limit: int = Field(alias="toolsetDepthLimit", default=3)
    guardrail_depth_limit: int = Field(alias="guardrailDepthLimit", default=2)
    unsupported_directories: list[str] = Field(
        alias="unsupportedDirectories",
        default_factory=lambda: ["evaluationDatasets"]
    )
    warn_on_localhost: bool = Field(alias="warnOnLocalhost", default=True)
    fail_on_warnings: bool = Field(alias="failOnWarnings", default=False)

    @field_validator("root_depth_limit", "toolset_depth_limit", "guardrail_depth_limit")
    @classmethod
    def validate_depth_limit(cls, v):
        if v < 1:
            raise ValueError("depth limits must be >= 1")
        return v

    model_config = ConfigDict(populate_by_name=True)


class OutputConfig(BaseModel):
    """Output configuration section."""
    format: OutputFormat = OutputFormat.TABLE

    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class LoggingConfig(BaseModel):
    """Logging configuration section."""
    level: LogLevel = LogLevel.WARN

    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class CesvalConfig(BaseModel):
    """Complete cesval configuration model."""
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid")


def load_config(config_path: str | Path | None = None, start_dir: Path | None = None) -> CesvalConfig:
    """Load configuration from file with fallback to defaults.

    Args:
        config_path: Optional path to configuration file. If None, searches
                    start_dir (default: current directory) and its parents
                    for .cesval.json
        start_dir: Directory to start the search from

    Returns:
        CesvalConfig: Loaded and validated configuration

    Raises:
        ValueError: If configuration is invalid
    """
    if config_path is None:
        config_path = find_config_file(start_dir)
    else:
        config_path = Path(config_path)

    if config_path is None or not config_path.exists():
        return CesvalConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            config_data = json.load(f)
        return CesvalConfig(**config_data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file {config_path}: {e}")
    except Exception as e:
        raise ValueError(f"Failed to load config from {config_path}: {e}")


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Find .cesval.json by searching up the directory tree.

    Args:
        start_dir: Directory to start search from (default: current directory)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = Path(start_dir).resolve()

    while True:
        config_file = current / CONFIG_FILE_NAME
        if config_file.exists():
            return config_file

        parent = current.parent
        if parent == current:  # Reached root directory
            break
        current = parent

    return None
