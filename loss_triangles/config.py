"""Configuration management using Pydantic v2 models.

The configuration is split into small sections that are composed into a
master :class:`Config`:

    ingestion: where the spreadsheets live and how their columns are named.
    triangle: which metric to aggregate and how to treat anomalies.
    output: where exports and charts are written.
    logging: level, destinations and format of log messages.

Examples:
    Defaults, aggregating paid losses from ``./data/*.xlsx``::

        config = Config()

    Loading from file::

        config = Config.from_yaml(Path("triangle.yaml"))

    Overriding a base config::

        incurred = Config.from_dict({"triangle": {"metric_column": "incurred"}}, config)
"""

import logging
from pathlib import Path
import re
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
import yaml

FILE_YEAR = "file_year"
LOSS_DATE = "loss_date"


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override dictionary into base dictionary.

    Args:
        base: Base dictionary providing default values.
        override: Override dictionary whose values take precedence.

    Returns:
        New merged dictionary (neither input is mutated).
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class IngestionConfig(BaseModel):
    """Source discovery and column normalization settings.

    ``column_map`` maps names found in the source spreadsheets to the
    canonical names used downstream (``file_year``, ``loss_date`` and the
    metric column). Columns not mentioned keep their names.
    """

    source_directory: Path = Field(default=Path("data"), description="Directory of source files")
    file_pattern: str = Field(default="*.xlsx", description="Glob pattern for source files")
    sheet_name: Optional[str] = Field(
        default=None, description="Worksheet to read (None=first sheet)"
    )
    column_map: Dict[str, str] = Field(
        default_factory=dict, description="Source column name -> canonical column name"
    )
    file_year_pattern: str = Field(
        default=r"(\d{4})", description="Regex with one group capturing the file year"
    )
    file_year: Optional[int] = Field(
        default=None, description="Evaluation year applied to every source (overrides filenames)"
    )
    max_workers: int = Field(default=1, ge=1, le=64, description="Parallel source readers")

    @field_validator("file_year_pattern")
    @classmethod
    def validate_file_year_pattern(cls, v: str) -> str:
        """Check that the pattern compiles and captures exactly one group.

        Args:
            v: Regular expression to validate.

        Returns:
            Validated pattern.

        Raises:
            ValueError: If the pattern is invalid or has the wrong number of groups.
        """
        try:
            compiled = re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid file_year_pattern {v!r}: {e}") from e
        if compiled.groups != 1:
            raise ValueError(
                f"file_year_pattern must have exactly one capture group, got {compiled.groups}"
            )
        return v


class TriangleConfig(BaseModel):
    """Triangle construction settings."""

    metric_column: str = Field(default="paid", min_length=1, description="Metric to aggregate")
    months_per_period: int = Field(
        default=12, ge=1, le=12, description="Months per unit of origin/evaluation period"
    )
    negative_maturity_policy: Literal["warn", "reject"] = Field(
        default="warn", description="Handling of records evaluated before their origin"
    )

    @field_validator("metric_column")
    @classmethod
    def validate_metric_column(cls, v: str) -> str:
        """Reject metric names that collide with the key columns.

        Args:
            v: Metric column name.

        Returns:
            Validated name.

        Raises:
            ValueError: If the name is one of the reserved key columns.
        """
        reserved = {FILE_YEAR, LOSS_DATE, "origin_period", "maturity_offset"}
        if v in reserved:
            raise ValueError(f"metric_column cannot be a key column: {v}")
        return v


class OutputConfig(BaseModel):
    """Output configuration for exports and charts."""

    output_directory: str = Field(default="outputs", description="Directory for saving results")
    file_format: Literal["csv", "xlsx"] = Field(default="csv", description="Triangle export format")
    export: bool = Field(default=True, description="Write the triangle to disk")
    save_plots: bool = Field(default=False, description="Save development charts")
    plot_format: Literal["png", "pdf", "svg"] = Field(default="png", description="Chart format")

    @property
    def output_path(self) -> Path:
        """Get output directory as Path object."""
        return Path(self.output_directory)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Controls logging behavior including level, output destinations,
    and message formatting.
    """

    enabled: bool = Field(default=True, description="Enable logging")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path (None=no file logging)"
    )
    console_output: bool = Field(default=True, description="Log to console")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )


class Config(BaseModel):
    """Complete configuration for a triangle run."""

    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    triangle: TriangleConfig = Field(default_factory=TriangleConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def check_column_map_targets(self) -> "Config":
        """Ensure the column map does not send two sources to one canonical name."""
        targets = list(self.ingestion.column_map.values())
        duplicates = sorted({t for t in targets if targets.count(t) > 1})
        if duplicates:
            raise ValueError(f"column_map maps several source columns to: {duplicates}")
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            Config object with validated parameters.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ValueError: If the document root is not a mapping.
            yaml.YAMLError: If the file is not valid YAML.
            ValidationError: If configuration is invalid.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(
                f"Configuration file {path} must contain a mapping, got {type(data).__name__}"
            )

        # Remove private anchors if present
        data = {k: v for k, v in data.items() if not k.startswith("_")}

        return cls(**data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_config: Optional["Config"] = None) -> "Config":
        """Create config from dictionary, optionally overriding base config.

        Args:
            data: Dictionary with configuration parameters.
            base_config: Optional base configuration to override.

        Returns:
            Config object.
        """
        if base_config is None:
            return cls(**data)
        merged = deep_merge(base_config.model_dump(), data)
        return cls(**merged)

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file.

        Args:
            path: Destination path.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, sort_keys=False)


def setup_logging(config: LoggingConfig) -> logging.Logger:
    """Configure the package logger from a :class:`LoggingConfig`.

    Handlers previously installed by this function are replaced, so calling
    it repeatedly does not duplicate output.

    Args:
        config: Logging settings.

    Returns:
        The configured ``loss_triangles`` logger.
    """
    logger = logging.getLogger("loss_triangles")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if not config.enabled:
        logger.addHandler(logging.NullHandler())
        logger.propagate = False
        return logger

    logger.setLevel(config.level)
    logger.propagate = True
    formatter = logging.Formatter(config.format)
    if config.console_output:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
    if config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    return logger
