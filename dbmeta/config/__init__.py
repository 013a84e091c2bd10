"""Configuration management."""

from .config import (
    Config,
    DataSourceConfig,
    DescribeConfig,
    OutputConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "Config",
    "DataSourceConfig",
    "DescribeConfig",
    "OutputConfig",
    "LoggingConfig",
    "load_config",
]
