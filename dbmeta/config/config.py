"""Configuration loading for the describe tool."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from pathlib import Path

import yaml


@dataclass
class DataSourceConfig:
    """Configuration for a single data source."""

    name: str
    type: str  # "postgresql", "duckdb"
    config: Dict[str, Any]


@dataclass
class DescribeConfig:
    """Overrides for the writer's type code tables and system schemas.

    Empty values keep the writer defaults; type code tables are merged code
    by code.
    """

    system_schemas: List[str] = field(default_factory=list)
    table_types: Dict[str, List[str]] = field(default_factory=dict)
    function_types: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class OutputConfig:
    """Table rendering settings."""

    footer: bool = True
    null_display: str = ""
    border: bool = True


@dataclass
class LoggingConfig:
    """Logging settings, see ``dbmeta.utils.logging.setup_logging``."""

    level: str = "WARNING"
    structured: bool = False
    file: Optional[str] = None


@dataclass
class Config:
    """Main configuration class."""

    datasources: Dict[str, DataSourceConfig] = field(default_factory=dict)
    describe: DescribeConfig = field(default_factory=DescribeConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def datasource(self, name: Optional[str] = None) -> DataSourceConfig:
        """Return the named data source, or the first one when no name is given.

        Raises:
            KeyError: If the name is unknown or no data source is configured
        """
        if name:
            if name not in self.datasources:
                raise KeyError(f"Unknown data source: {name}")
            return self.datasources[name]
        if not self.datasources:
            raise KeyError("No data sources configured")
        return next(iter(self.datasources.values()))


def load_config(config_path: str) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Parsed configuration

    Example YAML format:
        datasources:
          local:
            type: duckdb
            path: data/local.duckdb
            read_only: true

          warehouse:
            type: postgresql
            host: localhost
            port: 5432
            database: analytics
            user: me
            password: secret
            system_schemas: [information_schema, pg_catalog]

        describe:
          system_schemas: [information_schema]
          table_types:
            t: [TABLE, BASE TABLE]

        output:
          footer: true
          null_display: "(null)"

        logging:
          level: INFO
          structured: false
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    datasources = {}
    for name, ds_config in (data.get("datasources") or {}).items():
        ds_config = dict(ds_config)
        if "type" not in ds_config:
            raise ValueError(f"Data source {name} has no type")
        ds_type = ds_config.pop("type")
        datasources[name] = DataSourceConfig(name=name, type=ds_type, config=ds_config)

    describe = DescribeConfig(**(data.get("describe") or {}))
    output = OutputConfig(**(data.get("output") or {}))
    logging_config = LoggingConfig(**(data.get("logging") or {}))

    return Config(
        datasources=datasources,
        describe=describe,
        output=output,
        logging=logging_config,
    )
