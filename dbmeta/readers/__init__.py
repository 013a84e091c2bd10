"""Concrete capability readers."""

from .base import DatabaseReader
from .duckdb import DuckDBReader
from .postgresql import PostgreSQLReader

READER_TYPES = {
    "duckdb": DuckDBReader,
    "postgresql": PostgreSQLReader,
    "postgres": PostgreSQLReader,
}


def create_reader(ds_config) -> DatabaseReader:
    """Build the reader for a configured data source.

    Raises:
        ValueError: If the data source type has no reader
    """
    reader_type = READER_TYPES.get(ds_config.type)
    if reader_type is None:
        raise ValueError(f"Unsupported data source type: {ds_config.type}")
    return reader_type(ds_config.name, ds_config.config)


__all__ = [
    "DatabaseReader",
    "DuckDBReader",
    "PostgreSQLReader",
    "READER_TYPES",
    "create_reader",
]
