"""Describe reports built on capability readers."""

from .writer import (
    RELATION_NOT_FOUND,
    Writer,
    WriterConfig,
    distinct_fraction,
    format_function_argument,
    select_types,
    truncate_top_n,
)

__all__ = [
    "RELATION_NOT_FOUND",
    "Writer",
    "WriterConfig",
    "distinct_fraction",
    "format_function_argument",
    "select_types",
    "truncate_top_n",
]
