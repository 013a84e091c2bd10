"""Catalog metadata model: filters, entities, result sets and reader interfaces."""

from .entities import (
    Bool,
    Catalog,
    Column,
    ColumnStat,
    Constraint,
    ConstraintColumn,
    Function,
    FunctionColumn,
    Index,
    IndexColumn,
    PrivilegeSummary,
    Schema,
    Sequence,
    Table,
    Trigger,
)
from .errors import (
    CapabilityAbsentError,
    MetadataError,
    NotSupportedError,
    PatternParseError,
    QueryFailedError,
)
from .filter import Filter, escape_like, matches_like, parse_pattern, qualified_identifier
from .readers import (
    INTERFACES,
    Capability,
    CatalogReader,
    ColumnReader,
    ColumnStatReader,
    ConstraintColumnReader,
    ConstraintReader,
    FunctionColumnReader,
    FunctionReader,
    IndexColumnReader,
    IndexReader,
    MetadataReader,
    PrivilegeSummaryReader,
    SchemaReader,
    SequenceReader,
    TableReader,
    TriggerReader,
)
from .resultset import ResultSet

__all__ = [
    "Bool",
    "Catalog",
    "Column",
    "ColumnStat",
    "Constraint",
    "ConstraintColumn",
    "Function",
    "FunctionColumn",
    "Index",
    "IndexColumn",
    "PrivilegeSummary",
    "Schema",
    "Sequence",
    "Table",
    "Trigger",
    "CapabilityAbsentError",
    "MetadataError",
    "NotSupportedError",
    "PatternParseError",
    "QueryFailedError",
    "Filter",
    "escape_like",
    "matches_like",
    "parse_pattern",
    "qualified_identifier",
    "INTERFACES",
    "Capability",
    "CatalogReader",
    "ColumnReader",
    "ColumnStatReader",
    "ConstraintColumnReader",
    "ConstraintReader",
    "FunctionColumnReader",
    "FunctionReader",
    "IndexColumnReader",
    "IndexReader",
    "MetadataReader",
    "PrivilegeSummaryReader",
    "SchemaReader",
    "SequenceReader",
    "TableReader",
    "TriggerReader",
    "ResultSet",
]
