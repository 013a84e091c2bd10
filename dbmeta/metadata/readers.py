"""Capability reader interfaces and capability detection."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Set, Type

from .entities import (
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
from .filter import Filter
from .resultset import ResultSet


class Capability(Enum):
    """Catalog concepts a reader may be able to query."""

    CATALOGS = "catalogs"
    SCHEMAS = "schemas"
    TABLES = "tables"
    COLUMNS = "columns"
    INDEXES = "indexes"
    INDEX_COLUMNS = "index_columns"
    CONSTRAINTS = "constraints"
    CONSTRAINT_COLUMNS = "constraint_columns"
    SEQUENCES = "sequences"
    TRIGGERS = "triggers"
    FUNCTIONS = "functions"
    FUNCTION_COLUMNS = "function_columns"
    COLUMN_STATS = "column_stats"
    PRIVILEGE_SUMMARIES = "privilege_summaries"


class CatalogReader(ABC):
    @abstractmethod
    def catalogs(self, f: Filter) -> ResultSet[Catalog]:
        """List catalogs (databases)."""
        pass


class SchemaReader(ABC):
    @abstractmethod
    def schemas(self, f: Filter) -> ResultSet[Schema]:
        """List schemas matching ``f.name``."""
        pass


class TableReader(ABC):
    @abstractmethod
    def tables(self, f: Filter) -> ResultSet[Table]:
        """List relations matching ``f.schema``, ``f.name`` and ``f.types``."""
        pass


class ColumnReader(ABC):
    @abstractmethod
    def columns(self, f: Filter) -> ResultSet[Column]:
        """List columns of relations matching ``f.parent``."""
        pass


class IndexReader(ABC):
    @abstractmethod
    def indexes(self, f: Filter) -> ResultSet[Index]:
        """List indexes matching ``f.name``, on tables matching ``f.parent``."""
        pass


class IndexColumnReader(ABC):
    @abstractmethod
    def index_columns(self, f: Filter) -> ResultSet[IndexColumn]:
        """List columns of index ``f.name`` on table ``f.parent``."""
        pass


class ConstraintReader(ABC):
    @abstractmethod
    def constraints(self, f: Filter) -> ResultSet[Constraint]:
        """List constraints owned by ``f.parent`` or referencing ``f.reference``."""
        pass


class ConstraintColumnReader(ABC):
    @abstractmethod
    def constraint_columns(self, f: Filter) -> ResultSet[ConstraintColumn]:
        """List columns of constraint ``f.name`` on table ``f.parent``."""
        pass


class SequenceReader(ABC):
    @abstractmethod
    def sequences(self, f: Filter) -> ResultSet[Sequence]:
        """List sequences matching ``f.schema`` and ``f.name``."""
        pass


class TriggerReader(ABC):
    @abstractmethod
    def triggers(self, f: Filter) -> ResultSet[Trigger]:
        """List triggers on tables matching ``f.parent``."""
        pass


class FunctionReader(ABC):
    @abstractmethod
    def functions(self, f: Filter) -> ResultSet[Function]:
        """List functions matching ``f.schema``, ``f.name`` and ``f.types``."""
        pass


class FunctionColumnReader(ABC):
    @abstractmethod
    def function_columns(self, f: Filter) -> ResultSet[FunctionColumn]:
        """List parameters of the function with specific name ``f.parent``."""
        pass


class ColumnStatReader(ABC):
    @abstractmethod
    def column_stats(self, f: Filter) -> ResultSet[ColumnStat]:
        """Return per-column statistics of tables matching ``f.parent``."""
        pass


class PrivilegeSummaryReader(ABC):
    @abstractmethod
    def privilege_summaries(self, f: Filter) -> ResultSet[PrivilegeSummary]:
        """Summarize privileges on relations matching ``f.schema``/``f.name``."""
        pass


INTERFACES: Dict[Capability, Type] = {
    Capability.CATALOGS: CatalogReader,
    Capability.SCHEMAS: SchemaReader,
    Capability.TABLES: TableReader,
    Capability.COLUMNS: ColumnReader,
    Capability.INDEXES: IndexReader,
    Capability.INDEX_COLUMNS: IndexColumnReader,
    Capability.CONSTRAINTS: ConstraintReader,
    Capability.CONSTRAINT_COLUMNS: ConstraintColumnReader,
    Capability.SEQUENCES: SequenceReader,
    Capability.TRIGGERS: TriggerReader,
    Capability.FUNCTIONS: FunctionReader,
    Capability.FUNCTION_COLUMNS: FunctionColumnReader,
    Capability.COLUMN_STATS: ColumnStatReader,
    Capability.PRIVILEGE_SUMMARIES: PrivilegeSummaryReader,
}


class MetadataReader(ABC):
    """Base class of every concrete reader.

    A reader subclasses this plus the interfaces of the catalog concepts its
    engine supports, and declares those concepts in ``get_capabilities()``.
    """

    driver: str = ""

    @abstractmethod
    def get_capabilities(self) -> Set[Capability]:
        """Return the set of capabilities this reader declares."""
        pass

    def supports_capability(self, capability: Capability) -> bool:
        """Check if a capability is declared and its interface implemented.

        Args:
            capability: Capability to check

        Returns:
            True if the matching reader method may be called
        """
        if capability not in self.get_capabilities():
            return False
        return isinstance(self, INTERFACES[capability])

    def supports_all(self, *capabilities: Capability) -> bool:
        for capability in capabilities:
            if not self.supports_capability(capability):
                return False
        return True

    def default_system_schemas(self) -> Set[str]:
        """Schemas hidden from listings unless system objects are requested."""
        return {"information_schema"}
