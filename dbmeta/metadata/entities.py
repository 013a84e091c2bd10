"""Engine-agnostic catalog entity records."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple, Type


class Bool(str, Enum):
    """Tri-state flag as reported by catalog views."""

    YES = "YES"
    NO = "NO"
    UNKNOWN = ""

    @classmethod
    def of(cls, value: Any) -> "Bool":
        """Normalize driver values (bool, 'YES'/'NO', None) into a flag."""
        if value is None or value == "":
            return cls.UNKNOWN
        if isinstance(value, str):
            return cls.YES if value.upper() in ("YES", "Y", "TRUE", "T") else cls.NO
        return cls.YES if value else cls.NO

    def __str__(self) -> str:
        return self.value


@dataclass
class Catalog:
    """A database (top level namespace)."""

    catalog: str


@dataclass
class Schema:
    """A schema inside a catalog."""

    schema: str
    catalog: str = ""


@dataclass
class Table:
    """A relation: table, view, sequence-like object."""

    name: str
    schema: str = ""
    catalog: str = ""
    type: str = ""
    rows: int = 0
    size: str = ""
    comment: str = ""


@dataclass
class Column:
    """A column of a relation."""

    name: str
    table: str
    schema: str = ""
    catalog: str = ""
    data_type: str = ""
    is_nullable: Bool = Bool.UNKNOWN
    default: str = ""
    ordinal_position: int = 0
    column_size: int = 0
    decimal_digits: int = 0
    num_prec_radix: int = 0
    char_octet_length: int = 0


@dataclass
class Index:
    """An index defined on a table."""

    name: str
    table: str
    schema: str = ""
    catalog: str = ""
    type: str = ""
    is_primary: Bool = Bool.UNKNOWN
    is_unique: Bool = Bool.UNKNOWN
    columns: str = ""


@dataclass
class IndexColumn:
    """A column covered by an index."""

    name: str
    data_type: str = ""
    ordinal_position: int = 0


@dataclass
class Constraint:
    """A table constraint (CHECK, FOREIGN KEY, PRIMARY KEY, UNIQUE...)."""

    name: str
    table: str
    schema: str = ""
    catalog: str = ""
    type: str = ""
    check_clause: str = ""
    foreign_catalog: str = ""
    foreign_schema: str = ""
    foreign_table: str = ""
    foreign_name: str = ""
    update_rule: str = ""
    delete_rule: str = ""


@dataclass
class ConstraintColumn:
    """A column of a constraint and the column it references."""

    name: str
    foreign_name: str = ""
    ordinal_position: int = 0


@dataclass
class Sequence:
    """A sequence generator."""

    name: str
    schema: str = ""
    catalog: str = ""
    data_type: str = ""
    start: str = ""
    min: str = ""
    max: str = ""
    increment: str = ""
    cycles: Bool = Bool.UNKNOWN


@dataclass
class Trigger:
    """A trigger attached to a table."""

    name: str
    definition: str = ""
    table: str = ""
    schema: str = ""
    catalog: str = ""


@dataclass
class Function:
    """A function, aggregate or procedure."""

    name: str
    schema: str = ""
    catalog: str = ""
    specific_name: str = ""
    result_type: str = ""
    arg_types: str = ""
    type: str = ""
    volatility: str = ""
    security: str = ""
    language: str = ""
    source: str = ""


@dataclass
class FunctionColumn:
    """A parameter of a function; ordinal position 0 is the result."""

    name: str
    type: str = ""
    data_type: str = ""
    ordinal_position: int = 0


@dataclass
class ColumnStat:
    """Planner statistics of a single column."""

    name: str
    table: str
    schema: str = ""
    catalog: str = ""
    avg_width: int = 0
    null_frac: float = 0.0
    num_distinct: int = 0
    min: str = ""
    max: str = ""
    mean: str = ""
    top_n: List[str] = field(default_factory=list)
    top_n_freqs: List[float] = field(default_factory=list)

    def __post_init__(self):
        if len(self.top_n) != len(self.top_n_freqs):
            raise ValueError(
                f"column {self.name}: {len(self.top_n)} top values "
                f"but {len(self.top_n_freqs)} frequencies"
            )


@dataclass
class PrivilegeSummary:
    """Access privileges granted on a relation and its columns."""

    name: str
    schema: str = ""
    catalog: str = ""
    object_type: str = ""
    object_privileges: str = ""
    column_privileges: str = ""


# (header, attribute) pairs used when a result set is rendered as-is
DEFAULT_COLUMNS: Dict[Type, List[Tuple[str, str]]] = {
    Catalog: [("Name", "catalog")],
    Schema: [("Name", "schema")],
    Table: [("Schema", "schema"), ("Name", "name"), ("Type", "type")],
    Column: [
        ("Name", "name"),
        ("Type", "data_type"),
        ("Nullable", "is_nullable"),
        ("Default", "default"),
    ],
    Index: [
        ("Schema", "schema"),
        ("Name", "name"),
        ("Type", "type"),
        ("Table", "table"),
    ],
    IndexColumn: [("Name", "name"), ("Type", "data_type")],
    Constraint: [
        ("Schema", "schema"),
        ("Table", "table"),
        ("Name", "name"),
        ("Type", "type"),
    ],
    ConstraintColumn: [("Name", "name"), ("Foreign name", "foreign_name")],
    Sequence: [
        ("Type", "data_type"),
        ("Start", "start"),
        ("Min", "min"),
        ("Max", "max"),
        ("Increment", "increment"),
        ("Cycles?", "cycles"),
    ],
    Trigger: [("Name", "name"), ("Definition", "definition")],
    Function: [
        ("Schema", "schema"),
        ("Name", "name"),
        ("Result data type", "result_type"),
        ("Argument data types", "arg_types"),
        ("Type", "type"),
    ],
    FunctionColumn: [
        ("Name", "name"),
        ("Mode", "type"),
        ("Type", "data_type"),
        ("Position", "ordinal_position"),
    ],
    ColumnStat: [
        ("Schema", "schema"),
        ("Table", "table"),
        ("Name", "name"),
        ("Average width", "avg_width"),
        ("Nulls fraction", "null_frac"),
        ("Distinct values", "num_distinct"),
    ],
    PrivilegeSummary: [
        ("Schema", "schema"),
        ("Name", "name"),
        ("Type", "object_type"),
        ("Access privileges", "object_privileges"),
        ("Column privileges", "column_privileges"),
    ],
}
