"""DuckDB capability reader."""

from typing import Any, Callable, Dict, List, Optional, Set, Tuple
import logging

import duckdb
import sqlglot
from sqlglot import exp

from ..metadata.entities import (
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
    Schema,
    Sequence,
    Table,
)
from ..metadata.filter import Filter, escape_like
from ..metadata.readers import (
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
    SchemaReader,
    SequenceReader,
    TableReader,
)
from ..metadata.resultset import ResultSet
from .base import DatabaseReader, number, text

logger = logging.getLogger(__name__)

INTERNAL_DATABASES = ("system", "temp")

NUMERIC_PREFIXES = (
    "TINYINT",
    "SMALLINT",
    "INTEGER",
    "BIGINT",
    "HUGEINT",
    "UTINYINT",
    "USMALLINT",
    "UINTEGER",
    "UBIGINT",
    "UHUGEINT",
    "FLOAT",
    "DOUBLE",
    "DECIMAL",
    "REAL",
)

TOP_N_LIMIT = 10


def quote_table(schema: str, table: str) -> str:
    """Quote a schema-qualified table name for DuckDB."""
    return exp.table_(table, db=schema or None, quoted=True).sql(dialect="duckdb")


def quote_column(name: str) -> str:
    return exp.column(name, quoted=True).sql(dialect="duckdb")


def index_column_names(index_sql: str) -> List[str]:
    """Extract the indexed column names from a CREATE INDEX statement."""
    try:
        statement = sqlglot.parse_one(index_sql, dialect="duckdb")
    except sqlglot.errors.SqlglotError as e:
        logger.warning(f"Could not parse index definition {index_sql!r}: {e}")
        return []
    names: List[str] = []
    for column in statement.find_all(exp.Column):
        if column.name not in names:
            names.append(column.name)
    return names


def specific_name(name: str, parameter_types: Optional[List[Any]]) -> str:
    """Name identifying one overload of a DuckDB function."""
    types = [text(t) for t in (parameter_types or [])]
    return f"{name}({', '.join(types)})"


class DuckDBReader(
    DatabaseReader,
    CatalogReader,
    SchemaReader,
    TableReader,
    ColumnReader,
    IndexReader,
    IndexColumnReader,
    ConstraintReader,
    ConstraintColumnReader,
    SequenceReader,
    FunctionReader,
    FunctionColumnReader,
    ColumnStatReader,
):
    """DuckDB catalog reader.

    DuckDB has neither triggers nor privileges, so those capabilities are
    absent.
    """

    driver = "duckdb"
    placeholder = "?"

    def __init__(self, name: str, config: Dict[str, Any]):
        """Initialize DuckDB reader.

        Config should include:
            - path: Path to DuckDB database file (or :memory: for in-memory)
            - read_only: Whether to open in read-only mode (default: True)
            - system_schemas: Schemas hidden unless system objects are shown
        """
        super().__init__(name, config)
        self.db_path = config.get("path", ":memory:")
        self.read_only = config.get("read_only", True)

    def connect(self) -> None:
        """Establish connection to DuckDB."""
        logger.info(f"Connecting to DuckDB at '{self.db_path}'")
        self.connection = duckdb.connect(self.db_path, read_only=self.read_only)
        self._connected = True
        logger.info(f"Successfully connected to DuckDB: {self.name}")

    def disconnect(self) -> None:
        """Close DuckDB connection."""
        if self.connection:
            self.connection.close()
            logger.info(f"Disconnected from DuckDB: {self.name}")
            self.connection = None
            self._connected = False

    def get_capabilities(self) -> Set[Capability]:
        return {
            Capability.CATALOGS,
            Capability.SCHEMAS,
            Capability.TABLES,
            Capability.COLUMNS,
            Capability.INDEXES,
            Capability.INDEX_COLUMNS,
            Capability.CONSTRAINTS,
            Capability.CONSTRAINT_COLUMNS,
            Capability.SEQUENCES,
            Capability.FUNCTIONS,
            Capability.FUNCTION_COLUMNS,
            Capability.COLUMN_STATS,
        }

    def _engine_system_schemas(self) -> Set[str]:
        return {"information_schema", "pg_catalog"}

    def _open_cursor(self, sql: str, params: List[Any]) -> Tuple[Any, Callable[[], None]]:
        # a separate cursor per result set, so nested result sets stay valid
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql, params)
        except duckdb.Error:
            cursor.close()
            raise
        return cursor, cursor.close

    def _driver_errors(self):
        return (duckdb.Error,)

    def _database(self, where, column: str, f: Filter) -> None:
        if f.catalog:
            where.equals(column, f.catalog)
        else:
            where.add(f"{column} = current_database()")

    def catalogs(self, f: Filter) -> ResultSet[Catalog]:
        where = self.conditions().like("database_name", f.name)
        if not f.with_system:
            where.none_of("database_name", INTERNAL_DATABASES)
        sql = f"""
            SELECT database_name
            FROM duckdb_databases()
            WHERE {where.sql()}
            ORDER BY database_name
        """
        return self.query(Catalog, sql, where.params, lambda row: Catalog(catalog=row[0]))

    def schemas(self, f: Filter) -> ResultSet[Schema]:
        where = self.conditions().like("schema_name", f.name)
        if f.with_system:
            where.add("catalog_name IN (current_database(), 'system')")
        else:
            self._database(where, "catalog_name", f)
            where.none_of("schema_name", sorted(self.default_system_schemas()))
        sql = f"""
            SELECT DISTINCT schema_name
            FROM information_schema.schemata
            WHERE {where.sql()}
            ORDER BY schema_name
        """
        return self.query(Schema, sql, where.params, lambda row: Schema(schema=row[0]))

    def tables(self, f: Filter) -> ResultSet[Table]:
        where = self.conditions()
        if f.with_system and not f.catalog:
            where.add("t.table_catalog IN (current_database(), 'system')")
        else:
            self._database(where, "t.table_catalog", f)
        where.like("t.table_schema", f.schema).like("t.table_name", f.name)
        where.any_of("t.table_type", f.types)
        if not f.with_system:
            where.none_of("t.table_schema", sorted(self.default_system_schemas()))
        sql = f"""
            SELECT
                t.table_catalog,
                t.table_schema,
                t.table_name,
                t.table_type,
                COALESCE(d.estimated_size, 0),
                COALESCE(d.comment, '')
            FROM information_schema.tables t
            LEFT JOIN duckdb_tables() d
              ON d.database_name = t.table_catalog
             AND d.schema_name = t.table_schema
             AND d.table_name = t.table_name
            WHERE {where.sql()}
            ORDER BY t.table_schema, t.table_name
        """

        def build(row: tuple) -> Table:
            return Table(
                catalog=row[0],
                schema=row[1],
                name=row[2],
                type=row[3],
                rows=number(row[4]),
                comment=text(row[5]),
            )

        return self.query(Table, sql, where.params, build)

    def columns(self, f: Filter) -> ResultSet[Column]:
        where = self.conditions()
        self._database(where, "table_catalog", f)
        where.like("table_schema", f.schema).like("table_name", f.parent)
        where.like("column_name", f.name)
        sql = f"""
            SELECT
                table_catalog,
                table_schema,
                table_name,
                column_name,
                ordinal_position,
                column_default,
                is_nullable,
                data_type,
                COALESCE(character_maximum_length, numeric_precision),
                numeric_scale,
                numeric_precision_radix,
                character_octet_length
            FROM information_schema.columns
            WHERE {where.sql()}
            ORDER BY table_schema, table_name, ordinal_position
        """

        def build(row: tuple) -> Column:
            return Column(
                catalog=row[0],
                schema=row[1],
                table=row[2],
                name=row[3],
                ordinal_position=number(row[4]),
                default=text(row[5]),
                is_nullable=Bool.of(row[6]),
                data_type=text(row[7]),
                column_size=number(row[8]),
                decimal_digits=number(row[9]),
                num_prec_radix=number(row[10]),
                char_octet_length=number(row[11]),
            )

        return self.query(Column, sql, where.params, build)

    def _index_rows(self, f: Filter) -> Tuple[str, List[Any]]:
        where = self.conditions()
        self._database(where, "database_name", f)
        where.like("schema_name", f.schema).like("table_name", f.parent)
        where.like("index_name", f.name)
        if not f.with_system:
            where.none_of("schema_name", sorted(self.default_system_schemas()))
        sql = f"""
            SELECT database_name, schema_name, index_name, table_name,
                   is_unique, is_primary, sql
            FROM duckdb_indexes()
            WHERE {where.sql()}
            ORDER BY schema_name, table_name, index_name
        """
        return sql, where.params

    def indexes(self, f: Filter) -> ResultSet[Index]:
        sql, params = self._index_rows(f)

        def build(row: tuple) -> Index:
            return Index(
                catalog=row[0],
                schema=row[1],
                name=row[2],
                table=row[3],
                type="ART",
                is_unique=Bool.of(row[4]),
                is_primary=Bool.of(row[5]),
                columns=", ".join(index_column_names(text(row[6]))),
            )

        return self.query(Index, sql, params, build)

    def index_columns(self, f: Filter) -> ResultSet[IndexColumn]:
        sql, params = self._index_rows(Filter(
            catalog=f.catalog, schema=f.schema, parent=f.parent, name=f.name, with_system=True
        ))
        rows = self.fetch_all(sql, params)
        columns: List[IndexColumn] = []
        for row in rows:
            types = self._column_types(row[0], row[1], row[3])
            for position, name in enumerate(index_column_names(text(row[6])), start=1):
                columns.append(
                    IndexColumn(name=name, data_type=types.get(name, ""), ordinal_position=position)
                )
        return ResultSet.of(IndexColumn, columns)

    def _column_types(self, catalog: str, schema: str, table: str) -> Dict[str, str]:
        rows = self.fetch_all(
            """
            SELECT column_name, data_type
            FROM information_schema.columns
            WHERE table_catalog = ? AND table_schema = ? AND table_name = ?
            """,
            [catalog, schema, table],
        )
        return {row[0]: row[1] for row in rows}

    def _constraint_rows(self, f: Filter) -> Tuple[str, List[Any]]:
        where = self.conditions()
        self._database(where, "database_name", f)
        if f.reference:
            where.like("schema_name", f.schema).equals("referenced_table", f.reference)
        else:
            where.like("schema_name", f.schema).like("table_name", f.parent)
        where.like("constraint_name", f.name)
        sql = f"""
            SELECT database_name, schema_name, table_name, constraint_name,
                   constraint_type, expression, referenced_table,
                   constraint_column_names, referenced_column_names
            FROM duckdb_constraints()
            WHERE {where.sql()}
            ORDER BY schema_name, table_name, constraint_index
        """
        return sql, where.params

    def constraints(self, f: Filter) -> ResultSet[Constraint]:
        sql, params = self._constraint_rows(f)

        def build(row: tuple) -> Constraint:
            is_foreign = row[4] == "FOREIGN KEY"
            return Constraint(
                catalog=row[0],
                schema=row[1],
                table=row[2],
                name=text(row[3]),
                type=text(row[4]),
                check_clause=text(row[5]) if row[4] == "CHECK" else "",
                foreign_schema=row[1] if is_foreign else "",
                foreign_table=text(row[6]),
                update_rule="NO ACTION" if is_foreign else "",
                delete_rule="NO ACTION" if is_foreign else "",
            )

        return self.query(Constraint, sql, params, build)

    def constraint_columns(self, f: Filter) -> ResultSet[ConstraintColumn]:
        sql, params = self._constraint_rows(f)
        columns: List[ConstraintColumn] = []
        for row in self.fetch_all(sql, params):
            names = row[7] or []
            foreign = row[8] or []
            for position, name in enumerate(names):
                foreign_name = foreign[position] if position < len(foreign) else ""
                columns.append(
                    ConstraintColumn(name=name, foreign_name=foreign_name, ordinal_position=position + 1)
                )
        return ResultSet.of(ConstraintColumn, columns)

    def sequences(self, f: Filter) -> ResultSet[Sequence]:
        where = self.conditions()
        self._database(where, "database_name", f)
        where.like("schema_name", f.schema).like("sequence_name", f.name)
        sql = f"""
            SELECT database_name, schema_name, sequence_name, start_value,
                   min_value, max_value, increment_by, cycle
            FROM duckdb_sequences()
            WHERE {where.sql()}
            ORDER BY schema_name, sequence_name
        """

        def build(row: tuple) -> Sequence:
            return Sequence(
                catalog=row[0],
                schema=row[1],
                name=row[2],
                data_type="BIGINT",
                start=text(row[3]),
                min=text(row[4]),
                max=text(row[5]),
                increment=text(row[6]),
                cycles=Bool.of(row[7]),
            )

        return self.query(Sequence, sql, where.params, build)

    def _function_rows(self, f: Filter, name: str) -> Tuple[str, List[Any]]:
        where = self.conditions()
        if f.catalog:
            where.equals("database_name", f.catalog)
        where.like("schema_name", f.schema).like("function_name", name)
        where.any_of("kind", f.types)
        if not f.with_system:
            where.add("NOT internal")
        sql = f"""
            SELECT * FROM (
                SELECT
                    database_name,
                    schema_name,
                    function_name,
                    CASE function_type
                        WHEN 'aggregate' THEN 'AGGREGATE'
                        WHEN 'pragma' THEN 'PROCEDURE'
                        ELSE 'FUNCTION'
                    END AS kind,
                    return_type,
                    parameters,
                    parameter_types,
                    macro_definition,
                    has_side_effects,
                    function_type,
                    internal
                FROM duckdb_functions()
            ) f
            WHERE {where.sql()}
            ORDER BY schema_name, function_name
        """
        return sql, where.params

    def functions(self, f: Filter) -> ResultSet[Function]:
        sql, params = self._function_rows(f, f.name)

        def build(row: tuple) -> Function:
            is_macro = text(row[9]).endswith("macro")
            return Function(
                catalog=row[0],
                schema=row[1],
                name=row[2],
                specific_name=specific_name(row[2], row[6]),
                type=row[3],
                result_type=text(row[4]),
                arg_types=", ".join(text(t) for t in (row[6] or [])),
                volatility="VOLATILE" if row[8] else "",
                language="SQL" if is_macro else "",
                source=text(row[7]),
            )

        return self.query(Function, sql, params, build)

    def function_columns(self, f: Filter) -> ResultSet[FunctionColumn]:
        name = f.parent.split("(", 1)[0]
        sql, params = self._function_rows(
            Filter(catalog=f.catalog, schema=escape_like(f.schema), with_system=True),
            escape_like(name),
        )
        columns: List[FunctionColumn] = []
        for row in self.fetch_all(sql, params):
            if specific_name(row[2], row[6]) != f.parent:
                continue
            columns.append(
                FunctionColumn(name="", type="OUT", data_type=text(row[4]), ordinal_position=0)
            )
            names = row[5] or []
            types = row[6] or []
            for position, parameter in enumerate(names):
                data_type = text(types[position]) if position < len(types) else ""
                columns.append(
                    FunctionColumn(
                        name=text(parameter),
                        type="IN",
                        data_type=data_type,
                        ordinal_position=position + 1,
                    )
                )
            break
        return ResultSet.of(FunctionColumn, columns)

    def column_stats(self, f: Filter) -> ResultSet[ColumnStat]:
        """Compute statistics by scanning the matching tables.

        DuckDB keeps no planner statistics, so every column is aggregated
        directly; top values are only collected for "extended" requests.
        """
        where = self.conditions()
        self._database(where, "c.table_catalog", f)
        where.like("c.table_schema", f.schema).like("c.table_name", f.parent)
        where.add("t.table_type = 'BASE TABLE'")
        sql = f"""
            SELECT c.table_schema, c.table_name, c.column_name, c.data_type
            FROM information_schema.columns c
            JOIN information_schema.tables t
              ON t.table_catalog = c.table_catalog
             AND t.table_schema = c.table_schema
             AND t.table_name = c.table_name
            WHERE {where.sql()}
            ORDER BY c.table_schema, c.table_name, c.ordinal_position
        """
        tables: Dict[Tuple[str, str], List[Tuple[str, str]]] = {}
        for schema, table, column, data_type in self.fetch_all(sql, where.params):
            tables.setdefault((schema, table), []).append((column, data_type))

        extended = "extended" in f.types
        stats: List[ColumnStat] = []
        for (schema, table), columns in tables.items():
            stats.extend(self._table_column_stats(schema, table, columns, extended))
        return ResultSet.of(ColumnStat, stats)

    def _table_column_stats(
        self, schema: str, table: str, columns: List[Tuple[str, str]], extended: bool
    ) -> List[ColumnStat]:
        source = quote_table(schema, table)
        row_count = self.fetch_all(f"SELECT COUNT(*) FROM {source}", [])[0][0]
        stats = []
        for column, data_type in columns:
            stats.append(
                self._single_column_stats(
                    schema, table, source, column, data_type, row_count, extended
                )
            )
        return stats

    def _single_column_stats(
        self,
        schema: str,
        table: str,
        source: str,
        column: str,
        data_type: str,
        row_count: int,
        extended: bool,
    ) -> ColumnStat:
        col = quote_column(column)
        is_numeric = data_type.upper().startswith(NUMERIC_PREFIXES)
        mean = f"CAST(AVG({col}) AS VARCHAR)" if is_numeric else "NULL"
        result = self.fetch_all(
            f"""
            SELECT
                COUNT(DISTINCT {col}),
                COUNT(*) - COUNT({col}),
                AVG(LENGTH(CAST({col} AS VARCHAR))),
                CAST(MIN({col}) AS VARCHAR),
                CAST(MAX({col}) AS VARCHAR),
                {mean}
            FROM {source}
            """,
            [],
        )[0]
        top_n: List[str] = []
        freqs: List[float] = []
        if extended and row_count > 0:
            for value, count in self._top_values(source, col):
                top_n.append(text(value))
                freqs.append(count / row_count)
        return ColumnStat(
            schema=schema,
            table=table,
            name=column,
            num_distinct=number(result[0]),
            null_frac=(result[1] / row_count) if row_count > 0 else 0.0,
            avg_width=int(round(result[2] or 0)),
            min=text(result[3]),
            max=text(result[4]),
            mean=text(result[5]),
            top_n=top_n,
            top_n_freqs=freqs,
        )

    def _top_values(self, source: str, col: str) -> List[tuple]:
        return self.fetch_all(
            f"""
            SELECT CAST({col} AS VARCHAR) AS value, COUNT(*) AS n
            FROM {source}
            WHERE {col} IS NOT NULL
            GROUP BY 1
            ORDER BY n DESC, value
            LIMIT {TOP_N_LIMIT}
            """,
            [],
        )
