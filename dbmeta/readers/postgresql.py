"""PostgreSQL capability reader."""

from typing import Any, Callable, Dict, List, Set, Tuple
import logging

import psycopg2
from psycopg2 import pool

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
    PrivilegeSummary,
    Schema,
    Sequence,
    Table,
    Trigger,
)
from ..metadata.errors import NotSupportedError
from ..metadata.filter import Filter
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
    PrivilegeSummaryReader,
    SchemaReader,
    SequenceReader,
    TableReader,
    TriggerReader,
)
from ..metadata.resultset import ResultSet
from .base import DatabaseReader, number, text

logger = logging.getLogger(__name__)

# pg_stats exposes everything needed from 9.2 on
MIN_STATS_VERSION = 90200

RELATION_TYPE = """
    CASE c.relkind
        WHEN 'r' THEN 'BASE TABLE'
        WHEN 'p' THEN 'BASE TABLE'
        WHEN 'v' THEN 'VIEW'
        WHEN 'm' THEN 'MATERIALIZED VIEW'
        WHEN 'S' THEN 'SEQUENCE'
        WHEN 'f' THEN 'FOREIGN TABLE'
    END"""

FK_RULE = """
    CASE {0}
        WHEN 'a' THEN 'NO ACTION'
        WHEN 'r' THEN 'RESTRICT'
        WHEN 'c' THEN 'CASCADE'
        WHEN 'n' THEN 'SET NULL'
        WHEN 'd' THEN 'SET DEFAULT'
        ELSE ''
    END"""


class PostgreSQLReader(
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
    TriggerReader,
    FunctionReader,
    FunctionColumnReader,
    ColumnStatReader,
    PrivilegeSummaryReader,
):
    """PostgreSQL catalog reader with connection pooling.

    Every open result set holds one pooled connection until it is closed.
    """

    driver = "postgres"
    placeholder = "%s"

    def __init__(self, name: str, config: Dict[str, Any]):
        """Initialize PostgreSQL reader.

        Config should include:
            - host: Database host
            - port: Database port
            - database: Database name
            - user: Username
            - password: Password
            - min_connections: Minimum connections in pool (default: 1)
            - max_connections: Maximum connections in pool (default: 5)
        """
        super().__init__(name, config)
        self._pool = None
        self._min_connections = config.get("min_connections", 1)
        self._max_connections = config.get("max_connections", 5)
        self._server_version = None

    def connect(self) -> None:
        """Establish connection pool to PostgreSQL."""
        try:
            logger.info(
                f"Connecting to PostgreSQL database '{self.config['database']}' at {self.config['host']}"
            )
            self._pool = pool.ThreadedConnectionPool(
                self._min_connections,
                self._max_connections,
                host=self.config["host"],
                port=self.config.get("port", 5432),
                database=self.config["database"],
                user=self.config["user"],
                password=self.config.get("password", ""),
            )
            conn = self._pool.getconn()
            self._server_version = conn.server_version
            self._pool.putconn(conn)
            self._connected = True
            logger.info(
                f"Successfully connected to PostgreSQL: {self.name} (server {self._server_version})"
            )
        except psycopg2.Error as e:
            logger.error(f"Failed to connect to PostgreSQL {self.name}: {e}")
            raise ConnectionError(f"PostgreSQL connection failed: {e}") from e

    def disconnect(self) -> None:
        """Close all connections in the pool."""
        if self._pool:
            self._pool.closeall()
            logger.info(f"Disconnected from PostgreSQL: {self.name}")
            self._pool = None
            self._connected = False

    def get_capabilities(self) -> Set[Capability]:
        return set(Capability)

    def _engine_system_schemas(self) -> Set[str]:
        return {"information_schema", "pg_catalog"}

    @property
    def server_version(self) -> int:
        self.ensure_connected()
        return self._server_version or 0

    def _open_cursor(self, sql: str, params: List[Any]) -> Tuple[Any, Callable[[], None]]:
        if not self._pool:
            raise RuntimeError(f"Not connected to {self.name}")
        conn = self._pool.getconn()
        conn.autocommit = True
        cursor = conn.cursor()

        def release() -> None:
            cursor.close()
            self._pool.putconn(conn)

        try:
            cursor.execute(sql, params or None)
        except psycopg2.Error:
            release()
            raise
        return cursor, release

    def _driver_errors(self):
        return (psycopg2.Error,)

    def _hide_system(self, where, column: str, f: Filter) -> None:
        if not f.with_system:
            where.none_of(column, sorted(self.default_system_schemas()))
            where.add(f"{column} !~ '^pg_'")

    def catalogs(self, f: Filter) -> ResultSet[Catalog]:
        where = self.conditions().like("datname", f.name)
        if not f.with_system:
            where.add("NOT datistemplate")
        sql = f"""
            SELECT datname
            FROM pg_catalog.pg_database
            WHERE {where.sql()}
            ORDER BY datname
        """
        return self.query(Catalog, sql, where.params, lambda row: Catalog(catalog=row[0]))

    def schemas(self, f: Filter) -> ResultSet[Schema]:
        where = self.conditions().like("nspname", f.name)
        self._hide_system(where, "nspname", f)
        sql = f"""
            SELECT current_database(), nspname
            FROM pg_catalog.pg_namespace
            WHERE {where.sql()}
            ORDER BY nspname
        """
        return self.query(
            Schema, sql, where.params, lambda row: Schema(catalog=row[0], schema=row[1])
        )

    def tables(self, f: Filter) -> ResultSet[Table]:
        where = self.conditions()
        where.like("table_schema", f.schema).like("table_name", f.name)
        where.any_of("table_type", f.types)
        self._hide_system(where, "table_schema", f)
        sql = f"""
            SELECT * FROM (
                SELECT
                    current_database() AS table_catalog,
                    n.nspname AS table_schema,
                    c.relname AS table_name,
                    {RELATION_TYPE} AS table_type,
                    c.reltuples::bigint AS row_estimate,
                    pg_size_pretty(pg_total_relation_size(c.oid)) AS size,
                    COALESCE(obj_description(c.oid, 'pg_class'), '') AS comment
                FROM pg_catalog.pg_class c
                JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
                WHERE c.relkind IN ('r', 'p', 'v', 'm', 'S', 'f')
            ) t
            WHERE {where.sql()}
            ORDER BY table_schema, table_name
        """

        def build(row: tuple) -> Table:
            return Table(
                catalog=row[0],
                schema=row[1],
                name=row[2],
                type=text(row[3]),
                rows=max(number(row[4]), 0),
                size=text(row[5]),
                comment=text(row[6]),
            )

        return self.query(Table, sql, where.params, build)

    def columns(self, f: Filter) -> ResultSet[Column]:
        where = self.conditions()
        where.add("table_catalog = current_database()")
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

    def _index_conditions(self, f: Filter):
        where = self.conditions()
        where.like("n.nspname", f.schema).like("t.relname", f.parent)
        where.like("i.relname", f.name)
        self._hide_system(where, "n.nspname", f)
        return where

    def indexes(self, f: Filter) -> ResultSet[Index]:
        where = self._index_conditions(f)
        sql = f"""
            SELECT
                current_database(),
                n.nspname,
                i.relname,
                t.relname,
                upper(am.amname),
                ix.indisprimary,
                ix.indisunique,
                array_to_string(ARRAY(
                    SELECT a.attname
                    FROM unnest(ix.indkey::int2[]) WITH ORDINALITY AS k(attnum, ord)
                    JOIN pg_catalog.pg_attribute a
                      ON a.attrelid = t.oid AND a.attnum = k.attnum
                    ORDER BY k.ord
                ), ', ')
            FROM pg_catalog.pg_index ix
            JOIN pg_catalog.pg_class i ON i.oid = ix.indexrelid
            JOIN pg_catalog.pg_class t ON t.oid = ix.indrelid
            JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
            JOIN pg_catalog.pg_am am ON am.oid = i.relam
            WHERE {where.sql()}
            ORDER BY n.nspname, t.relname, i.relname
        """

        def build(row: tuple) -> Index:
            return Index(
                catalog=row[0],
                schema=row[1],
                name=row[2],
                table=row[3],
                type=text(row[4]),
                is_primary=Bool.of(row[5]),
                is_unique=Bool.of(row[6]),
                columns=text(row[7]),
            )

        return self.query(Index, sql, where.params, build)

    def index_columns(self, f: Filter) -> ResultSet[IndexColumn]:
        where = self._index_conditions(Filter(
            schema=f.schema, parent=f.parent, name=f.name, with_system=True
        ))
        sql = f"""
            SELECT a.attname, format_type(a.atttypid, a.atttypmod), k.ord
            FROM pg_catalog.pg_index ix
            JOIN pg_catalog.pg_class i ON i.oid = ix.indexrelid
            JOIN pg_catalog.pg_class t ON t.oid = ix.indrelid
            JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
            CROSS JOIN LATERAL unnest(ix.indkey::int2[]) WITH ORDINALITY AS k(attnum, ord)
            JOIN pg_catalog.pg_attribute a
              ON a.attrelid = t.oid AND a.attnum = k.attnum
            WHERE {where.sql()}
            ORDER BY n.nspname, t.relname, i.relname, k.ord
        """
        return self.query(
            IndexColumn,
            sql,
            where.params,
            lambda row: IndexColumn(name=row[0], data_type=text(row[1]), ordinal_position=number(row[2])),
        )

    def _constraint_conditions(self, f: Filter):
        where = self.conditions()
        if f.reference:
            where.like("fn.nspname", f.schema).equals("ft.relname", f.reference)
        else:
            where.like("n.nspname", f.schema).like("t.relname", f.parent)
        where.like("con.conname", f.name)
        return where

    def constraints(self, f: Filter) -> ResultSet[Constraint]:
        where = self._constraint_conditions(f)
        sql = f"""
            SELECT
                current_database(),
                n.nspname,
                t.relname,
                con.conname,
                CASE con.contype
                    WHEN 'p' THEN 'PRIMARY KEY'
                    WHEN 'u' THEN 'UNIQUE'
                    WHEN 'f' THEN 'FOREIGN KEY'
                    WHEN 'c' THEN 'CHECK'
                    WHEN 'x' THEN 'EXCLUDE'
                END,
                CASE WHEN con.contype = 'c' THEN pg_get_expr(con.conbin, con.conrelid) END,
                fn.nspname,
                ft.relname,
                {FK_RULE.format("con.confupdtype")},
                {FK_RULE.format("con.confdeltype")}
            FROM pg_catalog.pg_constraint con
            JOIN pg_catalog.pg_class t ON t.oid = con.conrelid
            JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
            LEFT JOIN pg_catalog.pg_class ft ON ft.oid = con.confrelid
            LEFT JOIN pg_catalog.pg_namespace fn ON fn.oid = ft.relnamespace
            WHERE {where.sql()}
            ORDER BY n.nspname, t.relname, con.conname
        """

        def build(row: tuple) -> Constraint:
            return Constraint(
                catalog=row[0],
                schema=row[1],
                table=row[2],
                name=row[3],
                type=text(row[4]),
                check_clause=text(row[5]),
                foreign_catalog=row[0] if row[7] else "",
                foreign_schema=text(row[6]),
                foreign_table=text(row[7]),
                update_rule=text(row[8]) if row[7] else "",
                delete_rule=text(row[9]) if row[7] else "",
            )

        return self.query(Constraint, sql, where.params, build)

    def constraint_columns(self, f: Filter) -> ResultSet[ConstraintColumn]:
        where = self._constraint_conditions(f)
        sql = f"""
            SELECT a.attname, COALESCE(fa.attname, ''), k.ord
            FROM pg_catalog.pg_constraint con
            JOIN pg_catalog.pg_class t ON t.oid = con.conrelid
            JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
            LEFT JOIN pg_catalog.pg_class ft ON ft.oid = con.confrelid
            LEFT JOIN pg_catalog.pg_namespace fn ON fn.oid = ft.relnamespace
            CROSS JOIN LATERAL unnest(con.conkey) WITH ORDINALITY AS k(attnum, ord)
            JOIN pg_catalog.pg_attribute a
              ON a.attrelid = con.conrelid AND a.attnum = k.attnum
            LEFT JOIN pg_catalog.pg_attribute fa
              ON fa.attrelid = con.confrelid AND fa.attnum = con.confkey[k.ord]
            WHERE {where.sql()}
            ORDER BY k.ord
        """
        return self.query(
            ConstraintColumn,
            sql,
            where.params,
            lambda row: ConstraintColumn(
                name=row[0], foreign_name=text(row[1]), ordinal_position=number(row[2])
            ),
        )

    def sequences(self, f: Filter) -> ResultSet[Sequence]:
        where = self.conditions()
        where.like("schemaname", f.schema).like("sequencename", f.name)
        self._hide_system(where, "schemaname", f)
        sql = f"""
            SELECT current_database(), schemaname, sequencename, data_type::text,
                   start_value, min_value, max_value, increment_by, cycle
            FROM pg_catalog.pg_sequences
            WHERE {where.sql()}
            ORDER BY schemaname, sequencename
        """

        def build(row: tuple) -> Sequence:
            return Sequence(
                catalog=row[0],
                schema=row[1],
                name=row[2],
                data_type=text(row[3]),
                start=text(row[4]),
                min=text(row[5]),
                max=text(row[6]),
                increment=text(row[7]),
                cycles=Bool.of(row[8]),
            )

        return self.query(Sequence, sql, where.params, build)

    def triggers(self, f: Filter) -> ResultSet[Trigger]:
        where = self.conditions().add("NOT tg.tgisinternal")
        where.like("n.nspname", f.schema).like("t.relname", f.parent)
        where.like("tg.tgname", f.name)
        sql = f"""
            SELECT current_database(), n.nspname, t.relname, tg.tgname,
                   pg_get_triggerdef(tg.oid, true)
            FROM pg_catalog.pg_trigger tg
            JOIN pg_catalog.pg_class t ON t.oid = tg.tgrelid
            JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
            WHERE {where.sql()}
            ORDER BY n.nspname, t.relname, tg.tgname
        """

        def build(row: tuple) -> Trigger:
            return Trigger(
                catalog=row[0], schema=row[1], table=row[2], name=row[3], definition=text(row[4])
            )

        return self.query(Trigger, sql, where.params, build)

    def functions(self, f: Filter) -> ResultSet[Function]:
        where = self.conditions()
        where.like("routine_schema", f.schema).like("routine_name", f.name)
        where.any_of("routine_type", f.types)
        self._hide_system(where, "routine_schema", f)
        sql = f"""
            SELECT * FROM (
                SELECT
                    current_database() AS routine_catalog,
                    n.nspname AS routine_schema,
                    p.proname AS routine_name,
                    p.proname || '_' || p.oid::text AS specific_name,
                    pg_get_function_result(p.oid) AS result_type,
                    pg_get_function_identity_arguments(p.oid) AS arg_types,
                    CASE
                        WHEN p.prokind = 'a' THEN 'AGGREGATE'
                        WHEN p.prokind = 'w' THEN 'WINDOW'
                        WHEN p.prokind = 'p' THEN 'PROCEDURE'
                        WHEN p.prorettype = 'pg_catalog.trigger'::pg_catalog.regtype THEN 'TRIGGER'
                        ELSE 'FUNCTION'
                    END AS routine_type,
                    CASE p.provolatile
                        WHEN 'i' THEN 'IMMUTABLE'
                        WHEN 's' THEN 'STABLE'
                        WHEN 'v' THEN 'VOLATILE'
                    END AS volatility,
                    CASE WHEN p.prosecdef THEN 'DEFINER' ELSE 'INVOKER' END AS security,
                    l.lanname AS language,
                    p.prosrc AS source
                FROM pg_catalog.pg_proc p
                JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
                JOIN pg_catalog.pg_language l ON l.oid = p.prolang
            ) r
            WHERE {where.sql()}
            ORDER BY routine_schema, routine_name, specific_name
        """

        def build(row: tuple) -> Function:
            return Function(
                catalog=row[0],
                schema=row[1],
                name=row[2],
                specific_name=row[3],
                result_type=text(row[4]),
                arg_types=text(row[5]),
                type=text(row[6]),
                volatility=text(row[7]),
                security=text(row[8]),
                language=text(row[9]),
                source=text(row[10]),
            )

        return self.query(Function, sql, where.params, build)

    def function_columns(self, f: Filter) -> ResultSet[FunctionColumn]:
        where = self.conditions().equals("specific_schema", f.schema)
        where.equals("specific_name", f.parent)
        sql = f"""
            SELECT * FROM (
                SELECT specific_schema, specific_name, '' AS name, 'OUT' AS mode,
                       data_type, 0 AS ordinal_position
                FROM information_schema.routines
                UNION ALL
                SELECT specific_schema, specific_name, COALESCE(parameter_name, ''),
                       parameter_mode, data_type, ordinal_position
                FROM information_schema.parameters
            ) a
            WHERE {where.sql()}
            ORDER BY ordinal_position
        """

        def build(row: tuple) -> FunctionColumn:
            return FunctionColumn(
                name=text(row[2]),
                type=text(row[3]),
                data_type=text(row[4]),
                ordinal_position=number(row[5]),
            )

        return self.query(FunctionColumn, sql, where.params, build)

    def column_stats(self, f: Filter) -> ResultSet[ColumnStat]:
        """Read planner statistics from ``pg_stats``.

        Negative ``n_distinct`` values are a fraction of the row estimate and
        are scaled back to a count. Top values are only returned when the
        filter types request "extended" statistics.

        Raises:
            NotSupportedError: If the server is older than 9.2
        """
        if self.server_version < MIN_STATS_VERSION:
            raise NotSupportedError(
                f"column statistics need PostgreSQL 9.2 or newer, server is {self.server_version}"
            )
        extended = "extended" in f.types
        where = self.conditions()
        where.like("s.schemaname", f.schema).like("s.tablename", f.parent)
        where.like("s.attname", f.name)
        sql = f"""
            SELECT
                s.schemaname,
                s.tablename,
                s.attname,
                s.avg_width,
                s.null_frac,
                CASE
                    WHEN s.n_distinct < 0 THEN (-s.n_distinct * GREATEST(c.reltuples, 0))::bigint
                    ELSE s.n_distinct::bigint
                END,
                (s.histogram_bounds::text::text[])[1],
                (s.histogram_bounds::text::text[])[array_length(s.histogram_bounds::text::text[], 1)],
                s.most_common_vals::text::text[],
                s.most_common_freqs
            FROM pg_catalog.pg_stats s
            JOIN pg_catalog.pg_namespace n ON n.nspname = s.schemaname
            JOIN pg_catalog.pg_class c ON c.relnamespace = n.oid AND c.relname = s.tablename
            WHERE {where.sql()}
            ORDER BY s.schemaname, s.tablename, s.attname
        """

        def build(row: tuple) -> ColumnStat:
            top_n: List[str] = []
            freqs: List[float] = []
            if extended and row[8] and row[9]:
                top_n = [text(v) for v in row[8]]
                freqs = [float(v) for v in row[9]]
            return ColumnStat(
                schema=row[0],
                table=row[1],
                name=row[2],
                avg_width=number(row[3]),
                null_frac=float(row[4] or 0),
                num_distinct=number(row[5]),
                min=text(row[6]),
                max=text(row[7]),
                top_n=top_n,
                top_n_freqs=freqs,
            )

        return self.query(ColumnStat, sql, where.params, build)

    def privilege_summaries(self, f: Filter) -> ResultSet[PrivilegeSummary]:
        where = self.conditions()
        where.like("object_schema", f.schema).like("object_name", f.name)
        where.any_of("object_type", f.types)
        self._hide_system(where, "object_schema", f)
        sql = f"""
            SELECT * FROM (
                SELECT
                    current_database() AS object_catalog,
                    n.nspname AS object_schema,
                    c.relname AS object_name,
                    {RELATION_TYPE} AS object_type,
                    COALESCE(array_to_string(c.relacl, E'\\n'), '') AS object_privileges,
                    COALESCE((
                        SELECT string_agg(
                            a.attname || E':\\n  ' || array_to_string(a.attacl, E'\\n  '),
                            E'\\n' ORDER BY a.attnum
                        )
                        FROM pg_catalog.pg_attribute a
                        WHERE a.attrelid = c.oid
                          AND a.attacl IS NOT NULL
                          AND NOT a.attisdropped
                    ), '') AS column_privileges
                FROM pg_catalog.pg_class c
                JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
                WHERE c.relkind IN ('r', 'p', 'v', 'm', 'S', 'f')
            ) p
            WHERE {where.sql()}
            ORDER BY object_schema, object_name
        """

        def build(row: tuple) -> PrivilegeSummary:
            return PrivilegeSummary(
                catalog=row[0],
                schema=row[1],
                name=row[2],
                object_type=text(row[3]),
                object_privileges=text(row[4]),
                column_privileges=text(row[5]),
            )

        return self.query(PrivilegeSummary, sql, where.params, build)
