"""Describe reports composed from capability readers."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..metadata.entities import (
    Bool,
    ColumnStat,
    Constraint,
    Index,
    Sequence,
    Table,
)
from ..metadata.errors import (
    CapabilityAbsentError,
    NotSupportedError,
    QueryFailedError,
)
from ..metadata.filter import Filter, escape_like, parse_pattern, qualified_identifier
from ..metadata.readers import Capability, MetadataReader
from ..metadata.resultset import ResultSet
from ..output.encoder import Emit, RenderOptions, TableEncoder

logger = logging.getLogger(__name__)

RELATION_NOT_FOUND = 'Did not find any relation named "{}".'

# table type codes requested by \dp
PRIVILEGE_TABLE_TYPES = "tvms"


def _default_table_types() -> Dict[str, List[str]]:
    return {
        "t": [
            "TABLE",
            "BASE TABLE",
            "SYSTEM TABLE",
            "SYNONYM",
            "LOCAL TEMPORARY",
            "GLOBAL TEMPORARY",
        ],
        "v": ["VIEW", "SYSTEM VIEW"],
        "m": ["MATERIALIZED VIEW"],
        "s": ["SEQUENCE"],
    }


def _default_function_types() -> Dict[str, List[str]]:
    return {
        "a": ["AGGREGATE"],
        "n": ["FUNCTION"],
        "p": ["PROCEDURE"],
        "t": ["TRIGGER"],
        "w": ["WINDOW"],
    }


@dataclass
class WriterConfig:
    """Type code tables and the system schema set of a writer."""

    table_types: Dict[str, List[str]] = field(default_factory=_default_table_types)
    function_types: Dict[str, List[str]] = field(
        default_factory=_default_function_types
    )
    system_schemas: Set[str] = field(default_factory=lambda: {"information_schema"})


def format_function_argument(mode: str, name: str, data_type: str) -> str:
    """Format one function parameter as ``[mode ][name ]type``.

    The ``IN`` mode is implied and therefore omitted.
    """
    parts = []
    if mode and mode != "IN":
        parts.append(mode)
    if name:
        parts.append(name)
    if data_type:
        parts.append(data_type)
    return " ".join(parts)


def distinct_fraction(num_distinct: int, rows: int) -> float:
    """Share of distinct values in a column with ``rows`` rows."""
    if rows == 0:
        return 0.0
    if num_distinct == rows:
        return 1.0
    return float(num_distinct) / float(rows)


def truncate_top_n(values: List, k: int) -> List:
    """Keep the first ``k`` entries (or all of them if there are fewer)."""
    n = max(0, min(k, len(values)))
    return list(values[:n])


def select_types(codes: str, table: Dict[str, List[str]]) -> List[str]:
    """Map single-character type codes to catalog type names."""
    types: List[str] = []
    for code, names in table.items():
        if code in codes:
            types.extend(names)
    return types


class Writer:
    """Writes describe reports for one reader into one output sink.

    The writer only talks to the reader through capability checks and the
    capability methods; the reader and the configuration are never mutated.
    """

    def __init__(
        self,
        reader: MetadataReader,
        emit: Emit,
        config: Optional[WriterConfig] = None,
        render: Optional[RenderOptions] = None,
        list_all_dbs: Optional[Callable[[str, bool], None]] = None,
    ):
        """Initialize writer.

        Args:
            reader: Capability reader of the current connection
            emit: Output sink receiving one line per call
            config: Type code tables and system schemas
            render: Base rendering options applied to every table
            list_all_dbs: Replacement for the catalog listing of ``\\l``
        """
        self.reader = reader
        self.emit = emit
        self.config = config or WriterConfig()
        self.render = render or RenderOptions()
        self.encoder = TableEncoder(emit)
        self._list_all_dbs = list_all_dbs

    def list_all_dbs(self, pattern: str = "", verbose: bool = False) -> None:
        """List catalogs (``\\l``)."""
        if self._list_all_dbs is not None:
            self._list_all_dbs(pattern, verbose)
            return
        f = Filter(name=pattern.replace("*", "%"))
        with self._open_primary(Capability.CATALOGS, "\\l", f, "list catalogs") as res:
            self.encoder.encode(res, self.render.with_title("List of databases"))

    def list_schemas(
        self, pattern: str = "", verbose: bool = False, show_system: bool = False
    ) -> None:
        """List schemas (``\\dn``)."""
        _, name = parse_pattern(pattern)
        f = Filter(name=name, with_system=show_system)
        with self._open_primary(Capability.SCHEMAS, "\\dn", f, "list schemas") as res:
            if not show_system:
                res.set_filter(self._not_system("schema"))
            self.encoder.encode(res, self.render.with_title("List of schemas"))

    def list_tables(
        self,
        table_types: str,
        pattern: str = "",
        verbose: bool = False,
        show_system: bool = False,
    ) -> None:
        """List relations of the requested types (``\\dt``, ``\\dv``, ``\\ds``)."""
        types = select_types(table_types, self.config.table_types)
        sp, tp = parse_pattern(pattern)
        f = Filter(schema=sp, name=tp, types=types, with_system=show_system)
        with self._open_primary(Capability.TABLES, "\\dt", f, "list tables") as res:
            if not show_system:
                res.set_filter(self._not_system("schema"))
            if res.len() == 0:
                self._relation_not_found(pattern)
                return
            columns = ["Schema", "Name", "Type"]
            if verbose:
                columns += ["Rows", "Size", "Comment"]
            res.set_columns(columns)

            def scan(t: Table) -> list:
                values = [t.schema, t.name, t.type]
                if verbose:
                    values += [t.rows, t.size, t.comment]
                return values

            res.set_scan_values(scan)
            self.encoder.encode(res, self.render.with_title("List of relations"))

    def list_indexes(
        self, pattern: str = "", verbose: bool = False, show_system: bool = False
    ) -> None:
        """List indexes (``\\di``)."""
        sp, tp = parse_pattern(pattern)
        f = Filter(schema=sp, name=tp, with_system=show_system)
        with self._open_primary(Capability.INDEXES, "\\di", f, "list indexes") as res:
            if not show_system:
                res.set_filter(self._not_system("schema"))
            if res.len() == 0:
                self._relation_not_found(pattern)
                return
            columns = ["Schema", "Name", "Type", "Table"]
            if verbose:
                columns += ["Primary?", "Unique?"]
            res.set_columns(columns)

            def scan(i: Index) -> list:
                values = [i.schema, i.name, i.type, i.table]
                if verbose:
                    values += [i.is_primary, i.is_unique]
                return values

            res.set_scan_values(scan)
            self.encoder.encode(res, self.render.with_title("List of indexes"))

    def describe_functions(
        self,
        function_types: str,
        pattern: str = "",
        verbose: bool = False,
        show_system: bool = False,
    ) -> None:
        """List functions with their argument types (``\\df``)."""
        types = select_types(function_types, self.config.function_types)
        sp, tp = parse_pattern(pattern)
        f = Filter(schema=sp, name=tp, types=types, with_system=show_system)
        with self._open_primary(
            Capability.FUNCTIONS, "\\df", f, "list functions"
        ) as res:
            if not show_system:
                res.set_filter(self._not_system("schema"))

            if self.reader.supports_capability(Capability.FUNCTION_COLUMNS):
                # first pass fills argument types, the renderer replays the rows
                while res.next():
                    fn = res.get()
                    try:
                        fn.arg_types = self._function_arguments(
                            fn.catalog, fn.schema, fn.specific_name
                        )
                    except NotSupportedError:
                        logger.debug("function columns declined by %s", self.reader)
                        break
                    except QueryFailedError as e:
                        raise QueryFailedError(
                            f"failed to get columns of function "
                            f"{fn.schema}.{fn.specific_name}",
                            e,
                        ) from e
                res.reset()

            columns = ["Schema", "Name", "Result data type", "Argument data types", "Type"]
            if verbose:
                columns += ["Volatility", "Security", "Language", "Source code"]
            res.set_columns(columns)

            def scan(fn) -> list:
                values = [fn.schema, fn.name, fn.result_type, fn.arg_types, fn.type]
                if verbose:
                    values += [fn.volatility, fn.security, fn.language, fn.source]
                return values

            res.set_scan_values(scan)
            self.encoder.encode(res, self.render.with_title("List of functions"))

    def _function_arguments(self, catalog: str, schema: str, specific_name: str) -> str:
        f = Filter(catalog=catalog, schema=schema, parent=specific_name)
        args = []
        with self.reader.function_columns(f) as cols:
            while cols.next():
                col = cols.get()
                # result parameter
                if col.ordinal_position == 0:
                    continue
                args.append(format_function_argument(col.type, col.name, col.data_type))
        return ", ".join(args)

    def describe_table_details(
        self, pattern: str, verbose: bool = False, show_system: bool = False
    ) -> None:
        """Describe relations, sequences and indexes matching ``pattern`` (``\\d``)."""
        sp, tp = parse_pattern(pattern)
        found = 0

        if self.reader.supports_all(Capability.TABLES, Capability.COLUMNS):
            f = Filter(schema=sp, name=tp, with_system=show_system)
            res = self._open_optional(Capability.TABLES, f, "list tables")
            found += self._describe_tables(res, verbose, show_system)

        if self.reader.supports_capability(Capability.SEQUENCES):
            found += self._describe_sequences(sp, tp, show_system)

        if self.reader.supports_all(Capability.INDEXES, Capability.INDEX_COLUMNS):
            found += self._describe_indexes(sp, tp, show_system)

        if found == 0:
            self._relation_not_found(pattern)

    def _describe_tables(
        self, res: Optional[ResultSet], verbose: bool, show_system: bool
    ) -> int:
        if res is None:
            return 0
        found = 0
        with res:
            if not show_system:
                res.set_filter(self._not_system("schema"))
            while res.next():
                t = res.get()
                try:
                    described = self._describe_table(t, verbose, show_system)
                except QueryFailedError as e:
                    raise QueryFailedError(
                        f"failed to describe {t.type} {t.schema}.{t.name}", e
                    ) from e
                if described:
                    found += 1
        return found

    def _describe_table(self, t: Table, verbose: bool, show_system: bool) -> bool:
        f = Filter(
            catalog=t.catalog,
            schema=escape_like(t.schema),
            parent=escape_like(t.name),
            with_system=show_system,
        )
        try:
            res = self.reader.columns(f)
        except NotSupportedError:
            return False
        except QueryFailedError as e:
            raise QueryFailedError(f"failed to list columns for table {t.name}", e) from e
        with res:
            columns = ["Name", "Type", "Nullable", "Default"]
            if verbose:
                columns += ["Size", "Decimal Digits", "Radix", "Octet Length"]
            res.set_columns(columns)

            def scan(c) -> list:
                values = [c.name, c.data_type, c.is_nullable, c.default]
                if verbose:
                    values += [
                        c.column_size,
                        c.decimal_digits,
                        c.num_prec_radix,
                        c.char_octet_length,
                    ]
                return values

            res.set_scan_values(scan)
            title = f"{t.type} {qualified_identifier(t.schema, t.name)}".strip()
            self.encoder.encode(
                res,
                self.render.with_title(title),
                self._table_details_summary(t.schema, t.name),
            )
        return True

    def _table_details_summary(self, schema: str, table: str) -> Callable[[Emit], None]:
        """Build the appendix printed after a table's column listing."""
        schema_pattern = escape_like(schema)
        table_pattern = escape_like(table)

        def summary(out: Emit) -> None:
            self._describe_table_indexes(out, schema_pattern, table_pattern)
            self._describe_table_constraints(
                out,
                Filter(schema=schema_pattern, parent=table_pattern),
                _is_check_constraint,
                "Check constraints:",
                lambda c: f'  "{c.name}" {c.type} ({c.check_clause})',
            )
            self._describe_table_constraints(
                out,
                Filter(schema=schema_pattern, parent=table_pattern),
                lambda c: c.type == "FOREIGN KEY" and c.table == table,
                "Foreign-key constraints:",
                lambda c: f'  "{c.name}" {self._foreign_key_definition(c)}',
            )
            self._describe_table_constraints(
                out,
                Filter(schema=schema_pattern, reference=table),
                lambda c: c.type == "FOREIGN KEY",
                "Referenced by:",
                lambda c: (
                    f'  TABLE "{c.table}" CONSTRAINT "{c.name}" '
                    f"{self._foreign_key_definition(c)}"
                ),
            )
            self._describe_table_triggers(out, schema_pattern, table_pattern)

        return summary

    def _describe_table_indexes(self, out: Emit, schema: str, table: str) -> None:
        res = self._open_optional(
            Capability.INDEXES, Filter(schema=schema, parent=table), "list indexes"
        )
        if res is None:
            return
        with res:
            if res.len() == 0:
                return
            out("Indexes:")
            while res.next():
                i = res.get()
                primary = "PRIMARY_KEY, " if i.is_primary == Bool.YES else ""
                unique = "UNIQUE, " if i.is_unique == Bool.YES else ""
                columns = self._index_columns(i)
                out(f'  "{i.name}" {primary}{unique}{i.type} ({columns})')

    def _index_columns(self, i: Index) -> str:
        if not self.reader.supports_capability(Capability.INDEX_COLUMNS):
            return i.columns
        f = Filter(
            catalog=i.catalog,
            schema=escape_like(i.schema),
            parent=escape_like(i.table),
            name=escape_like(i.name),
        )
        try:
            cols = self.reader.index_columns(f)
        except NotSupportedError:
            return i.columns
        except QueryFailedError as e:
            raise QueryFailedError(f"failed to get columns of index {i.name}", e) from e
        with cols:
            return ", ".join(c.name for c in cols)

    def _describe_table_constraints(
        self,
        out: Emit,
        f: Filter,
        post_filter: Callable[[Constraint], bool],
        label: str,
        printer: Callable[[Constraint], str],
    ) -> None:
        res = self._open_optional(Capability.CONSTRAINTS, f, "list constraints")
        if res is None:
            return
        with res:
            res.set_filter(post_filter)
            if res.len() == 0:
                return
            out(label)
            while res.next():
                out(printer(res.get()))

    def _foreign_key_definition(self, c: Constraint) -> str:
        columns, foreign_columns = self._constraint_columns(c)
        return (
            f"{c.type} ({columns}) REFERENCES {c.foreign_table}({foreign_columns}) "
            f"ON UPDATE {c.update_rule} ON DELETE {c.delete_rule}"
        )

    def _constraint_columns(self, c: Constraint) -> Tuple[str, str]:
        if not self.reader.supports_capability(Capability.CONSTRAINT_COLUMNS):
            return "", ""
        f = Filter(
            catalog=c.catalog,
            schema=escape_like(c.schema),
            parent=escape_like(c.table),
            name=escape_like(c.name),
        )
        try:
            cols = self.reader.constraint_columns(f)
        except NotSupportedError:
            return "", ""
        except QueryFailedError as e:
            raise QueryFailedError(
                f"failed to get columns of constraint {c.name}", e
            ) from e
        names = []
        foreign_names = []
        with cols:
            for col in cols:
                names.append(col.name)
                foreign_names.append(col.foreign_name)
        return ", ".join(names), ", ".join(foreign_names)

    def _describe_table_triggers(self, out: Emit, schema: str, table: str) -> None:
        res = self._open_optional(
            Capability.TRIGGERS, Filter(schema=schema, parent=table), "list triggers"
        )
        if res is None:
            return
        with res:
            if res.len() == 0:
                return
            out("Triggers:")
            while res.next():
                t = res.get()
                out(f'  "{t.name}" {t.definition}')

    def _describe_sequences(self, sp: str, tp: str, show_system: bool) -> int:
        f = Filter(schema=sp, name=tp, with_system=show_system)
        res = self._open_optional(Capability.SEQUENCES, f, "describe sequences")
        if res is None:
            return 0
        found = 0
        with res:
            if not show_system:
                res.set_filter(self._not_system("schema"))
            while res.next():
                s = res.get()
                # each sequence is its own single-row report
                with ResultSet.of(Sequence, [s]) as rows:
                    options = self.render.with_title(
                        f'Sequence "{s.schema}.{s.name}"'
                    ).without_footer()
                    self.encoder.encode(rows, options)
                found += 1
        return found

    def _describe_indexes(self, sp: str, tp: str, show_system: bool) -> int:
        f = Filter(schema=sp, name=tp, with_system=show_system)
        res = self._open_optional(Capability.INDEXES, f, f"list indexes for table {tp}")
        if res is None:
            return 0
        found = 0
        with res:
            if not show_system:
                res.set_filter(self._not_system("schema"))
            while res.next():
                i = res.get()
                try:
                    self._describe_index(i)
                except QueryFailedError as e:
                    raise QueryFailedError(
                        f"failed to describe index {i.name} from table "
                        f"{i.schema}.{i.table}",
                        e,
                    ) from e
                found += 1
        return found

    def _describe_index(self, i: Index) -> None:
        f = Filter(
            catalog=i.catalog,
            schema=escape_like(i.schema),
            parent=escape_like(i.table),
            name=escape_like(i.name),
        )
        try:
            res = self.reader.index_columns(f)
        except NotSupportedError:
            return
        with res:
            if res.len() == 0:
                return
            res.set_columns(["Name", "Type"])
            res.set_scan_values(lambda c: [c.name, c.data_type])

            def summary(out: Emit) -> None:
                primary = "primary key, " if i.is_primary == Bool.YES else ""
                out(f"{primary}{i.type}, for table {i.table}")

            title = f"Index {qualified_identifier(i.schema, i.name)}"
            self.encoder.encode(res, self.render.with_title(title), summary)

    def show_stats(
        self, stat_types: str, pattern: str, verbose: bool = False, k: int = 0
    ) -> None:
        """Show column statistics of tables matching ``pattern`` (``\\ss``)."""
        if not self.reader.supports_capability(Capability.COLUMN_STATS):
            raise CapabilityAbsentError("\\ss", self.reader.driver)
        sp, tp = parse_pattern(pattern)
        rows = self._table_rows(sp, tp)

        types = ["basic"]
        if verbose:
            types.append("extended")
        f = Filter(schema=sp, parent=tp, types=types)
        with self._open_primary(
            Capability.COLUMN_STATS, "\\ss", f, "get column stats"
        ) as res:
            if res.len() == 0:
                self._relation_not_found(pattern)
                return
            columns = [
                "Schema",
                "Table",
                "Name",
                "Average width",
                "Nulls fraction",
                "Distinct values",
                "Dist. fraction",
            ]
            if verbose:
                columns += [
                    "Minimum value",
                    "Maximum value",
                    "Mean value",
                    "Top N common values",
                    "Top N values freqs",
                ]
            res.set_columns(columns)

            def scan(s: ColumnStat) -> list:
                values = [
                    s.schema,
                    s.table,
                    s.name,
                    s.avg_width,
                    s.null_frac,
                    s.num_distinct,
                    f"{distinct_fraction(s.num_distinct, rows):.4f}",
                ]
                if verbose:
                    freqs = [f"{freq:.4f}" for freq in truncate_top_n(s.top_n_freqs, k)]
                    values += [
                        s.min,
                        s.max,
                        s.mean,
                        ", ".join(str(v) for v in truncate_top_n(s.top_n, k)),
                        ", ".join(freqs),
                    ]
                return values

            res.set_scan_values(scan)
            self.encoder.encode(res, self.render.with_title("Column stats"))

    def _table_rows(self, sp: str, tp: str) -> int:
        """Row count of the first table matching the pattern, 0 if unknown."""
        res = self._open_optional(
            Capability.TABLES, Filter(schema=sp, name=tp), "get table entry"
        )
        if res is None:
            return 0
        with res:
            if res.next():
                return res.get().rows or 0
        return 0

    def list_privilege_summaries(self, pattern: str = "", show_system: bool = False) -> None:
        """List access privileges of relations (``\\dp``)."""
        sp, tp = parse_pattern(pattern)
        types = select_types(PRIVILEGE_TABLE_TYPES, self.config.table_types)
        f = Filter(schema=sp, name=tp, types=types, with_system=show_system)
        with self._open_primary(
            Capability.PRIVILEGE_SUMMARIES, "\\dp", f, "list table privileges"
        ) as res:
            if not show_system:
                res.set_filter(self._not_system("schema"))
            self.encoder.encode(res, self.render.with_title("Access privileges"))

    def _open_primary(
        self, capability: Capability, command: str, f: Filter, action: str
    ) -> ResultSet:
        """Run the query a command cannot do without."""
        if not self.reader.supports_capability(capability):
            raise CapabilityAbsentError(command, self.reader.driver)
        call = getattr(self.reader, capability.value)
        try:
            return call(f)
        except NotSupportedError as e:
            raise CapabilityAbsentError(command, self.reader.driver) from e
        except QueryFailedError as e:
            raise QueryFailedError(f"failed to {action}", e) from e

    def _open_optional(
        self, capability: Capability, f: Filter, action: str
    ) -> Optional[ResultSet]:
        """Run the query of an optional section; None means omit the section."""
        if not self.reader.supports_capability(capability):
            logger.debug("skipping %s: %s not supported", action, capability.value)
            return None
        call = getattr(self.reader, capability.value)
        try:
            return call(f)
        except NotSupportedError:
            logger.debug("skipping %s: declined by %s", action, self.reader.driver)
            return None
        except QueryFailedError as e:
            raise QueryFailedError(f"failed to {action}", e) from e

    def _not_system(self, attribute: str) -> Callable[[object], bool]:
        system = self.config.system_schemas

        def predicate(row: object) -> bool:
            return getattr(row, attribute) not in system

        return predicate

    def _relation_not_found(self, pattern: str) -> None:
        self.emit(RELATION_NOT_FOUND.format(pattern))
        self.emit("")


def _is_check_constraint(c: Constraint) -> bool:
    return (
        c.type == "CHECK"
        and c.check_clause != ""
        and not c.check_clause.endswith(" IS NOT NULL")
    )
