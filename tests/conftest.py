"""Shared fixtures: an in-memory capability reader and a captured output sink."""

from typing import Dict, List

import pytest

from dbmeta.metadata import (
    Bool,
    Capability,
    Catalog,
    Column,
    ColumnStat,
    Constraint,
    ConstraintColumn,
    Filter,
    Function,
    FunctionColumn,
    Index,
    IndexColumn,
    NotSupportedError,
    PrivilegeSummary,
    QueryFailedError,
    ResultSet,
    Schema,
    Sequence,
    Table,
    Trigger,
    matches_like,
)
from dbmeta.metadata.readers import (
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


class FixtureReader(
    MetadataReader,
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
    """Reader over Python lists.

    ``declared`` limits the declared capabilities, ``declined`` capabilities
    raise NotSupportedError and ``failing`` capabilities raise
    QueryFailedError. Every result set handed out is kept in ``opened``.
    """

    driver = "fixture"

    def __init__(self, **data):
        self.data = data
        self.declared = set(Capability)
        self.declined = set()
        self.failing = set()
        self.opened: List[ResultSet] = []
        self.calls: List[tuple] = []

    def get_capabilities(self):
        return set(self.declared)

    def _result(self, capability, entity_type, f, rows):
        self.calls.append((capability, f))
        if capability in self.declined:
            raise NotSupportedError()
        if capability in self.failing:
            raise QueryFailedError("catalog query failed", RuntimeError("boom"))
        res = ResultSet(entity_type, list(rows))
        self.opened.append(res)
        return res

    def _rows(self, key):
        return self.data.get(key, [])

    def _keyed(self, key, pattern):
        rows = []
        for name, entries in self.data.get(key, {}).items():
            if matches_like(pattern, name):
                rows.extend(entries)
        return rows

    def catalogs(self, f):
        rows = [c for c in self._rows("catalogs") if matches_like(f.name, c.catalog)]
        return self._result(Capability.CATALOGS, Catalog, f, rows)

    def schemas(self, f):
        rows = [s for s in self._rows("schemas") if matches_like(f.name, s.schema)]
        return self._result(Capability.SCHEMAS, Schema, f, rows)

    def tables(self, f):
        rows = [
            t
            for t in self._rows("tables")
            if matches_like(f.schema, t.schema)
            and matches_like(f.name, t.name)
            and (not f.types or t.type in f.types)
        ]
        return self._result(Capability.TABLES, Table, f, rows)

    def columns(self, f):
        rows = [
            c
            for c in self._rows("columns")
            if matches_like(f.schema, c.schema) and matches_like(f.parent, c.table)
        ]
        return self._result(Capability.COLUMNS, Column, f, rows)

    def indexes(self, f):
        rows = [
            i
            for i in self._rows("indexes")
            if matches_like(f.schema, i.schema)
            and matches_like(f.parent, i.table)
            and matches_like(f.name, i.name)
        ]
        return self._result(Capability.INDEXES, Index, f, rows)

    def index_columns(self, f):
        rows = self._keyed("index_columns", f.name)
        return self._result(Capability.INDEX_COLUMNS, IndexColumn, f, rows)

    def constraints(self, f):
        rows = [
            c
            for c in self._rows("constraints")
            if matches_like(f.schema, c.schema)
            and matches_like(f.parent, c.table)
            and (not f.reference or c.foreign_table == f.reference)
            and matches_like(f.name, c.name)
        ]
        return self._result(Capability.CONSTRAINTS, Constraint, f, rows)

    def constraint_columns(self, f):
        rows = self._keyed("constraint_columns", f.name)
        return self._result(Capability.CONSTRAINT_COLUMNS, ConstraintColumn, f, rows)

    def sequences(self, f):
        rows = [
            s
            for s in self._rows("sequences")
            if matches_like(f.schema, s.schema) and matches_like(f.name, s.name)
        ]
        return self._result(Capability.SEQUENCES, Sequence, f, rows)

    def triggers(self, f):
        rows = [
            t
            for t in self._rows("triggers")
            if matches_like(f.schema, t.schema) and matches_like(f.parent, t.table)
        ]
        return self._result(Capability.TRIGGERS, Trigger, f, rows)

    def functions(self, f):
        rows = [
            fn
            for fn in self._rows("functions")
            if matches_like(f.schema, fn.schema)
            and matches_like(f.name, fn.name)
            and (not f.types or fn.type in f.types)
        ]
        return self._result(Capability.FUNCTIONS, Function, f, rows)

    def function_columns(self, f):
        rows = self.data.get("function_columns", {}).get(f.parent, [])
        return self._result(Capability.FUNCTION_COLUMNS, FunctionColumn, f, rows)

    def column_stats(self, f):
        rows = [
            s
            for s in self._rows("column_stats")
            if matches_like(f.schema, s.schema) and matches_like(f.parent, s.table)
        ]
        return self._result(Capability.COLUMN_STATS, ColumnStat, f, rows)

    def privilege_summaries(self, f):
        rows = [
            p
            for p in self._rows("privileges")
            if matches_like(f.schema, p.schema)
            and matches_like(f.name, p.name)
            and (not f.types or p.object_type in f.types)
        ]
        return self._result(Capability.PRIVILEGE_SUMMARIES, PrivilegeSummary, f, rows)


def shop_catalog() -> Dict:
    """A small shop schema: customers, orders referencing customers, a sequence."""
    return dict(
        catalogs=[Catalog("shop"), Catalog("analytics")],
        schemas=[
            Schema("public", "shop"),
            Schema("sales", "shop"),
            Schema("information_schema", "shop"),
        ],
        tables=[
            Table("customers", "public", "shop", "BASE TABLE", rows=4, size="16 kB"),
            Table("orders", "public", "shop", "BASE TABLE", rows=10, size="32 kB"),
            Table("big_orders", "public", "shop", "VIEW"),
            Table("order_ids", "public", "shop", "SEQUENCE"),
            Table("tables", "information_schema", "shop", "VIEW"),
        ],
        columns=[
            Column("id", "customers", "public", "shop", "integer", Bool.NO, ordinal_position=1),
            Column("name", "customers", "public", "shop", "text", Bool.YES, ordinal_position=2),
            Column(
                "id", "orders", "public", "shop", "integer", Bool.NO,
                "nextval('order_ids')", 1, column_size=32, num_prec_radix=2,
            ),
            Column("customer_id", "orders", "public", "shop", "integer", Bool.YES, ordinal_position=2),
            Column("amount", "orders", "public", "shop", "numeric", Bool.YES, ordinal_position=3),
        ],
        indexes=[
            Index("orders_pkey", "orders", "public", "shop", "BTREE", Bool.YES, Bool.YES, "id"),
            Index("orders_customer_idx", "orders", "public", "shop", "BTREE", Bool.NO, Bool.NO, "customer_id"),
            Index("customers_pkey", "customers", "public", "shop", "BTREE", Bool.YES, Bool.YES, "id"),
        ],
        index_columns={
            "orders_pkey": [IndexColumn("id", "integer", 1)],
            "orders_customer_idx": [IndexColumn("customer_id", "integer", 1)],
            "customers_pkey": [IndexColumn("id", "integer", 1)],
        },
        constraints=[
            Constraint("orders_amount_check", "orders", "public", "shop", "CHECK", "amount > 0"),
            Constraint("orders_id_not_null", "orders", "public", "shop", "CHECK", "id IS NOT NULL"),
            Constraint(
                "orders_customer_fk", "orders", "public", "shop", "FOREIGN KEY",
                foreign_catalog="shop", foreign_schema="public", foreign_table="customers",
                foreign_name="customers_pkey", update_rule="NO ACTION", delete_rule="CASCADE",
            ),
        ],
        constraint_columns={
            "orders_customer_fk": [ConstraintColumn("customer_id", "id", 1)],
        },
        sequences=[
            Sequence("order_ids", "public", "shop", "bigint", "1", "1", "9223372036854775807", "1", Bool.NO),
        ],
        triggers=[
            Trigger(
                "orders_audit",
                "CREATE TRIGGER orders_audit AFTER INSERT ON orders EXECUTE FUNCTION audit()",
                "orders", "public", "shop",
            ),
        ],
        functions=[
            Function("audit", "public", "shop", "audit_1", "trigger", "", "TRIGGER", "VOLATILE", "INVOKER", "plpgsql"),
            Function("order_total", "public", "shop", "order_total_2", "numeric", "", "FUNCTION", "STABLE", "INVOKER", "sql", "select 1"),
            Function("sum_amount", "public", "shop", "sum_amount_3", "numeric", "", "AGGREGATE"),
        ],
        function_columns={
            "order_total_2": [
                FunctionColumn("", "OUT", "numeric", 0),
                FunctionColumn("order_id", "IN", "integer", 1),
                FunctionColumn("with_tax", "INOUT", "boolean", 2),
            ],
            "sum_amount_3": [FunctionColumn("", "IN", "numeric", 1)],
        },
        column_stats=[
            ColumnStat(
                "id", "orders", "public", "shop", 4, 0.0, 10,
                "1", "10", "", ["1", "2", "3"], [0.1, 0.1, 0.1],
            ),
            ColumnStat(
                "customer_id", "orders", "public", "shop", 4, 0.2, 3,
                "1", "4", "", ["2", "1"], [0.5, 0.3],
            ),
        ],
        privileges=[
            PrivilegeSummary("orders", "public", "shop", "BASE TABLE", "alice=arwdDxt/alice", "amount:\n  bob=r/alice"),
            PrivilegeSummary("big_orders", "public", "shop", "VIEW", "alice=r/alice"),
            PrivilegeSummary("tables", "information_schema", "shop", "VIEW", "=r/postgres"),
        ],
    )


@pytest.fixture
def reader():
    """Fixture reader over the shop catalog with every capability."""
    return FixtureReader(**shop_catalog())


@pytest.fixture
def output():
    """Output sink collecting emitted lines."""
    return []
