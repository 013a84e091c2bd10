"""Tests for the DuckDB capability reader."""

import pytest

from dbmeta.metadata import Bool, Capability, Filter, QueryFailedError, escape_like
from dbmeta.readers.duckdb import DuckDBReader, index_column_names, specific_name
from dbmeta.writer import Writer


@pytest.fixture
def duckdb_reader():
    """In-memory DuckDB with users, orders, an index, a view, a sequence and a macro."""
    reader = DuckDBReader("test_duck", {"path": ":memory:", "read_only": False})
    reader.connect()

    conn = reader.connection
    conn.execute("""
        CREATE TABLE users (
            id INTEGER PRIMARY KEY,
            name VARCHAR NOT NULL,
            age INTEGER
        )
    """)
    conn.execute("""
        CREATE TABLE orders (
            id INTEGER PRIMARY KEY,
            user_id INTEGER REFERENCES users (id),
            amount DECIMAL(10, 2) CHECK (amount > 0)
        )
    """)
    conn.execute("CREATE INDEX users_age_idx ON users (age)")
    conn.execute("CREATE VIEW adults AS SELECT * FROM users WHERE age >= 18")
    conn.execute("CREATE SEQUENCE order_ids START 5")
    conn.execute("CREATE MACRO add_one(x) AS x + 1")
    conn.execute("""
        INSERT INTO users VALUES
            (1, 'Alice', 30),
            (2, 'Bob', 30),
            (3, 'Carol', NULL)
    """)
    conn.execute("INSERT INTO orders VALUES (10, 1, 12.50), (11, 1, 7.25)")

    yield reader

    reader.disconnect()


def test_connection(duckdb_reader):
    assert duckdb_reader.is_connected()
    assert duckdb_reader.connection is not None
    assert repr(duckdb_reader) == "DuckDBReader(name=test_duck)"


def test_capabilities(duckdb_reader):
    assert duckdb_reader.supports_capability(Capability.TABLES)
    assert duckdb_reader.supports_capability(Capability.COLUMN_STATS)
    assert duckdb_reader.supports_all(Capability.INDEXES, Capability.INDEX_COLUMNS)
    assert not duckdb_reader.supports_capability(Capability.TRIGGERS)
    assert not duckdb_reader.supports_capability(Capability.PRIVILEGE_SUMMARIES)


def test_catalogs(duckdb_reader):
    with duckdb_reader.catalogs(Filter()) as res:
        names = [c.catalog for c in res]
    assert "memory" in names
    assert "system" not in names
    assert "temp" not in names


def test_schemas(duckdb_reader):
    with duckdb_reader.schemas(Filter()) as res:
        names = [s.schema for s in res]
    assert "main" in names
    assert "information_schema" not in names

    with duckdb_reader.schemas(Filter(with_system=True)) as res:
        names = [s.schema for s in res]
    assert "information_schema" in names
    assert len(names) == len(set(names))


def test_tables(duckdb_reader):
    with duckdb_reader.tables(Filter(schema="main")) as res:
        tables = {t.name: t for t in res}
    assert set(tables) >= {"users", "orders", "adults"}
    assert tables["users"].type == "BASE TABLE"
    assert tables["adults"].type == "VIEW"
    assert tables["users"].catalog == "memory"


def test_tables_by_type_and_pattern(duckdb_reader):
    with duckdb_reader.tables(Filter(name="%s", types=["BASE TABLE"])) as res:
        names = [t.name for t in res]
    assert names == ["orders", "users"]


def test_columns(duckdb_reader):
    with duckdb_reader.columns(Filter(schema="main", parent="users")) as res:
        columns = list(res)
    assert [c.name for c in columns] == ["id", "name", "age"]
    assert [c.ordinal_position for c in columns] == [1, 2, 3]
    assert columns[0].data_type == "INTEGER"
    assert columns[1].is_nullable == Bool.NO
    assert columns[2].is_nullable == Bool.YES


def test_indexes_and_index_columns(duckdb_reader):
    with duckdb_reader.indexes(Filter(schema="main", parent="users")) as res:
        indexes = list(res)
    assert [i.name for i in indexes] == ["users_age_idx"]
    assert indexes[0].type == "ART"
    assert indexes[0].columns == "age"
    assert indexes[0].is_unique == Bool.NO

    f = Filter(schema="main", parent="users", name="users_age_idx")
    with duckdb_reader.index_columns(f) as res:
        columns = list(res)
    assert [(c.name, c.data_type, c.ordinal_position) for c in columns] == [
        ("age", "INTEGER", 1)
    ]


def test_constraints_and_constraint_columns(duckdb_reader):
    with duckdb_reader.constraints(Filter(schema="main", parent="orders")) as res:
        constraints = list(res)
    by_type = {}
    for c in constraints:
        by_type.setdefault(c.type, []).append(c)

    check = by_type["CHECK"][0]
    assert "amount > 0" in check.check_clause
    fk = by_type["FOREIGN KEY"][0]
    assert fk.foreign_table == "users"
    assert fk.update_rule == "NO ACTION"

    f = Filter(schema="main", parent="orders", name=fk.name)
    with duckdb_reader.constraint_columns(f) as res:
        columns = list(res)
    assert [(c.name, c.foreign_name) for c in columns] == [("user_id", "id")]


def test_referencing_constraints(duckdb_reader):
    with duckdb_reader.constraints(Filter(schema="main", reference="users")) as res:
        constraints = list(res)
    assert [c.table for c in constraints] == ["orders"]
    assert constraints[0].type == "FOREIGN KEY"


def test_sequences(duckdb_reader):
    with duckdb_reader.sequences(Filter(name="order_ids")) as res:
        sequences = list(res)
    assert len(sequences) == 1
    assert sequences[0].start == "5"
    assert sequences[0].data_type == "BIGINT"
    assert sequences[0].cycles == Bool.NO


def test_functions_and_function_columns(duckdb_reader):
    with duckdb_reader.functions(Filter(name="add_one")) as res:
        functions = list(res)
    assert len(functions) == 1
    fn = functions[0]
    assert fn.type == "FUNCTION"
    assert fn.language == "SQL"
    assert fn.specific_name.startswith("add_one(")

    f = Filter(catalog=fn.catalog, schema=fn.schema, parent=fn.specific_name)
    with duckdb_reader.function_columns(f) as res:
        columns = list(res)
    assert columns[0].ordinal_position == 0
    assert [(c.name, c.type, c.ordinal_position) for c in columns[1:]] == [("x", "IN", 1)]


def test_system_functions_are_hidden(duckdb_reader):
    with duckdb_reader.functions(Filter(name="abs")) as res:
        assert res.len() == 0
    with duckdb_reader.functions(Filter(name="abs", with_system=True)) as res:
        assert res.len() > 0


def test_column_stats(duckdb_reader):
    f = Filter(schema="main", parent="users", types=["basic"])
    with duckdb_reader.column_stats(f) as res:
        stats = {s.name: s for s in res}
    age = stats["age"]
    assert age.num_distinct == 1
    assert age.null_frac == pytest.approx(1 / 3)
    assert age.min == "30"
    assert age.max == "30"
    assert age.top_n == []
    assert stats["id"].num_distinct == 3


def test_column_stats_extended(duckdb_reader):
    f = Filter(schema="main", parent="users", types=["basic", "extended"])
    with duckdb_reader.column_stats(f) as res:
        stats = {s.name: s for s in res}
    age = stats["age"]
    assert age.top_n == ["30"]
    assert age.top_n_freqs == [pytest.approx(2 / 3)]


def test_failed_query_is_wrapped(duckdb_reader):
    with pytest.raises(QueryFailedError) as exc_info:
        duckdb_reader.fetch_all("SELECT * FROM missing_table", [])
    assert "test_duck" in str(exc_info.value)
    assert exc_info.value.cause is not None


def test_nested_result_sets_stay_readable(duckdb_reader):
    with duckdb_reader.tables(Filter(schema="main", types=["BASE TABLE"])) as tables:
        seen = {}
        while tables.next():
            t = tables.get()
            with duckdb_reader.columns(Filter(schema="main", parent=t.name)) as cols:
                seen[t.name] = cols.len()
    assert seen["users"] == 3
    assert seen["orders"] == 3


def test_index_column_names():
    assert index_column_names("CREATE INDEX i ON t (a, b);") == ["a", "b"]
    assert index_column_names("CREATE INDEX i ON t ((a + 1))") == ["a"]
    assert index_column_names("") == []


def test_specific_name():
    assert specific_name("add", ["INTEGER", "INTEGER"]) == "add(INTEGER, INTEGER)"
    assert specific_name("now", None) == "now()"


def test_describe_report_end_to_end(duckdb_reader):
    output = []
    Writer(duckdb_reader, output.append).describe_table_details("main.orders")

    assert output[0].strip() == 'BASE TABLE "main.orders"'
    assert "Check constraints:" in output
    fk = output[output.index("Foreign-key constraints:") + 1]
    assert "FOREIGN KEY (user_id) REFERENCES users(id)" in fk
    assert "Triggers:" not in output


def test_referenced_by_end_to_end(duckdb_reader):
    output = []
    Writer(duckdb_reader, output.append).describe_table_details("main.users")
    assert output.index("Indexes:") < output.index("Referenced by:")
    assert any('TABLE "orders"' in line for line in output)


def test_list_tables_end_to_end(duckdb_reader):
    output = []
    Writer(duckdb_reader, output.append).list_tables("tv", "main.*", verbose=True)
    assert output[0].strip() == "List of relations"
    assert any("adults" in line and "VIEW" in line for line in output)


def test_table_report_only_shows_its_own_columns_and_indexes(duckdb_reader):
    conn = duckdb_reader.connection
    conn.execute("CREATE TABLE t_1 (a INTEGER)")
    conn.execute("CREATE TABLE tx1 (intruder VARCHAR)")
    conn.execute("CREATE INDEX tx1_idx ON tx1 (intruder)")

    output = []
    Writer(duckdb_reader, output.append).describe_table_details("main.t_1")

    titles = [line.strip() for line in output]
    start = titles.index('BASE TABLE "main.t_1"')
    report = output[start:output.index("", start)]
    assert "(1 row)" in report
    assert not any("intruder" in line for line in report)
    assert "Indexes:" not in report


def test_escaped_filter_matches_literal_underscore(duckdb_reader):
    duckdb_reader.connection.execute("CREATE TABLE t_1 (a INTEGER)")
    duckdb_reader.connection.execute("CREATE TABLE tx1 (b INTEGER)")
    with duckdb_reader.columns(Filter(schema="main", parent=escape_like("t_1"))) as res:
        assert [c.name for c in res] == ["a"]
    with duckdb_reader.columns(Filter(schema="main", parent="t_1")) as res:
        assert sorted(c.name for c in res) == ["a", "b"]
