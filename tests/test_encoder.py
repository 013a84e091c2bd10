"""Tests for table rendering."""

from dbmeta.metadata import Bool, Column, PrivilegeSummary, ResultSet, Schema
from dbmeta.output import RenderOptions, TableEncoder, encode_all


def test_renders_title_border_rows_and_footer(output):
    res = ResultSet.of(Schema, [Schema("public"), Schema("sales")])
    TableEncoder(output.append).encode(res, RenderOptions(title="List of schemas"))

    assert output == [
        "List of schemas",
        "+--------+",
        "| Name   |",
        "+--------+",
        "| public |",
        "| sales  |",
        "+--------+",
        "(2 rows)",
        "",
    ]


def test_single_row_footer_and_footer_off(output):
    encode_all(output.append, ResultSet.of(Schema, [Schema("public")]), RenderOptions())
    assert "(1 row)" in output

    output.clear()
    encode_all(
        output.append,
        ResultSet.of(Schema, [Schema("public")]),
        RenderOptions().without_footer(),
    )
    assert not any(line.startswith("(") for line in output)


def test_summary_runs_after_table(output):
    res = ResultSet.of(Schema, [Schema("public")])

    def summary(out):
        out("Indexes:")

    encode_all(output.append, res, RenderOptions(), summary)
    assert output[-3:] == ["(1 row)", "Indexes:", ""]


def test_cells_use_null_display_and_enum_values(output):
    res = ResultSet.of(Column, [Column("id", "t", data_type="integer", is_nullable=Bool.NO)])
    res.set_scan_values(lambda c: [c.name, c.data_type, c.is_nullable, None])
    encode_all(output.append, res, RenderOptions(null_display="(null)"))
    assert "| id   | integer | NO       | (null)  |" in output


def test_render_options_are_not_shared_state():
    base = RenderOptions()
    titled = base.with_title("List of relations")
    assert base.title == ""
    assert titled.title == "List of relations"
    assert titled.without_footer().footer is False
    assert titled.footer is True


def test_multi_line_cells_continue_on_following_lines(output):
    res = ResultSet.of(
        PrivilegeSummary,
        [PrivilegeSummary("orders", "public", object_privileges="a=r/a\nb=w/a")],
    )
    res.set_columns(["Name", "Access privileges"])
    res.set_scan_values(lambda p: [p.name, p.object_privileges])
    encode_all(output.append, res, RenderOptions())

    assert output == [
        "+--------+-------------------+",
        "| Name   | Access privileges |",
        "+--------+-------------------+",
        "| orders | a=r/a             |",
        "|        | b=w/a             |",
        "+--------+-------------------+",
        "(1 row)",
        "",
    ]
