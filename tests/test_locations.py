from pathlib import Path

import pytest

from schemasplit.locations import (
    Aggregate,
    CompositeType,
    EnablePolicy,
    EnumType,
    ForeignKey,
    Function,
    Index,
    Operator,
    Policy,
    Schema,
    Sequence,
    Setup,
    Table,
    Trigger,
    TriggerFunction,
    View,
    ensure_semicolon,
)

BASE = Path("out")


def test_ensure_semicolon_adds_missing():
    assert ensure_semicolon("SELECT 1") == "SELECT 1;"


def test_ensure_semicolon_keeps_existing():
    assert ensure_semicolon("SELECT 1;") == "SELECT 1;"


@pytest.mark.parametrize("text", ["", "a", "CREATE TABLE x ()", "x;;"])
def test_ensure_semicolon_invariants(text):
    result = ensure_semicolon(text)
    assert result.endswith(";")
    assert result.startswith(text)
    assert ensure_semicolon(result) == result


def test_render_appends_semicolon():
    node = Table(schema="public", name="users", sql="CREATE TABLE users ()")
    assert node.render() == "CREATE TABLE users ();"


def test_render_unchanged_when_terminated():
    sql = "SET search_path = public;"
    assert Setup(sql=sql).render() == sql


def test_schema_and_setup_paths():
    assert Schema(name="api", sql="x").path(BASE, []) == BASE / "api" / "index.sql"
    assert Setup(sql="x").path(BASE, []) == BASE / "index.sql"


def test_accepts_string_base_dir():
    node = Table(schema="public", name="users", sql="x")
    assert node.path("out", []) == BASE / "public" / "tables" / "users.sql"


@pytest.mark.parametrize(
    "node, parts",
    [
        (Table(schema="s", name="t", sql="x"), ("s", "tables", "t.sql")),
        (Function(schema="s", name="f", sql="x"), ("s", "functions", "f.sql")),
        (View(schema="s", name="v", sql="x"), ("s", "views", "v.sql")),
        (EnumType(schema="s", name="e", sql="x"), ("s", "enums", "e.sql")),
        (CompositeType(schema="s", name="c", sql="x"), ("s", "types", "c.sql")),
        (Aggregate(schema="s", name="a", sql="x"), ("s", "aggregates", "a.sql")),
        (Operator(schema="s", name="o", sql="x"), ("s", "operators", "o.sql")),
        (
            EnablePolicy(schema="s", table="t", sql="x"),
            ("s", "policies", "t", "enable_rls.sql"),
        ),
        (
            Policy(schema="s", name="p", table="t", sql="x"),
            ("s", "policies", "t", "p.sql"),
        ),
        (
            Index(schema="s", name="i", table="t", sql="x"),
            ("s", "indices", "t", "i.sql"),
        ),
        (
            Trigger(schema="s", name="trg", table="t", function="fn", sql="x"),
            ("s", "triggers", "t", "fn.sql"),
        ),
        (
            ForeignKey(
                constraint_name="fk",
                source_schema="s",
                source_table="t",
                target_schema="other",
                target_table="u",
                sql="x",
            ),
            ("s", "fkeys", "t", "fk.sql"),
        ),
    ],
)
def test_simple_paths(node, parts):
    assert node.path(BASE, [node]) == BASE.joinpath(*parts)


def _trigger(table, function, name="trg"):
    return Trigger(schema="s", name=name, table=table, function=function, sql="x")


def test_trigger_function_single_table_goes_in_table_dir():
    func = TriggerFunction(schema="s", name="fn", sql="x")
    nodes = [func, _trigger("t1", "fn", "a"), _trigger("t1", "fn", "b")]
    assert func.path(BASE, nodes) == BASE / "s" / "triggers" / "t1" / "fn.sql"


def test_trigger_function_multiple_tables_goes_in_general_dir():
    func = TriggerFunction(schema="s", name="fn", sql="x")
    nodes = [func, _trigger("t1", "fn"), _trigger("t2", "fn")]
    assert func.path(BASE, nodes) == BASE / "s" / "triggers" / "fn.sql"


def test_trigger_function_unused_goes_in_general_dir():
    func = TriggerFunction(schema="s", name="fn", sql="x")
    nodes = [func, _trigger("t1", "other")]
    assert func.path(BASE, nodes) == BASE / "s" / "triggers" / "fn.sql"


def test_sequence_with_table():
    seq = Sequence(table="orders", schema="s", name="orders_id_seq", sql="x")
    assert seq.path(BASE, [seq]) == BASE / "s" / "tables" / "orders.sql"


def test_sequence_looks_up_owning_table():
    seq = Sequence(table=None, schema="s", name="orders_id_seq", sql="x")
    owner = Sequence(table="orders", schema="s", name="orders_id_seq", sql="y")
    other = Sequence(table="wrong", schema="other", name="orders_id_seq", sql="z")
    nodes = [seq, other, owner]
    assert seq.path(BASE, nodes) == BASE / "s" / "tables" / "orders.sql"


def test_sequence_without_owner_raises():
    seq = Sequence(table=None, schema="s", name="lonely_seq", sql="x")
    with pytest.raises(LookupError):
        seq.path(BASE, [seq])