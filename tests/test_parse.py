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
)
from schemasplit.parse import UnsupportedStatementError, get_nodes, parse_statement
from schemasplit.writer import write_nodes


def test_create_schema():
    nodes = get_nodes("CREATE SCHEMA app;")
    assert nodes == [Schema(name="app", sql="CREATE SCHEMA app")]


def test_column_comment_goes_to_table_and_escapes():
    nodes = get_nodes(
        "CREATE TABLE public.items (id integer);"
        "COMMENT ON COLUMN public.items.id IS 'it''s';"
    )
    assert isinstance(nodes[1], Table)
    assert nodes[1].sql == 'COMMENT ON COLUMN "public"."items"."id" IS E\'it\'\'s\';'


def test_table_comment_not_escaped():
    nodes = get_nodes(
        "CREATE VIEW public.v AS SELECT 1;COMMENT ON TABLE public.v IS 'hello';"
    )
    assert isinstance(nodes[1], View)
    assert nodes[1].sql == 'COMMENT ON VIEW "public"."v" IS \'hello\';'


def test_column_comment_without_table_raises():
    with pytest.raises(UnsupportedStatementError):
        get_nodes("COMMENT ON COLUMN public.missing.id IS 'x';")


def test_functions_and_triggers():
    dump = """
    CREATE FUNCTION public.touch() RETURNS trigger
        LANGUAGE plpgsql AS $$BEGIN RETURN NEW; END;$$;
    CREATE FUNCTION public.add(a integer) RETURNS integer LANGUAGE sql AS 'SELECT a';
    CREATE TABLE public.items (id integer);
    CREATE TRIGGER items_touch BEFORE UPDATE OF id ON public.items
        FOR EACH ROW EXECUTE FUNCTION public.touch();
    ALTER FUNCTION public.touch() OWNER TO postgres;
    """
    nodes = get_nodes(dump)
    assert isinstance(nodes[0], TriggerFunction) and nodes[0].name == "touch"
    assert isinstance(nodes[1], Function) and nodes[1].name == "add"
    trigger = nodes[3]
    assert isinstance(trigger, Trigger)
    assert (trigger.schema, trigger.table, trigger.function) == ("public", "items", "touch")
    assert isinstance(nodes[4], TriggerFunction)


def test_procedure_without_return_type_raises():
    with pytest.raises(UnsupportedStatementError):
        get_nodes("CREATE PROCEDURE public.p() LANGUAGE sql AS 'SELECT 1';")


def test_multiple_add_constraints_are_split():
    sql = (
        "ALTER TABLE ONLY public.t\n"
        "    ADD CONSTRAINT t_pkey PRIMARY KEY (id),\n"
        "    ADD CONSTRAINT t_fk FOREIGN KEY (o) REFERENCES public.o(id)"
    )
    nodes = []
    parse_statement(sql, nodes)
    assert isinstance(nodes[0], Table)
    assert nodes[0].sql == "ALTER TABLE ONLY public.t\n    ADD CONSTRAINT t_pkey PRIMARY KEY (id)"
    fk = nodes[1]
    assert isinstance(fk, ForeignKey)
    assert (fk.constraint_name, fk.source_table, fk.target_schema, fk.target_table) == (
        "t_fk", "t", "public", "o"
    )


def test_alter_table_variants():
    nodes = get_nodes(
        "ALTER TABLE public.t ENABLE ROW LEVEL SECURITY;"
        "ALTER TABLE public.t OWNER TO postgres;"
        "ALTER TABLE ONLY public.t ALTER COLUMN id SET DEFAULT 1;"
    )
    assert isinstance(nodes[0], EnablePolicy) and nodes[0].table == "t"
    assert len(nodes) == 2
    assert isinstance(nodes[1], Table)


def test_not_null_constraint_unsupported():
    with pytest.raises(UnsupportedStatementError):
        get_nodes("ALTER TABLE public.t ADD CONSTRAINT c NOT NULL x;")


def test_sequence_owned_by_and_path(tmp_path):
    nodes = get_nodes(
        "CREATE TABLE public.t (id integer);"
        "CREATE SEQUENCE public.t_id_seq;"
        "ALTER SEQUENCE public.t_id_seq OWNED BY public.t.id;"
    )
    assert isinstance(nodes[2], Sequence) and nodes[2].table == "t"
    assert nodes[1].path(tmp_path, nodes) == nodes[0].path(tmp_path, nodes)


def test_sequence_schema_mismatch():
    with pytest.raises(UnsupportedStatementError):
        get_nodes("ALTER SEQUENCE public.s OWNED BY other.t.id;")


def test_enum_default_schema_and_type_owner():
    nodes = get_nodes(
        "CREATE TYPE mood AS ENUM ('a');"
        "CREATE TYPE public.pair AS (x integer);"
        "ALTER TYPE public.mood OWNER TO postgres;"
        "ALTER TYPE public.pair OWNER TO postgres;"
    )
    assert isinstance(nodes[0], EnumType) and nodes[0].schema == "public"
    assert isinstance(nodes[1], CompositeType)
    assert isinstance(nodes[2], EnumType) and isinstance(nodes[3], CompositeType)


def test_setup_statements():
    nodes = get_nodes(
        "SET statement_timeout = 0; RESET ALL; "
        "SELECT pg_catalog.set_config('search_path', '', false);"
    )
    assert [type(node) for node in nodes] == [Setup, Setup]


def test_grants():
    nodes = get_nodes(
        "CREATE TABLE public.t (id int);"
        "CREATE AGGREGATE public.agg(integer) (SFUNC = f, STYPE = integer);"
        "GRANT ALL ON TABLE public.t TO anon;"
        "GRANT ALL ON FUNCTION public.agg(integer) TO anon;"
        "GRANT USAGE ON SCHEMA public TO anon;"
        "GRANT ALL ON SEQUENCE public.s TO anon;"
    )
    assert [type(node) for node in nodes] == [Table, Aggregate, Table, Aggregate, Schema, Sequence]


def test_grant_on_unknown_table_raises():
    with pytest.raises(UnsupportedStatementError):
        get_nodes("GRANT ALL ON TABLE public.nope TO anon;")


def test_default_privileges():
    nodes = get_nodes(
        "ALTER DEFAULT PRIVILEGES FOR ROLE postgres IN SCHEMA app GRANT ALL ON TABLES TO anon;"
    )
    assert isinstance(nodes[0], Schema) and nodes[0].name == "app"
    with pytest.raises(UnsupportedStatementError):
        get_nodes("ALTER DEFAULT PRIVILEGES GRANT ALL ON TABLES TO anon;")


def test_index_policy_operator():
    nodes = get_nodes(
        "CREATE UNIQUE INDEX idx ON public.t USING btree (id);"
        "CREATE POLICY p ON public.t FOR SELECT USING (true);"
        "CREATE OPERATOR public.=== (PROCEDURE = f, LEFTARG = text, RIGHTARG = text);"
    )
    assert isinstance(nodes[0], Index) and (nodes[0].name, nodes[0].table) == ("idx", "t")
    assert isinstance(nodes[1], Policy) and nodes[1].name == "p"
    assert isinstance(nodes[2], Operator) and nodes[2].name == "==="


def test_unsupported_statement():
    with pytest.raises(UnsupportedStatementError):
        get_nodes("DROP TABLE public.t;")


def test_written_files_hold_statements(tmp_path):
    nodes = get_nodes("CREATE SCHEMA app; CREATE TABLE app.t (id int);")
    paths = write_nodes(nodes, tmp_path)
    assert paths[1].read_text() == "CREATE TABLE app.t (id int);\n"
    assert paths[0].read_text() == "CREATE SCHEMA app;\n"