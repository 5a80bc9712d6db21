"""Classifying the statements of a schema dump into storage locations."""

from __future__ import annotations

from collections.abc import Iterable

from schemasplit.lexer import Token, TokenKind, split_statements, tokenize
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
    StatementLocation,
    Table,
    Trigger,
    TriggerFunction,
    View,
)

__all__ = ["UnsupportedStatementError", "get_nodes", "parse_statement"]


class UnsupportedStatementError(ValueError):
    """A statement cannot be classified or refers to an unknown object."""


_CONSTRAINT_WORDS = frozenset({"constraint", "primary", "unique", "check", "foreign", "exclude"})
_TABLE_CONSTRAINTS = frozenset({"primary", "unique", "check", "exclude"})
_OTHER_GRANT_OBJECTS = frozenset(
    {
        "database", "domain", "foreign", "language", "large", "procedure",
        "routine", "tablespace", "type", "parameter",
    }
)


class _Cursor:
    """A position in a list of tokens with helpers for reading names."""

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def peek(self, offset: int = 0) -> Token | None:
        index = self.pos + offset
        return self.tokens[index] if 0 <= index < len(self.tokens) else None

    def _word_at(self, index: int) -> str | None:
        if 0 <= index < len(self.tokens) and self.tokens[index].kind is TokenKind.IDENTIFIER:
            return self.tokens[index].value
        return None

    def word(self, offset: int = 0) -> str | None:
        return self._word_at(self.pos + offset)

    def at(self, *words: str) -> bool:
        return all(self.word(offset) == word for offset, word in enumerate(words))

    def accept(self, *words: str) -> bool:
        if self.at(*words):
            self.pos += len(words)
            return True
        return False

    def expect(self, *words: str) -> None:
        if not self.accept(*words):
            raise UnsupportedStatementError(f"Expected {' '.join(words).upper()}")

    def at_punct(self, text: str) -> bool:
        token = self.peek()
        return token is not None and token.kind is TokenKind.PUNCTUATION and token.text == text

    def name_part(self, context: str) -> str:
        token = self.peek()
        if token is None or token.kind not in (TokenKind.IDENTIFIER, TokenKind.QUOTED_IDENTIFIER):
            raise UnsupportedStatementError(f"Expected a name in {context}")
        self.pos += 1
        return token.value

    def qualified_name(self, context: str, operator: bool = False) -> list[str]:
        parts: list[str] = []
        while True:
            token = self.peek()
            if operator and token is not None and token.kind is TokenKind.OPERATOR:
                parts.append(token.value)
                self.pos += 1
                return parts
            parts.append(self.name_part(context))
            if not self.at_punct("."):
                return parts
            self.pos += 1

    def skip_group(self) -> None:
        """Skip a parenthesised group if one starts here."""
        if not self.at_punct("("):
            return
        depth = 0
        for index, token in enumerate(self.tokens[self.pos :], start=self.pos):
            if token.kind is TokenKind.PUNCTUATION and token.text == "(":
                depth += 1
            elif token.kind is TokenKind.PUNCTUATION and token.text == ")":
                depth -= 1
                if depth == 0:
                    self.pos = index + 1
                    return
        raise UnsupportedStatementError("Unbalanced parentheses")

    def seek(self, *words: str, stop: Iterable[str] = ()) -> bool:
        """Move past the next top-level occurrence of ``words``."""
        stop = frozenset(stop)
        depth = 0
        for index, token in enumerate(self.tokens[self.pos :], start=self.pos):
            if token.kind is TokenKind.PUNCTUATION:
                if token.text == "(":
                    depth += 1
                elif token.text == ")":
                    depth -= 1
                continue
            if depth or token.kind is not TokenKind.IDENTIFIER:
                continue
            if all(self._word_at(index + k) == word for k, word in enumerate(words)):
                self.pos = index + len(words)
                return True
            if token.value in stop:
                return False
        return False

    def split_commands(self) -> list[list[Token]]:
        """The remaining tokens, split at top-level commas."""
        commands: list[list[Token]] = [[]]
        depth = 0
        for token in self.tokens[self.pos :]:
            if token.kind is TokenKind.PUNCTUATION:
                if token.text == "(":
                    depth += 1
                elif token.text == ")":
                    depth -= 1
                elif token.text == "," and depth == 0:
                    commands.append([])
                    continue
            commands[-1].append(token)
        return [command for command in commands if command]


def _relation(parts: list[str], context: str) -> tuple[str, str]:
    if len(parts) == 1:
        return "", parts[0]
    if len(parts) in (2, 3):
        return parts[-2], parts[-1]
    raise UnsupportedStatementError(f"Improper qualified name in {context}")


def _schema_or_default(names: list[str]) -> str:
    return names[0] if len(names) > 1 else "public"


def _require_count(items: list[str], expected: int, context: str) -> None:
    if len(items) != expected:
        raise UnsupportedStatementError(
            f"Expected {expected} items in {context}, found {len(items)}"
        )


def _exists(nodes: list[StatementLocation], kind: type, schema: str, name: str) -> bool:
    return any(
        isinstance(node, kind) and node.schema == schema and node.name == name
        for node in nodes
    )


def _escape(text: str) -> str:
    return text.replace("'", "''")


def _comment_text(cur: _Cursor) -> str:
    cur.expect("is")
    token = cur.peek()
    if token is not None and token.kind is TokenKind.STRING:
        return token.value
    if cur.at("null"):
        return ""
    raise UnsupportedStatementError("Expected a string after IS in comment")


def _comment(cur: _Cursor, nodes: list[StatementLocation]) -> None:
    cur.expect("comment", "on")
    if cur.accept("column"):
        items = cur.qualified_name("column comment")
        comment = _escape(_comment_text(cur))
        _require_count(items, 3, "column comment")
        schema, table, column = items
        sql = f'COMMENT ON COLUMN "{schema}"."{table}"."{column}" IS E\'{comment}\';'
        if _exists(nodes, Table, schema, table):
            nodes.append(Table(schema=schema, name=table, sql=sql))
        elif _exists(nodes, View, schema, table):
            nodes.append(View(schema=schema, name=table, sql=sql))
        else:
            raise UnsupportedStatementError(f"No table or view found for {schema}.{table}")
    elif cur.accept("function"):
        items = cur.qualified_name("function comment")
        cur.skip_group()
        comment = _escape(_comment_text(cur))
        _require_count(items, 2, "function comment list")
        schema, name = items
        sql = f'COMMENT ON FUNCTION "{schema}"."{name}" IS E\'{comment}\';'
        if _exists(nodes, TriggerFunction, schema, name):
            nodes.append(TriggerFunction(schema=schema, name=name, sql=sql))
        elif _exists(nodes, Function, schema, name):
            nodes.append(Function(schema=schema, name=name, sql=sql))
        else:
            raise UnsupportedStatementError(f"No trigger or function found for {schema}.{name}")
    elif cur.accept("schema"):
        name = cur.name_part("schema comment")
        comment = _escape(_comment_text(cur))
        nodes.append(Schema(name=name, sql=f'COMMENT ON SCHEMA "{name}" IS E\'{comment}\';'))
    elif cur.accept("type"):
        items = cur.qualified_name("type comment")
        comment = _escape(_comment_text(cur))
        _require_count(items, 2, "type comment")
        schema, name = items
        sql = f'COMMENT ON TYPE "{schema}"."{name}" IS E\'{comment}\';'
        if _exists(nodes, EnumType, schema, name):
            nodes.append(EnumType(schema=schema, name=name, sql=sql))
        elif _exists(nodes, CompositeType, schema, name):
            nodes.append(CompositeType(schema=schema, name=name, sql=sql))
        else:
            raise UnsupportedStatementError(f"No type found for comment on {schema}.{name}")
    elif cur.accept("table"):
        items = cur.qualified_name("table comment")
        comment = _comment_text(cur)
        _require_count(items, 2, "table comment")
        schema, name = items
        if _exists(nodes, Table, schema, name):
            nodes.append(
                Table(schema=schema, name=name,
                      sql=f'COMMENT ON TABLE "{schema}"."{name}" IS \'{comment}\';')
            )
        elif _exists(nodes, View, schema, name):
            nodes.append(
                View(schema=schema, name=name,
                     sql=f'COMMENT ON VIEW "{schema}"."{name}" IS \'{comment}\';')
            )
        else:
            raise UnsupportedStatementError(f"No table or view found for {schema}.{name}")
    else:
        raise UnsupportedStatementError(f"Unsupported comment type: {cur.word()}")


def _create_function(sql: str, cur: _Cursor, nodes: list[StatementLocation]) -> None:
    names = cur.qualified_name("function definition")
    schema = _schema_or_default(names)
    name = names[-1]
    cur.skip_group()
    if not cur.seek("returns"):
        raise UnsupportedStatementError("Missing return type in function")
    cur.accept("setof")
    is_trigger = not cur.at("table") and "trigger" in cur.qualified_name("return type")
    kind = TriggerFunction if is_trigger else Function
    nodes.append(kind(schema=schema, name=name, sql=sql))


def _create_trigger(sql: str, cur: _Cursor, nodes: list[StatementLocation]) -> None:
    trigger_name = cur.name_part("trigger")
    if not cur.seek("on"):
        raise UnsupportedStatementError("Missing relation in CreateTrigStmt")
    schema, table = _relation(cur.qualified_name("trigger relation"), "trigger")
    if not cur.seek("execute"):
        raise UnsupportedStatementError("Missing function name in trigger")
    if not (cur.accept("function") or cur.accept("procedure")):
        raise UnsupportedStatementError("Missing function name in trigger")
    function = cur.qualified_name("trigger function")[-1]
    nodes.append(Trigger(schema=schema, name=trigger_name, table=table, function=function, sql=sql))


def _create(sql: str, cur: _Cursor, nodes: list[StatementLocation]) -> None:
    cur.expect("create")
    cur.accept("or", "replace")
    if cur.accept("schema"):
        cur.accept("if", "not", "exists")
        name = "" if cur.at("authorization") else cur.name_part("schema")
        nodes.append(Schema(name=name, sql=sql))
    elif cur.accept("type"):
        names = cur.qualified_name("type definition")
        if cur.accept("as", "enum"):
            nodes.append(EnumType(schema=_schema_or_default(names), name=names[-1], sql=sql))
        elif cur.accept("as") and cur.at_punct("("):
            schema, name = _relation(names, "composite type")
            nodes.append(CompositeType(schema=schema, name=name, sql=sql))
        else:
            raise UnsupportedStatementError(f"Unsupported type definition: '{sql}'")
    elif cur.accept("aggregate"):
        names = cur.qualified_name("aggregate definition")
        nodes.append(Aggregate(schema=_schema_or_default(names), name=names[-1], sql=sql))
    elif cur.at("operator") and cur.word(1) not in ("class", "family"):
        cur.expect("operator")
        names = cur.qualified_name("operator definition", operator=True)
        nodes.append(Operator(schema=_schema_or_default(names), name=names[-1], sql=sql))
    elif cur.accept("policy"):
        name = cur.name_part("policy")
        cur.expect("on")
        schema, table = _relation(cur.qualified_name("policy table"), "policy")
        nodes.append(Policy(schema=schema, name=name, table=table, sql=sql))
    elif cur.accept("function") or cur.accept("procedure"):
        _create_function(sql, cur, nodes)
    elif cur.accept("trigger") or cur.accept("constraint", "trigger"):
        _create_trigger(sql, cur, nodes)
    elif cur.accept("index") or cur.accept("unique", "index"):
        cur.accept("concurrently")
        cur.accept("if", "not", "exists")
        name = "" if cur.at("on") else cur.name_part("index")
        cur.expect("on")
        cur.accept("only")
        schema, table = _relation(cur.qualified_name("index relation"), "index")
        nodes.append(Index(schema=schema, name=name, table=table, sql=sql))
    else:
        _create_relation(sql, cur, nodes)


def _create_relation(sql: str, cur: _Cursor, nodes: list[StatementLocation]) -> None:
    cur.accept("global") or cur.accept("local")
    cur.accept("temp") or cur.accept("temporary")
    cur.accept("unlogged")
    if cur.accept("table"):
        cur.accept("if", "not", "exists")
        schema, name = _relation(cur.qualified_name("table"), "table")
        if cur.at("as"):
            raise UnsupportedStatementError(f"Unsupported node: '{sql}'")
        nodes.append(Table(schema=schema, name=name, sql=sql))
    elif cur.accept("sequence"):
        cur.accept("if", "not", "exists")
        schema, name = _relation(cur.qualified_name("sequence"), "sequence")
        nodes.append(Sequence(table=None, schema=schema, name=name, sql=sql))
    elif cur.accept("view") or cur.accept("recursive", "view"):
        schema, name = _relation(cur.qualified_name("view"), "view")
        nodes.append(View(schema=schema, name=name, sql=sql))
    else:
        raise UnsupportedStatementError(f"Unsupported node: '{sql}'")


def _split_add_constraints(sql: str, nodes: list[StatementLocation]) -> None:
    marker = "ADD CONSTRAINT"
    add_at = sql.find(marker)
    if add_at < 0:
        raise UnsupportedStatementError("Expected 'ADD CONSTRAINT' in SQL")
    alter_at = sql.find("ALTER TABLE")
    if alter_at < 0:
        raise UnsupportedStatementError("Expected 'ALTER TABLE' in SQL")
    begin = sql[alter_at:add_at]
    for command in sql[add_at:].split(marker):
        if command:
            parse_statement(f"{begin}{marker}{command.rstrip().rstrip(',')}", nodes)


def _add_constraint(
    sql: str, command: list[Token], schema: str, table: str, nodes: list[StatementLocation]
) -> None:
    cur = _Cursor(command)
    cur.expect("add")
    name = cur.name_part("constraint") if cur.accept("constraint") else ""
    kind = cur.word()
    if kind == "foreign":
        if not cur.seek("references"):
            raise UnsupportedStatementError("Missing target table for foreign key")
        target_schema, target_table = _relation(cur.qualified_name("foreign key"), "foreign key")
        nodes.append(
            ForeignKey(
                constraint_name=name,
                source_schema=schema,
                source_table=table,
                target_schema=target_schema,
                target_table=target_table,
                sql=sql,
            )
        )
    elif kind in _TABLE_CONSTRAINTS:
        nodes.append(Table(schema=schema, name=table, sql=sql))
    else:
        raise UnsupportedStatementError(f"Unsupported constraint type: {kind}")


def _alter_table(sql: str, cur: _Cursor, nodes: list[StatementLocation]) -> None:
    cur.accept("if", "exists")
    cur.accept("only")
    schema, table = _relation(cur.qualified_name("table"), "ALTER TABLE")
    star = cur.peek()
    if star is not None and star.kind is TokenKind.OPERATOR and star.text == "*":
        cur.pos += 1
    commands = cur.split_commands()
    if not commands:
        raise UnsupportedStatementError("No commands in AlterTableStmt")
    first = _Cursor(commands[0])
    if first.accept("alter"):
        first.accept("column")
        first.name_part("column")
        if first.at("set", "default") or first.at("drop", "default"):
            nodes.append(Table(schema=schema, name=table, sql=sql))
            return
    elif first.at("enable", "row", "level", "security"):
        nodes.append(EnablePolicy(schema=schema, table=table, sql=sql))
        return
    elif first.at("owner", "to"):
        return
    elif first.at("add") and first.word(1) in _CONSTRAINT_WORDS:
        if len(commands) > 1:
            _split_add_constraints(sql, nodes)
        else:
            _add_constraint(sql, commands[0], schema, table, nodes)
        return
    raise UnsupportedStatementError(f"Unsupported AlterTableType for SQL: '{sql}'")


def _alter_sequence(sql: str, cur: _Cursor, nodes: list[StatementLocation]) -> None:
    cur.accept("if", "exists")
    schema, name = _relation(cur.qualified_name("sequence"), "ALTER SEQUENCE")
    if cur.at("owner", "to"):
        return
    if not cur.seek("owned", "by"):
        raise UnsupportedStatementError("Only owned_by is supported in AlterSeqStmt")
    items = cur.qualified_name("sequence owned_by")
    _require_count(items, 3, "sequence owned_by list")
    if items[0] != schema:
        raise UnsupportedStatementError(
            f"Schema name mismatch in sequence owned_by: {items[0]} != {schema}"
        )
    nodes.append(Sequence(table=items[1], schema=schema, name=name, sql=sql))


def _expect_owner(cur: _Cursor, sql: str) -> None:
    if not cur.at("owner", "to"):
        raise UnsupportedStatementError(f"Unsupported node: '{sql}'")


def _alter(sql: str, cur: _Cursor, nodes: list[StatementLocation]) -> None:
    cur.expect("alter")
    if cur.accept("default", "privileges"):
        if not cur.seek("in", "schema", stop=("grant", "revoke")):
            raise UnsupportedStatementError(
                "schemas option is required in AlterDefaultPrivilegesStmt"
            )
        nodes.append(Schema(name=cur.name_part("default privileges"), sql=sql))
    elif cur.accept("table") or cur.accept("view") or cur.accept("materialized", "view"):
        _alter_table(sql, cur, nodes)
    elif cur.accept("sequence"):
        _alter_sequence(sql, cur, nodes)
    elif cur.accept("schema"):
        name = cur.name_part("schema owner")
        _expect_owner(cur, sql)
        nodes.append(Schema(name=name, sql=sql))
    elif cur.at("function") or cur.at("aggregate") or (
        cur.at("operator") and cur.word(1) not in ("class", "family")
    ):
        kind = cur.word()
        cur.pos += 1
        items = cur.qualified_name(f"{kind} owner", operator=kind == "operator")
        cur.skip_group()
        _expect_owner(cur, sql)
        _require_count(items, 2, f"{kind} owner list")
        schema, name = items
        if kind == "aggregate":
            nodes.append(Aggregate(schema=schema, name=name, sql=sql))
        elif kind == "operator":
            nodes.append(Operator(schema=schema, name=name, sql=sql))
        elif _exists(nodes, TriggerFunction, schema, name):
            nodes.append(TriggerFunction(schema=schema, name=name, sql=sql))
        else:
            nodes.append(Function(schema=schema, name=name, sql=sql))
    elif cur.accept("type"):
        items = cur.qualified_name("type owner")
        _expect_owner(cur, sql)
        _require_count(items, 2, "type owner list")
        schema, name = items
        if _exists(nodes, EnumType, schema, name):
            nodes.append(EnumType(schema=schema, name=name, sql=sql))
        elif _exists(nodes, CompositeType, schema, name):
            nodes.append(CompositeType(schema=schema, name=name, sql=sql))
        else:
            raise UnsupportedStatementError(f"No enum or composite type found for {schema}.{name}")
    else:
        raise UnsupportedStatementError(f"Unsupported node: '{sql}'")


def _grant(sql: str, cur: _Cursor, nodes: list[StatementLocation]) -> None:
    cur.pos += 1
    if not cur.seek("on", stop=("to", "from")):
        raise UnsupportedStatementError(f"Unsupported node: '{sql}'")
    kind = cur.word()
    if kind == "all" or kind in _OTHER_GRANT_OBJECTS:
        raise UnsupportedStatementError(f"Unsupported object type in GrantStmt: {kind}")
    if cur.accept("schema"):
        nodes.append(Schema(name=cur.name_part("schema grant"), sql=sql))
    elif cur.accept("sequence"):
        schema, name = _relation(cur.qualified_name("sequence grant"), "sequence grant")
        nodes.append(Sequence(table=None, schema=schema, name=name, sql=sql))
    elif cur.accept("function"):
        items = cur.qualified_name("function grant")
        _require_count(items, 2, "function grant list")
        schema, name = items
        for candidate in (TriggerFunction, Function, Aggregate):
            if _exists(nodes, candidate, schema, name):
                nodes.append(candidate(schema=schema, name=name, sql=sql))
                return
        raise UnsupportedStatementError(
            f"No trigger or function or aggregate found for {schema}.{name}"
        )
    else:
        cur.accept("table")
        schema, name = _relation(cur.qualified_name("table grant"), "table grant")
        if _exists(nodes, Table, schema, name):
            nodes.append(Table(schema=schema, name=name, sql=sql))
        elif _exists(nodes, View, schema, name):
            nodes.append(View(schema=schema, name=name, sql=sql))
        else:
            raise UnsupportedStatementError(f"No table or view found for {schema}.{name}")


def parse_statement(sql: str, nodes: list[StatementLocation]) -> None:
    """Classify one statement and append what it yields to ``nodes``.

    Earlier entries of ``nodes`` are consulted to decide where comments,
    grants and ownership changes belong.
    """
    cur = _Cursor(tokenize(sql))
    first = cur.word()
    if first == "create":
        _create(sql, cur, nodes)
    elif first == "comment":
        _comment(cur, nodes)
    elif first == "alter":
        _alter(sql, cur, nodes)
    elif first in ("grant", "revoke"):
        _grant(sql, cur, nodes)
    elif first == "set":
        if cur.word(1) == "constraints":
            raise UnsupportedStatementError(f"Unsupported node: '{sql}'")
        nodes.append(Setup(sql=sql))
    elif first == "reset":
        if not cur.at("reset", "all"):
            nodes.append(Setup(sql=sql))
    elif first in ("select", "values"):
        nodes.append(Setup(sql=sql))
    else:
        raise UnsupportedStatementError(f"Unsupported node: '{sql}'")


def get_nodes(sql: str) -> list[StatementLocation]:
    """Classify every statement of a schema dump, in order."""
    nodes: list[StatementLocation] = []
    for statement in split_statements(sql):
        parse_statement(statement, nodes)
    return nodes