"""Schema objects found in a SQL dump and where each one is stored on disk."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence as SequenceOf
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

__all__ = [
    "StatementLocation",
    "Schema",
    "Table",
    "Function",
    "EnablePolicy",
    "Policy",
    "Index",
    "View",
    "TriggerFunction",
    "Trigger",
    "EnumType",
    "CompositeType",
    "Setup",
    "ForeignKey",
    "Aggregate",
    "Operator",
    "Sequence",
    "ensure_semicolon",
]

PathLikeStr = str | PathLike


def ensure_semicolon(text: str) -> str:
    """Return ``text`` terminated by a semicolon."""
    return text if text.endswith(";") else f"{text};"


class StatementLocation(ABC):
    """A single SQL statement together with the object it belongs to."""

    sql: str

    def render(self) -> str:
        """The statement's SQL, terminated by a semicolon."""
        return ensure_semicolon(self.sql)

    @abstractmethod
    def path(
        self, base_dir: PathLikeStr, nodes: SequenceOf[StatementLocation]
    ) -> Path:
        """The file, below ``base_dir``, that this statement is written to."""


@dataclass
class Schema(StatementLocation):
    name: str
    sql: str

    def path(self, base_dir, nodes):
        return Path(base_dir) / self.name / "index.sql"


@dataclass
class Setup(StatementLocation):
    sql: str

    def path(self, base_dir, nodes):
        return Path(base_dir) / "index.sql"


@dataclass
class Table(StatementLocation):
    schema: str
    name: str
    sql: str

    def path(self, base_dir, nodes):
        return Path(base_dir) / self.schema / "tables" / f"{self.name}.sql"


@dataclass
class Function(StatementLocation):
    schema: str
    name: str
    sql: str

    def path(self, base_dir, nodes):
        return Path(base_dir) / self.schema / "functions" / f"{self.name}.sql"


@dataclass
class EnablePolicy(StatementLocation):
    schema: str
    table: str
    sql: str

    def path(self, base_dir, nodes):
        return (
            Path(base_dir) / self.schema / "policies" / self.table / "enable_rls.sql"
        )


@dataclass
class Policy(StatementLocation):
    schema: str
    name: str
    table: str
    sql: str

    def path(self, base_dir, nodes):
        return (
            Path(base_dir) / self.schema / "policies" / self.table / f"{self.name}.sql"
        )


@dataclass
class Index(StatementLocation):
    schema: str
    name: str
    table: str
    sql: str

    def path(self, base_dir, nodes):
        return (
            Path(base_dir) / self.schema / "indices" / self.table / f"{self.name}.sql"
        )


@dataclass
class View(StatementLocation):
    schema: str
    name: str
    sql: str

    def path(self, base_dir, nodes):
        return Path(base_dir) / self.schema / "views" / f"{self.name}.sql"


@dataclass
class TriggerFunction(StatementLocation):
    schema: str
    name: str
    sql: str

    def path(self, base_dir, nodes):
        tables = {
            node.table
            for node in nodes
            if isinstance(node, Trigger) and node.function == self.name
        }
        triggers_dir = Path(base_dir) / self.schema / "triggers"
        # A function used by exactly one table lives next to that table's triggers.
        if len(tables) == 1:
            (table,) = tables
            return triggers_dir / table / f"{self.name}.sql"
        return triggers_dir / f"{self.name}.sql"


@dataclass
class Trigger(StatementLocation):
    schema: str
    name: str
    table: str
    function: str
    sql: str

    def path(self, base_dir, nodes):
        return (
            Path(base_dir)
            / self.schema
            / "triggers"
            / self.table
            / f"{self.function}.sql"
        )


@dataclass
class EnumType(StatementLocation):
    schema: str
    name: str
    sql: str

    def path(self, base_dir, nodes):
        return Path(base_dir) / self.schema / "enums" / f"{self.name}.sql"


@dataclass
class CompositeType(StatementLocation):
    schema: str
    name: str
    sql: str

    def path(self, base_dir, nodes):
        return Path(base_dir) / self.schema / "types" / f"{self.name}.sql"


@dataclass
class ForeignKey(StatementLocation):
    constraint_name: str
    source_schema: str
    source_table: str
    target_schema: str
    target_table: str
    sql: str

    def path(self, base_dir, nodes):
        return (
            Path(base_dir)
            / self.source_schema
            / "fkeys"
            / self.source_table
            / f"{self.constraint_name}.sql"
        )


@dataclass
class Aggregate(StatementLocation):
    schema: str
    name: str
    sql: str

    def path(self, base_dir, nodes):
        return Path(base_dir) / self.schema / "aggregates" / f"{self.name}.sql"


@dataclass
class Operator(StatementLocation):
    schema: str
    name: str
    sql: str

    def path(self, base_dir, nodes):
        return Path(base_dir) / self.schema / "operators" / f"{self.name}.sql"


@dataclass
class Sequence(StatementLocation):
    table: str | None
    schema: str
    name: str
    sql: str

    def path(self, base_dir, nodes):
        table = self.table
        if table is None:
            table = next(
                (
                    node.table
                    for node in nodes
                    if isinstance(node, Sequence)
                    and node.name == self.name
                    and node.schema == self.schema
                    and node.table is not None
                ),
                None,
            )
            if table is None:
                raise LookupError(
                    f"No table found for sequence {self.schema}.{self.name}"
                )
        return Path(base_dir) / self.schema / "tables" / f"{table}.sql"