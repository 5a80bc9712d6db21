# schemasplit

`schemasplit` takes the SQL dump of a local Supabase database and writes it
out as a directory tree in which every database object has its own file. The
result is a declarative schema layout that reads well and diffs cleanly.

## Installation

```
pip install .
```

The `schemasplit` command needs the `supabase` CLI on your `PATH`. The
library functions do not.

## Usage

Run the command from inside a Supabase project. Any directory at or below the
project's `supabase/` folder works, as long as that folder holds `config.toml`:

```
schemasplit
```

It takes no options other than `--help`. The command:

1. Walks up from the current directory until it finds a directory named
   `supabase` that holds `config.toml`.
2. Runs `supabase status`, and `supabase start` if that reports failure.
3. Runs `supabase db reset --no-seed`.
4. Runs `supabase db dump --local` and splits the dump into statements.
5. Deletes `supabase/schemas/` and writes the statements into a new tree there.

It exits with status 1 if the project directory cannot be found, if Supabase
cannot be started, if the reset fails, or if the `supabase` program cannot be
run. A statement in the dump that cannot be placed raises
`UnsupportedStatementError`.

## Output layout

Each statement goes into a file under `schemas/`. Statements that belong to
one object, such as its comments, grants and ownership changes, are appended
to the same file. A statement whose text is already in its file is not written
again.

| Object                   | File                                               |
|--------------------------|----------------------------------------------------|
| session setup (`SET`, `SELECT`) | `index.sql`                                 |
| schema                   | `<schema>/index.sql`                               |
| table, owned sequence    | `<schema>/tables/<table>.sql`                      |
| view                     | `<schema>/views/<view>.sql`                        |
| function                 | `<schema>/functions/<name>.sql`                    |
| trigger function         | `<schema>/triggers/[<table>/]<name>.sql`           |
| trigger                  | `<schema>/triggers/<table>/<function>.sql`         |
| row-level security on    | `<schema>/policies/<table>/enable_rls.sql`         |
| policy                   | `<schema>/policies/<table>/<policy>.sql`           |
| index                    | `<schema>/indices/<table>/<index>.sql`             |
| enum                     | `<schema>/enums/<name>.sql`                        |
| composite type           | `<schema>/types/<name>.sql`                        |
| foreign key              | `<schema>/fkeys/<table>/<constraint>.sql`          |
| aggregate                | `<schema>/aggregates/<name>.sql`                   |
| operator                 | `<schema>/operators/<name>.sql`                    |

If exactly one table uses a trigger function, the function goes into that
table's trigger directory; otherwise it goes directly under `triggers/`. A
sequence goes into the file of the table that owns it, taken from its
`ALTER SEQUENCE ... OWNED BY`; a sequence with no owning table raises
`LookupError` when its path is asked for.

## Library use

```python
from pathlib import Path

from schemasplit.parse import get_nodes
from schemasplit.writer import write_nodes

nodes = get_nodes(Path("dump.sql").read_text())
written = write_nodes(nodes, Path("schemas"))
```

- `schemasplit.parse.get_nodes(sql)` returns a list of `StatementLocation`
  objects, one per statement, in order. `parse_statement(sql, nodes)`
  classifies a single statement and appends to `nodes`.
- `schemasplit.locations` defines `StatementLocation` and its kinds
  (`Schema`, `Table`, `View`, `Function`, `TriggerFunction`, `Trigger`,
  `EnablePolicy`, `Policy`, `Index`, `EnumType`, `CompositeType`,
  `ForeignKey`, `Aggregate`, `Operator`, `Sequence`, `Setup`). Each has
  `render()`, the SQL ending in a semicolon, and `path(base_dir, nodes)`.
- `schemasplit.writer.write_nodes(nodes, out_dir)` appends each statement to
  its file, creating directories as needed, and returns the paths in order.
- `schemasplit.lexer.tokenize(sql)` returns `Token` objects and
  `split_statements(sql)` returns the top-level statements; both raise
  `SqlSyntaxError` on input that cannot be tokenized.
- `schemasplit.cli.find_supabase_dir(start=None)` returns the project
  directory or raises `FileNotFoundError`.

## Limits

`schemasplit` does not connect to a database itself; the command gets the
schema only through the `supabase` CLI. Statements are classified by their
keywords and names, not by a full SQL grammar, and only the kinds of statement
found in a schema dump are recognised; anything else raises
`UnsupportedStatementError`. The output is always rebuilt from scratch: the
command deletes `schemas/` first and does not merge with earlier contents.

## Running the tests

```
pip install ".[test]"
pytest
```