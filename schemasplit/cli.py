"""Command line entry point: dump the local database schema and split it into files."""

from __future__ import annotations

import argparse
import shutil
import subprocess
import sys
from collections.abc import Sequence
from os import PathLike
from pathlib import Path

from schemasplit.parse import get_nodes
from schemasplit.writer import write_nodes

__all__ = ["find_supabase_dir", "main"]

_SUPABASE = "supabase"


def find_supabase_dir(start: str | PathLike | None = None) -> Path:
    """Find the nearest directory named ``supabase`` holding a ``config.toml``.

    The search starts at ``start`` (the current directory by default) and
    walks up towards the filesystem root.
    """
    origin = Path.cwd() if start is None else Path(start).resolve()
    for candidate in (origin, *origin.parents):
        if candidate.name == _SUPABASE and (candidate / "config.toml").exists():
            return candidate
    raise FileNotFoundError(
        "Could not find Supabase root directory (with config.toml)"
    )


def _run(args: list[str], cwd: Path) -> bool:
    return subprocess.run([_SUPABASE, *args], cwd=cwd, check=False).returncode == 0


def _dump_schema(cwd: Path) -> str:
    result = subprocess.run(
        [_SUPABASE, "db", "dump", "--local"],
        cwd=cwd,
        stdout=subprocess.PIPE,
        encoding="utf-8",
        check=False,
    )
    return result.stdout or ""


def main(argv: Sequence[str] | None = None) -> int:
    """Reset the local database, dump its schema and write it below ``schemas/``."""
    parser = argparse.ArgumentParser(
        prog="schemasplit",
        description=(
            "Reset the local Supabase database without seeding, dump its schema "
            "and split it into one file per object under supabase/schemas."
        ),
    )
    parser.parse_args(argv)

    try:
        supabase_dir = find_supabase_dir()
    except FileNotFoundError as error:
        print(error, file=sys.stderr)
        return 1
    print(f"Found Supabase directory at: {supabase_dir}")

    try:
        # There is no "start --no-seed", so start first and reset afterwards.
        if not _run(["status"], supabase_dir):
            print("Supabase is not running. Starting Supabase...")
            if not _run(["start"], supabase_dir):
                print("Failed to start Supabase", file=sys.stderr)
                return 1

        print("Resetting Supabase database without seeding...")
        if not _run(["db", "reset", "--no-seed"], supabase_dir):
            print("Database reset failed", file=sys.stderr)
            return 1

        print("Dumping schema...")
        schema = _dump_schema(supabase_dir)
    except OSError as error:
        print(f"Failed to run {_SUPABASE}: {error}", file=sys.stderr)
        return 1

    print("Processing schema...")
    nodes = get_nodes(schema)

    out_dir = supabase_dir / "schemas"
    shutil.rmtree(out_dir, ignore_errors=True)
    write_nodes(nodes, out_dir)

    print("Schema initialization completed successfully!")
    return 0