"""Writing statements into their files below an output directory."""

from __future__ import annotations

from collections.abc import Sequence
from os import PathLike
from pathlib import Path

from schemasplit.locations import StatementLocation

__all__ = ["write_nodes"]


def _already_contains(path: Path, content: str) -> bool:
    try:
        return content in path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False


def write_nodes(
    nodes: Sequence[StatementLocation], out_dir: str | PathLike
) -> list[Path]:
    """Append each statement to its file, skipping ones already present.

    Returns the file path of every statement, in order.
    """
    paths = []
    for node in nodes:
        path = node.path(out_dir, nodes)
        content = node.render()

        path.parent.mkdir(parents=True, exist_ok=True)

        if not (path.exists() and _already_contains(path, content)):
            with path.open("a", encoding="utf-8") as handle:
                handle.write(f"{content}\n")

        paths.append(path)
    return paths