"""Split a PostgreSQL schema dump into a tree of per-object SQL files."""

__version__ = "0.1.0"
__all__ = ["__version__"]