[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "schemasplit"
version = "0.1.0"
description = "Split a PostgreSQL schema dump into a tree of per-object SQL files"
requires-python = ">=3.10"
dependencies = []
keywords = ["postgresql", "schema", "sql", "supabase", "declarative", "dump"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
schemasplit = "schemasplit.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["schemasplit"]

[tool.pytest.ini_options]
addopts = "-ra"
