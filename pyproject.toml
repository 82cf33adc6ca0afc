[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "migratekit"
version = "4.0.0"
description = "Read schema migrations from sources and run them against databases."
requires-python = ">=3.10"
dependencies = []
keywords = ["migrations", "database", "schema", "sql"]
classifiers = [
    "Development Status :: 4 - Beta",
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

[tool.hatch.build.targets.wheel]
packages = ["migratekit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
