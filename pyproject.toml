[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "docsql"
version = "0.1.0"
description = "Translate document-database commands (find, count, insert, update, delete, findAndModify) into SQL for a JSON document store"
requires-python = ">=3.10"
dependencies = []
keywords = ["sql", "document store", "query translation", "json", "projection"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["docsql"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
