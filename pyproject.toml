[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sidechain_archive"
version = "0.13.0"
description = "Block archive and transaction mempool for a BMM sidechain node, with ancestry queries and fork choice"
requires-python = ">=3.10"
dependencies = []
keywords = ["blockchain", "sidechain", "archive", "mempool", "bmm", "fork-choice"]
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
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sidechain_archive"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
