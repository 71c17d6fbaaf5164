[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kavarosetta"
version = "0.0.1"
description = "Rosetta API data layer for the Kava chain: configuration, addresses, coins, balances and blocks"
requires-python = ">=3.10"
dependencies = []
keywords = ["kava", "rosetta", "cosmos", "blockchain", "bech32", "staking", "vesting"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kavarosetta"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
