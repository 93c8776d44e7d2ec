[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "evmchain"
version = "0.1.0"
description = "Runtime building blocks for an Ethereum-compatible chain: fee pallets, transaction signing, storage overrides and block building"
requires-python = ">=3.10"
keywords = [
    "ethereum",
    "evm",
    "eip-1559",
    "base-fee",
    "transactions",
    "secp256k1",
    "rlp",
    "bloom",
]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["evmchain"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
