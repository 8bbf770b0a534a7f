[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "evmstate"
version = "0.1.0"
description = "Block-level EVM account state: caching, transitions, bundles and reverts"
requires-python = ">=3.10"
keywords = ["ethereum", "evm", "state", "bundle", "reverts", "blockchain"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries",
]
dependencies = [
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["evmstate"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
