[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "uhfreader"
version = "0.1.0"
description = "Client library for UHF RFID readers speaking the Reader18 protocol over TCP"
requires-python = ">=3.10"
dependencies = []
keywords = ["rfid", "uhf", "epc", "gen2", "reader18", "inventory"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["uhfreader"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
