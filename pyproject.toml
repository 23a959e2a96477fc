[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "v1tools"
version = "0.1.0"
description = "Tools for First Edition UNIX on the PDP-11: loader files, RF/RK filesystem images, permission listings, symbol tables and system call tables"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "pdp-11",
    "unix",
    "simh",
    "a.out",
    "loader",
    "filesystem",
    "retrocomputing",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
v1-loadfile = "v1tools.loadfile:main"
v1-mkfs = "v1tools.filesystem:main"

[tool.hatch.build.targets.wheel]
packages = ["v1tools"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
