[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rhythmserver"
version = "0.1.0"
description = "HTTP backend for a rhythm game: player registration over a relational store, with schema migrations."
requires-python = ">=3.10"
keywords = ["rhythm game", "arcade", "http", "server", "flask", "sqlalchemy", "migrations"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Games/Entertainment",
]
dependencies = [
    "sqlalchemy>=2.0",
    "flask>=2.3",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
rhythmserver-migrate = "rhythmserver.migrations:main"

[tool.hatch.build.targets.wheel]
packages = ["rhythmserver"]

[tool.hatch.build.targets.sdist]
include = ["rhythmserver", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
