"""Rhythm game backend: player registration over HTTP, a SQL store and schema migrations."""

__version__ = "0.1.0"