"""Content collection unfolder service."""

__version__ = "0.1.0"
