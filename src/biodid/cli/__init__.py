"""Command-line interface for biodid."""

from .main import app, main

__all__ = ["app", "main"]
