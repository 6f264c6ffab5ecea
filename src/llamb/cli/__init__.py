"""Command-line interface for llamb."""

from .app import app, main

__all__ = ["app", "main"]
