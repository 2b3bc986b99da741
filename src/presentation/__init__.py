"""Presentation layer package."""

from presentation.cli import main

__all__ = ["main"]
