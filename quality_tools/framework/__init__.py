"""Shared framework utilities: the error taxonomy."""

from . import errors

__all__ = ["errors"]
