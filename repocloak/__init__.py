"""Encrypt and rename a project's files, restore them from an encrypted mapping, and related tools."""

__version__ = "1.0.0"

__all__ = ["__version__"]