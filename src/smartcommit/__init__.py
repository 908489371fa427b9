"""
Top-level package for smartcommit.

This package exposes the main CLI entry point via the
``smartcommit.cli`` module.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
