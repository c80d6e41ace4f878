"""
metafields CLI Package.

- app.py: form configuration commands (check, visibility, sanitize, schema)
"""

from metafields.cli.app import app, main

__all__ = ["app", "main"]
