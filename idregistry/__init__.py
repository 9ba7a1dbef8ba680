"""
Identifier registry and backfill engine.

Allocates time-ordered identifiers for rows spread across many tables,
records every assignment in a central registry, and backfills rows or
composite-key groups that predate the identifier scheme.
"""

__version__ = "0.1.0"
