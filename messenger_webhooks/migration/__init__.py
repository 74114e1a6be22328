"""Replay of the JSON audit log into the database."""

from .importer import MigrationImporter, MigrationResult

__all__ = [
    "MigrationImporter",
    "MigrationResult",
]
