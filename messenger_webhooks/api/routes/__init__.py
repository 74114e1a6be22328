"""API route modules."""

from . import events, health, migration

__all__ = [
    "events",
    "health",
    "migration",
]
