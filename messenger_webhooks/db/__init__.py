"""Relational store module."""

from .client import init_db, close_db, get_db_session

__all__ = [
    "init_db",
    "close_db",
    "get_db_session",
]
