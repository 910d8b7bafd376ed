"""
Database compatibility helpers for SQLite and PostgreSQL.
"""
from sqlalchemy import Column
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, table):
    """INSERT construct supporting ON CONFLICT for the session's backend."""
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(table)
    if dialect == "postgresql":
        return postgresql.insert(table)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")


def equals_or_null(column: Column, value):
    """Filter: column equals value, treating None as IS NULL."""
    if value is None:
        return column.is_(None)
    return column == value
