"""Database package: SQLAlchemy base, database and Redis connections."""

from app.db.base import Base, Database
from app.db.redis import RedisConnection

__all__ = [
    "Base",
    "Database",
    "RedisConnection",
]
