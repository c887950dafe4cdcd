"""Persistence layer."""

from bandcatalog.infrastructure.persistence.database import Database
from bandcatalog.infrastructure.persistence.remote_store import SqlAlchemyRemoteStore

__all__ = ["Database", "SqlAlchemyRemoteStore"]
