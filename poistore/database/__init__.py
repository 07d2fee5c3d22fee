"""
Database module for the POI store.

Provides the SQLAlchemy async connection bootstrap, table models, schema
management, backend adapters and repositories.
"""
from poistore.database.backends import StoreBackend, get_backend, register_backend
from poistore.database.connection import Base, connect_store, create_store_engine
from poistore.database.repositories import (
    BaseRepository,
    CategoryMapRepository,
    CategoryRepository,
    MetadataRepository,
    SpatialIndexRepository,
    TagRepository,
)
from poistore.database.schema import REQUIRED_TABLES, SchemaManager

__all__ = [
    # Connection
    "Base",
    "connect_store",
    "create_store_engine",
    # Backends
    "StoreBackend",
    "get_backend",
    "register_backend",
    # Schema
    "REQUIRED_TABLES",
    "SchemaManager",
    # Repositories
    "BaseRepository",
    "CategoryRepository",
    "CategoryMapRepository",
    "MetadataRepository",
    "SpatialIndexRepository",
    "TagRepository",
]
