"""
Database repositories for the POI store.
"""
from poistore.database.repositories.base import BaseRepository
from poistore.database.repositories.categories import CategoryMapRepository, CategoryRepository
from poistore.database.repositories.metadata import MetadataRepository
from poistore.database.repositories.spatial_index import SpatialIndexRepository
from poistore.database.repositories.tags import TagRepository

__all__ = [
    "BaseRepository",
    "CategoryRepository",
    "CategoryMapRepository",
    "MetadataRepository",
    "SpatialIndexRepository",
    "TagRepository",
]
