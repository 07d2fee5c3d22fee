"""
poistore - geospatial point-of-interest persistence engine.

Stores POIs with tags and categories in a relational store with a spatial
index and answers bounding-box, category and tag-pattern searches.
"""
from poistore.categories import CategoryFilter, CategoryManager, WhitelistCategoryFilter
from poistore.exceptions import (
    PoiStoreError,
    QueryError,
    SchemaError,
    StoreClosedError,
    StoreOpenError,
    TransactionError,
    UnknownCategoryError,
)
from poistore.models import BoundingBox, PoiCategory, PoiFileInfo, PointOfInterest, Tag
from poistore.services import (
    PoiPersistenceManager,
    StoreMaintenanceService,
    open_persistence_manager,
)

__version__ = "1.0.0"

__all__ = [
    "BoundingBox",
    "CategoryFilter",
    "CategoryManager",
    "PoiCategory",
    "PoiFileInfo",
    "PoiPersistenceManager",
    "PoiStoreError",
    "PointOfInterest",
    "QueryError",
    "SchemaError",
    "StoreClosedError",
    "StoreMaintenanceService",
    "StoreOpenError",
    "Tag",
    "TransactionError",
    "UnknownCategoryError",
    "WhitelistCategoryFilter",
    "open_persistence_manager",
]
