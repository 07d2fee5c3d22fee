"""
POI categories: tree resolution and search filters.
"""
from poistore.categories.filter import CategoryFilter, WhitelistCategoryFilter
from poistore.categories.manager import CategoryManager

__all__ = [
    "CategoryFilter",
    "CategoryManager",
    "WhitelistCategoryFilter",
]
