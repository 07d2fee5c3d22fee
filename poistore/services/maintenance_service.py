"""
Store maintenance: overhead tag cleanup and table statistics.
"""

import logging
import time
from dataclasses import dataclass

from sqlalchemy import func, select

from poistore.database.models import (
    CategoryRow,
    MetadataEntry,
    PoiCategoryMap,
    PoiTag,
    TagKey,
    TagValue,
)
from poistore.database.repositories import SpatialIndexRepository, TagRepository
from poistore.services.persistence_manager import PoiPersistenceManager

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceStats:
    """Statistics from a maintenance run."""
    overhead_keys_found: int = 0
    overhead_keys_deleted: int = 0
    overhead_values_found: int = 0
    overhead_values_deleted: int = 0
    execution_time_ms: int = 0


@dataclass
class StoreStats:
    """Current row counts of the store."""
    total_pois: int = 0
    total_categories: int = 0
    tag_keys: int = 0
    tag_values: int = 0
    tag_associations: int = 0
    category_associations: int = 0
    metadata_entries: int = 0


class StoreMaintenanceService:
    """Maintenance operations that deletes do not perform on their own."""

    def __init__(self, manager: PoiPersistenceManager):
        self.manager = manager

    async def delete_overhead_tags(self, dry_run: bool = False) -> MaintenanceStats:
        """
        Delete tag keys and values no POI refers to any more.

        Args:
            dry_run: If True, only count but don't delete.

        Returns:
            MaintenanceStats with found and deleted counts.
        """
        start = time.monotonic()
        stats = MaintenanceStats()

        async with self.manager.maintenance_transaction("overhead tag cleanup") as conn:
            tags = TagRepository(conn, self.manager.backend)
            stats.overhead_keys_found = len(await tags.find_unreferenced_key_ids())
            stats.overhead_values_found = len(await tags.find_unreferenced_value_ids())

            if not dry_run:
                stats.overhead_keys_deleted = await tags.delete_unreferenced_keys()
                stats.overhead_values_deleted = await tags.delete_unreferenced_values()

        stats.execution_time_ms = int((time.monotonic() - start) * 1000)
        if dry_run:
            logger.info(
                f"[DRY RUN] Would delete {stats.overhead_keys_found} tag keys "
                f"and {stats.overhead_values_found} tag values"
            )
        else:
            logger.info(
                f"Deleted {stats.overhead_keys_deleted} tag keys and "
                f"{stats.overhead_values_deleted} tag values in {stats.execution_time_ms}ms"
            )
        return stats

    async def get_store_stats(self) -> StoreStats:
        """
        Get current store statistics.

        Returns:
            StoreStats with the row count of every table.
        """
        counted = {
            "total_categories": CategoryRow,
            "tag_keys": TagKey,
            "tag_values": TagValue,
            "tag_associations": PoiTag,
            "category_associations": PoiCategoryMap,
            "metadata_entries": MetadataEntry,
        }
        stats = StoreStats()
        async with self.manager.maintenance_transaction("store statistics") as conn:
            stats.total_pois = await SpatialIndexRepository(conn, self.manager.backend).count()
            for field_name, model in counted.items():
                result = await conn.execute(select(func.count()).select_from(model))
                setattr(stats, field_name, result.scalar() or 0)
        return stats
