"""Services module."""
from poistore.services.maintenance_service import (
    MaintenanceStats,
    StoreMaintenanceService,
    StoreStats,
)
from poistore.services.persistence_manager import (
    ManagerState,
    PoiPersistenceManager,
    open_persistence_manager,
)

__all__ = [
    "MaintenanceStats",
    "ManagerState",
    "PoiPersistenceManager",
    "StoreMaintenanceService",
    "StoreStats",
    "open_persistence_manager",
]
