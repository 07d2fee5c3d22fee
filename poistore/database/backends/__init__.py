"""
Backing store adapters and the backend registry.
"""
import logging
from typing import Dict, Optional, Type

from poistore.database.backends.base import StoreBackend
from poistore.database.backends.postgres import PostgresBackend
from poistore.database.backends.sqlite import SQLiteBackend

logger = logging.getLogger(__name__)

_backend_classes: Dict[str, Type[StoreBackend]] = {
    SQLiteBackend.name: SQLiteBackend,
    PostgresBackend.name: PostgresBackend,
}


def register_backend(name: str, backend_class: Type[StoreBackend]) -> None:
    """
    Register a backend class under a settings name.

    Args:
        name: Value accepted in POI_STORE_BACKEND
        backend_class: The StoreBackend subclass to instantiate
    """
    _backend_classes[name.lower()] = backend_class
    logger.info(f"Registered store backend: {name}")


def get_backend(name: Optional[str] = None) -> StoreBackend:
    """
    Create a backend instance by name.

    Args:
        name: Backend name. If None, uses the POI_STORE_BACKEND setting.

    Raises:
        ValueError: If the backend is not registered
    """
    if name is None:
        from poistore.settings import get_settings
        name = get_settings().poi_store_backend

    backend_class = _backend_classes.get(name.lower())
    if backend_class is None:
        available = sorted(_backend_classes)
        raise ValueError(
            f"Invalid store backend '{name}'. "
            f"Available backends: {', '.join(available)}"
        )
    return backend_class()


__all__ = [
    "StoreBackend",
    "SQLiteBackend",
    "PostgresBackend",
    "get_backend",
    "register_backend",
]
