"""
Engine and connection bootstrap using SQLAlchemy 2.0 async.

A persistence manager owns exactly one engine and one connection; there is
no global engine here.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from poistore.database.backends.base import StoreBackend
from poistore.exceptions import StoreOpenError
from poistore.settings import StoreSettings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def create_store_engine(
    backend: StoreBackend,
    location: str,
    read_only: bool,
    settings: Optional[StoreSettings] = None,
) -> AsyncEngine:
    """Create the async engine for a store location."""
    settings = settings or get_settings()
    return create_async_engine(
        backend.get_database_url(location, read_only, settings),
        echo=settings.poi_store_echo_sql,
        **backend.engine_options(settings),
    )


async def connect_store(
    backend: StoreBackend,
    location: str,
    read_only: bool,
    settings: Optional[StoreSettings] = None,
) -> Tuple[AsyncEngine, AsyncConnection]:
    """
    Open the single connection a persistence manager works with.

    Raises:
        StoreOpenError: If the location is unusable or the engine refuses the connection
    """
    backend.check_location(location, read_only)

    engine = create_store_engine(backend, location, read_only, settings)
    try:
        connection = await engine.connect()
        options = backend.connection_options(read_only)
        if options:
            connection = await connection.execution_options(**options)
    except (SQLAlchemyError, OSError) as e:
        await engine.dispose()
        raise StoreOpenError(f"Cannot open POI store: {e}", location=location) from e

    logger.debug(f"Connected to {backend.name} store at {location} (read_only={read_only})")
    return engine, connection
