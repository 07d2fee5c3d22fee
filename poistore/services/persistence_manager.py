"""
POI Persistence Manager.

Owns one backing-store connection and coordinates schema bootstrap, the
tag/category normalizer and the rectangle query compiler under explicit
transactions.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from poistore.categories.filter import CategoryFilter
from poistore.categories.manager import CategoryManager
from poistore.database.backends import StoreBackend, get_backend
from poistore.database.connection import connect_store
from poistore.database.repositories import (
    CategoryMapRepository,
    CategoryRepository,
    MetadataRepository,
    SpatialIndexRepository,
    TagRepository,
)
from poistore.database.schema import SchemaManager
from poistore.exceptions import QueryError, SchemaError, StoreClosedError, TransactionError
from poistore.models import BoundingBox, PoiCategory, PoiFileInfo, PointOfInterest
from poistore.query.compiler import TagPatterns, compile_rect_query, normalize_patterns
from poistore.settings import StoreSettings, get_settings

logger = logging.getLogger(__name__)

METADATA_BOUNDS = "bounds"
METADATA_COMMENT = "comment"
METADATA_DATE = "date"
METADATA_LANGUAGE = "language"
METADATA_VERSION = "version"
METADATA_WAYS = "ways"
METADATA_WRITER = "writer"


class ManagerState(Enum):
    """Lifecycle of a persistence manager. CLOSED is terminal."""
    NEW = "new"
    OPEN = "open"
    CLOSED = "closed"


def _decode_date(value: str) -> datetime:
    # Stored as milliseconds since the epoch
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def _decode_ways(value: str) -> bool:
    return value.strip().lower() == "true"


_METADATA_DECODERS: Dict[str, Callable[[str], object]] = {
    METADATA_BOUNDS: BoundingBox.from_string,
    METADATA_COMMENT: str,
    METADATA_DATE: _decode_date,
    METADATA_LANGUAGE: str,
    METADATA_VERSION: int,
    METADATA_WAYS: _decode_ways,
    METADATA_WRITER: str,
}


class PoiPersistenceManager:
    """
    Reads and writes POIs in a single backing store.

    Operations are serialized with an asyncio lock, so tasks sharing a
    manager never interleave statements on its connection.

    Usage:
        async with PoiPersistenceManager("pois.sqlite") as manager:
            await manager.insert_point_of_interest(poi)
            found = await manager.find_in_rect(bbox, limit=50)
    """

    def __init__(
        self,
        location: Optional[str] = None,
        read_only: Optional[bool] = None,
        backend: Optional[StoreBackend] = None,
        settings: Optional[StoreSettings] = None,
    ):
        """
        Configure the manager; nothing is opened until ``open()``.

        Args:
            location: SQLite file path or PostgreSQL URL. Defaults to POI_STORE_PATH.
            read_only: Refuse to create or modify the store. Defaults to POI_STORE_READ_ONLY.
            backend: Store backend. Defaults to the POI_STORE_BACKEND setting.
            settings: Settings instance, mainly for tests.
        """
        self._settings = settings or get_settings()
        self.location = location if location is not None else self._settings.poi_store_path
        self.read_only = read_only if read_only is not None else self._settings.poi_store_read_only
        self.backend = backend or get_backend(self._settings.poi_store_backend)

        self._state = ManagerState.NEW
        self._lock = asyncio.Lock()
        self._engine: Optional[AsyncEngine] = None
        self._conn: Optional[AsyncConnection] = None
        self._schema = SchemaManager(self.backend)
        self._category_manager = CategoryManager()

        self._tags: Optional[TagRepository] = None
        self._cmap: Optional[CategoryMapRepository] = None
        self._index: Optional[SpatialIndexRepository] = None
        self._metadata: Optional[MetadataRepository] = None

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ManagerState.OPEN

    @property
    def category_manager(self) -> CategoryManager:
        return self._category_manager

    async def __aenter__(self) -> "PoiPersistenceManager":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> "PoiPersistenceManager":
        """
        Open the store, creating its tables when it is absent or invalid.

        Raises:
            StoreOpenError: If the store cannot be opened, or does not exist in read-only mode
            SchemaError: If a read-only store is invalid or the schema cannot be created
        """
        if self._state is ManagerState.OPEN:
            return self
        if self._state is ManagerState.CLOSED:
            raise StoreClosedError("Persistence manager was closed", location=self.location)

        self._engine, self._conn = await connect_store(
            self.backend, self.location, self.read_only, self._settings
        )
        try:
            await self._bootstrap()
        except BaseException:
            await self._release()
            self._state = ManagerState.CLOSED
            raise

        self._tags = TagRepository(self._conn, self.backend)
        self._cmap = CategoryMapRepository(self._conn, self.backend)
        self._index = SpatialIndexRepository(self._conn, self.backend)
        self._metadata = MetadataRepository(self._conn, self.backend)
        self._state = ManagerState.OPEN
        logger.info(
            f"Opened POI store {self.location} ({self.backend.name}, "
            f"read_only={self.read_only}, categories={len(self._category_manager)})"
        )
        return self

    async def _bootstrap(self) -> None:
        async with self._transaction("open"):
            valid = await self._schema.is_valid(self._conn)
            if not valid:
                if self.read_only:
                    raise SchemaError("Not a valid POI store", location=self.location)
                logger.info(f"POI store {self.location} is absent or invalid, creating tables")
                await self._schema.create_tables(self._conn)
            await self._category_manager.load(self._conn, self.backend)

    async def close(self) -> None:
        """
        Release the connection and the engine.

        Safe to call repeatedly or on a manager that never opened. A failure
        releasing one resource is logged and does not stop the others.
        """
        if self._state is ManagerState.CLOSED:
            return
        # Waits for the running operation; queued ones then see CLOSED
        async with self._lock:
            if self._state is ManagerState.CLOSED:
                return
            self._state = ManagerState.CLOSED
            await self._release()
        logger.info(f"Closed POI store {self.location}")

    async def _release(self) -> None:
        conn, self._conn = self._conn, None
        engine, self._engine = self._engine, None
        self._tags = self._cmap = self._index = self._metadata = None

        if conn is not None:
            try:
                await conn.close()
            except Exception as e:
                logger.error(f"Error closing POI store connection: {e}", exc_info=True)

        if engine is not None:
            try:
                await engine.dispose()
            except Exception as e:
                logger.error(f"Error disposing POI store engine: {e}", exc_info=True)

    def _require_open(self) -> None:
        if self._state is not ManagerState.OPEN:
            raise StoreClosedError(
                f"Persistence manager is {self._state.value}", location=self.location
            )

    @asynccontextmanager
    async def _locked(self) -> AsyncIterator[None]:
        """Hold the operation lock, failing if the manager is or becomes closed."""
        self._require_open()
        async with self._lock:
            self._require_open()
            yield

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncConnection]:
        """
        Run a block in one transaction, rolling back explicitly on any error.

        Raises:
            TransactionError: If BEGIN, COMMIT or ROLLBACK itself fails
        """
        try:
            transaction = await self._conn.begin()
        except SQLAlchemyError as e:
            raise TransactionError(f"Cannot begin {operation}: {e}", location=self.location) from e

        try:
            yield self._conn
        except BaseException:
            try:
                await transaction.rollback()
            except SQLAlchemyError as rollback_error:
                logger.error(f"Rollback of {operation} failed: {rollback_error}", exc_info=True)
                raise TransactionError(
                    f"Rollback of {operation} failed: {rollback_error}", location=self.location
                ) from rollback_error
            logger.debug(f"Rolled back {operation}")
            raise

        try:
            await transaction.commit()
        except SQLAlchemyError as e:
            try:
                await transaction.rollback()
            except SQLAlchemyError:
                logger.error(f"Rollback after failed commit of {operation} failed", exc_info=True)
            raise TransactionError(f"Commit of {operation} failed: {e}", location=self.location) from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def is_valid_database(self) -> bool:
        """Check that the store holds all required tables."""
        async with self._locked():
            try:
                async with self._transaction("validity check"):
                    return await self._schema.is_valid(self._conn)
            except SQLAlchemyError as e:
                raise QueryError(f"Validity check failed: {e}", location=self.location) from e

    async def find_point_by_id(self, poi_id: int) -> Optional[PointOfInterest]:
        """
        Get a POI with its tags and categories.

        Returns:
            The POI, or None if no POI has this id

        Raises:
            UnknownCategoryError: If the POI references an unknown category
        """
        async with self._locked():
            try:
                async with self._transaction("find by id"):
                    location = await self._index.find_location(poi_id)
                    if location is None:
                        return None
                    return await self._materialize(*location)
            except SQLAlchemyError as e:
                raise QueryError(f"Lookup of POI {poi_id} failed: {e}", location=self.location) from e

    async def find_in_rect(
        self,
        bbox: BoundingBox,
        category_filter: Optional[CategoryFilter] = None,
        patterns: TagPatterns = None,
        limit: Optional[int] = None,
    ) -> List[PointOfInterest]:
        """
        Find POIs inside a bounding box.

        Args:
            bbox: Search rectangle (inclusive)
            category_filter: Keep POIs in any accepted category; None keeps all
            patterns: Tags every result must carry; values are SQL LIKE
                      patterns (``%``, ``_``). A mapping of key to pattern is
                      accepted too. Patterns are combined with AND.
            limit: Maximum number of results, <= 0 for no limit.
                   Defaults to POI_STORE_DEFAULT_LIMIT.

        Returns:
            Matching POIs in the engine's natural order, which is not
            guaranteed to be stable between calls
        """
        self._require_open()
        if limit is None:
            limit = self._settings.poi_store_default_limit
        pattern_list = normalize_patterns(patterns)

        category_ids = None
        if category_filter is not None:
            category_ids = category_filter.accepted_ids(self._category_manager)

        query = compile_rect_query(category_ids, len(pattern_list))
        parameters = query.bind(
            self.backend.search_box(bbox), pattern_list, limit, self.backend.unbounded_limit
        )

        async with self._locked():
            try:
                async with self._transaction("rectangle search"):
                    result = await self._conn.execute(query.statement, parameters)
                    rows = result.all()
                    pois = [await self._materialize(*row) for row in rows]
            except SQLAlchemyError as e:
                raise QueryError(f"Rectangle search failed: {e}", location=self.location) from e

        logger.debug(f"Rectangle search returned {len(pois)} POIs (patterns={len(pattern_list)})")
        return pois

    async def _materialize(self, poi_id: int, latitude: float, longitude: float) -> PointOfInterest:
        tags = await self._tags.find_tags_by_id(poi_id)
        categories = await self._cmap.find_categories_by_id(poi_id, self._category_manager)
        return PointOfInterest(
            id=poi_id,
            latitude=latitude,
            longitude=longitude,
            tags=tags,
            categories=categories,
        )

    async def get_poi_file_info(self) -> PoiFileInfo:
        """
        Decode the store metadata.

        Unknown names are ignored; a malformed value of a known name is
        logged and left unset.
        """
        async with self._locked():
            try:
                async with self._transaction("metadata read"):
                    entries = await self._metadata.find_all()
            except SQLAlchemyError as e:
                raise QueryError(f"Metadata read failed: {e}", location=self.location) from e

        fields = {}
        for name, value in entries:
            decoder = _METADATA_DECODERS.get(name)
            if decoder is None or value is None:
                continue
            try:
                fields[name] = decoder(value)
            except ValueError as e:
                logger.warning(f"Ignoring malformed metadata {name}={value!r}: {e}")
        return PoiFileInfo(**fields)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_point_of_interest(self, poi: PointOfInterest) -> None:
        """Insert one POI; see insert_points_of_interest."""
        await self.insert_points_of_interest([poi])

    async def insert_points_of_interest(self, pois: Iterable[PointOfInterest]) -> None:
        """
        Insert a batch of POIs in one transaction.

        An existing index row with the same id is replaced, tags with an
        existing key overwrite the stored value. Category associations are
        plain inserts, so re-inserting a POI with a category it already has
        fails. Tags are a set, so when one POI carries two values for the
        same key, which value is kept is unspecified.

        Raises:
            TransactionError: If any POI fails; nothing from the batch is kept
        """
        self._require_open()
        pois = list(pois)
        if not pois:
            return

        async with self._locked():
            try:
                async with self._transaction("batch insert"):
                    for poi in pois:
                        await self._index.upsert([poi])
                        await self._tags.insert_tags(poi.id, poi.tags)
                        await self._cmap.insert_categories(poi.id, poi.categories)
            except SQLAlchemyError as e:
                logger.error(f"Batch insert of {len(pois)} POIs rolled back: {e}")
                raise TransactionError(
                    f"Insert of {len(pois)} POIs failed and was rolled back: {e}",
                    location=self.location,
                ) from e

        logger.debug(f"Inserted {len(pois)} POIs")

    async def remove_point_of_interest(self, poi: PointOfInterest) -> None:
        """
        Delete a POI's index row, tags and categories in one transaction.

        Tag dictionary rows are kept; see StoreMaintenanceService.

        Raises:
            TransactionError: If a delete fails; the store is left unchanged
        """
        async with self._locked():
            try:
                async with self._transaction("delete"):
                    await self._index.delete(poi.id)
                    await self._tags.delete_tags(poi.id)
                    await self._cmap.delete_categories(poi.id)
            except SQLAlchemyError as e:
                raise TransactionError(
                    f"Delete of POI {poi.id} failed and was rolled back: {e}",
                    location=self.location,
                ) from e

        logger.debug(f"Removed POI {poi.id}")

    async def insert_categories(self, categories: Iterable[PoiCategory]) -> int:
        """
        Add categories to the store's category tree.

        Returns:
            Number of inserted categories

        Raises:
            TransactionError: If an id already exists; nothing is inserted
        """
        self._require_open()
        categories = list(categories)
        async with self._locked():
            try:
                async with self._transaction("category insert"):
                    count = await CategoryRepository(self._conn, self.backend).insert_categories(categories)
                    await self._category_manager.load(self._conn, self.backend)
            except SQLAlchemyError as e:
                raise TransactionError(
                    f"Insert of {len(categories)} categories failed: {e}", location=self.location
                ) from e
        return count

    async def set_metadata(self, name: str, value: Optional[str]) -> None:
        """Insert or replace one metadata entry."""
        await self._write_metadata({name: value})

    async def write_poi_file_info(self, info: PoiFileInfo) -> None:
        """Store every set field of ``info`` in the metadata table."""
        entries: Dict[str, Optional[str]] = {METADATA_WAYS: "true" if info.ways else "false"}
        if info.bounds is not None:
            entries[METADATA_BOUNDS] = info.bounds.to_string()
        if info.comment is not None:
            entries[METADATA_COMMENT] = info.comment
        if info.date is not None:
            entries[METADATA_DATE] = str(int(info.date.timestamp() * 1000))
        if info.language is not None:
            entries[METADATA_LANGUAGE] = info.language
        if info.version is not None:
            entries[METADATA_VERSION] = str(info.version)
        if info.writer is not None:
            entries[METADATA_WRITER] = info.writer
        await self._write_metadata(entries)

    async def _write_metadata(self, entries: Dict[str, Optional[str]]) -> None:
        async with self._locked():
            try:
                async with self._transaction("metadata write"):
                    for name, value in entries.items():
                        await self._metadata.set(name, value)
            except SQLAlchemyError as e:
                raise TransactionError(f"Metadata write failed: {e}", location=self.location) from e

    @asynccontextmanager
    async def maintenance_transaction(self, operation: str) -> AsyncIterator[AsyncConnection]:
        """
        Expose a locked transaction to maintenance services.

        Raises:
            TransactionError: If the block fails; its changes are rolled back
        """
        async with self._locked():
            try:
                async with self._transaction(operation) as conn:
                    yield conn
            except SQLAlchemyError as e:
                raise TransactionError(f"{operation} failed: {e}", location=self.location) from e


async def open_persistence_manager(
    location: Optional[str] = None,
    read_only: Optional[bool] = None,
    backend: Optional[str] = None,
    settings: Optional[StoreSettings] = None,
) -> PoiPersistenceManager:
    """
    Create and open a persistence manager.

    Example:
        ```python
        manager = await open_persistence_manager("berlin.poi", read_only=True)
        try:
            info = await manager.get_poi_file_info()
        finally:
            await manager.close()
        ```
    """
    store_backend = get_backend(backend) if backend is not None else None
    manager = PoiPersistenceManager(location, read_only, store_backend, settings)
    return await manager.open()


__all__ = [
    "ManagerState",
    "PoiPersistenceManager",
    "open_persistence_manager",
]
