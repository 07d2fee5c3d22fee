"""
Pytest configuration and shared fixtures.

Every store fixture works on a fresh SQLite file under pytest's tmp_path, so
tests exercise the real schema, the R*Tree index and real transactions.
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from poistore.database.backends import SQLiteBackend
from poistore.models import PoiCategory, PointOfInterest, Tag
from poistore.services.persistence_manager import PoiPersistenceManager
from poistore.settings import StoreSettings


@pytest.fixture
def store_path(tmp_path) -> Path:
    """Path of a not yet existing POI store."""
    return tmp_path / "pois.sqlite"


@pytest.fixture
def store_settings(store_path) -> StoreSettings:
    """Settings pointing at the temporary store."""
    return StoreSettings(
        poi_store_backend="sqlite",
        poi_store_path=str(store_path),
        poi_store_read_only=False,
        poi_store_default_limit=100,
    )


@pytest.fixture
def sample_categories():
    """
    Provide a small category tree.

    Food (1) -> Cafes (7), Restaurants (8)
    Transport (20) -> Bus stops (21)
    """
    return {
        "food": PoiCategory(id=1, title="Food"),
        "cafes": PoiCategory(id=7, title="Cafes", parent_id=1),
        "restaurants": PoiCategory(id=8, title="Restaurants", parent_id=1),
        "transport": PoiCategory(id=20, title="Transport"),
        "bus_stops": PoiCategory(id=21, title="Bus stops", parent_id=20),
    }


@pytest_asyncio.fixture
async def manager(store_path, store_settings, sample_categories):
    """Open a persistence manager on a fresh store seeded with the category tree."""
    poi_manager = PoiPersistenceManager(
        str(store_path), read_only=False, backend=SQLiteBackend(), settings=store_settings
    )
    await poi_manager.open()
    await poi_manager.insert_categories(sample_categories.values())
    yield poi_manager
    await poi_manager.close()


@pytest.fixture
def make_poi():
    """Factory for POIs with tags given as key=value strings."""

    def _make(poi_id, latitude, longitude, tags=(), categories=()):
        return PointOfInterest(
            id=poi_id,
            latitude=latitude,
            longitude=longitude,
            tags=frozenset(Tag.from_string(tag) for tag in tags),
            categories=frozenset(categories),
        )

    return _make
