"""
SQLite backend (aiosqlite driver).

The spatial index is an R*Tree virtual table when the SQLite library was
built with the rtree module; otherwise a regular table is used.
"""

import logging
import struct
from pathlib import Path
from typing import Any, Iterable

from sqlalchemy import Table, column, func, select, table
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql import Executable

from poistore.database.backends.base import StoreBackend
from poistore.exceptions import StoreOpenError
from poistore.models import BoundingBox

logger = logging.getLogger(__name__)

_sqlite_master = table("sqlite_master", column("name"), column("type"))

# Float32 steps below the float32 floor of a min edge. The R*Tree may store a
# value up to two steps under the floor of the original coordinate.
_INDEX_SLACK_STEPS = 2


def _float32_below(value: float, steps: int) -> float:
    """Largest float32 not above ``value``, lowered by ``steps`` float32 steps."""
    (bits,) = struct.unpack("<I", struct.pack("<f", value))
    (rounded,) = struct.unpack("<f", struct.pack("<I", bits))
    if rounded > value:
        steps += 1
    for _ in range(steps):
        if bits & 0x80000000:
            bits += 1
        elif bits == 0:
            bits = 0x80000001
        else:
            bits -= 1
    (lowered,) = struct.unpack("<f", struct.pack("<I", bits))
    return lowered


class SQLiteBackend(StoreBackend):
    """Store backed by a single SQLite file."""

    name = "sqlite"
    # SQLite treats a negative LIMIT as "no upper bound"
    unbounded_limit = -1

    def get_database_url(self, location: str, read_only: bool, settings: Any = None) -> str:
        path = Path(location).expanduser().resolve()
        if read_only:
            return f"sqlite+aiosqlite:///file:{path.as_posix()}?mode=ro&uri=true"
        return f"sqlite+aiosqlite:///{path.as_posix()}"

    def check_location(self, location: str, read_only: bool) -> None:
        path = Path(location).expanduser()
        if path.is_dir():
            raise StoreOpenError("POI store path is a directory", location=location)
        if read_only and not path.is_file():
            raise StoreOpenError("POI store does not exist", location=location)
        if not path.exists() and not path.parent.resolve().is_dir():
            raise StoreOpenError("Parent directory of POI store does not exist", location=location)

    def search_box(self, bbox: BoundingBox) -> BoundingBox:
        # Only the min edges need widening: a search compares the stored
        # minLat/minLon, which the R*Tree rounds down.
        return bbox.model_copy(update={
            "min_latitude": max(-90.0, _float32_below(bbox.min_latitude, _INDEX_SLACK_STEPS)),
            "min_longitude": max(-180.0, _float32_below(bbox.min_longitude, _INDEX_SLACK_STEPS)),
        })

    def insert(self, table: Table):
        return sqlite_insert(table)

    def count_tables_statement(self, table_names: Iterable[str]) -> Executable:
        return (
            select(func.count(_sqlite_master.c.name))
            .where(_sqlite_master.c.type == "table")
            .where(_sqlite_master.c.name.in_(list(table_names)))
        )

    def create_spatial_index(self, connection: Connection, table: Table) -> None:
        preparer = connection.dialect.identifier_preparer
        columns = ", ".join(preparer.quote(c.name) for c in table.columns)
        ddl = f"CREATE VIRTUAL TABLE {preparer.quote(table.name)} USING rtree({columns})"
        try:
            connection.exec_driver_sql(ddl)
        except OperationalError as e:
            logger.warning(f"R*Tree module unavailable ({e.orig}), using a regular spatial index table")
            super().create_spatial_index(connection, table)

    def upsert_index_statement(self, table: Table) -> Executable:
        # Virtual tables reject the ON CONFLICT clause, REPLACE works on both kinds
        return sqlite_insert(table).prefix_with("OR REPLACE").values(self.index_row_parameters())
