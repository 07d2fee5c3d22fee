"""
SQLAlchemy models for the POI store tables.

Table and column names are part of the on-disk format and must not change.
"""
from typing import Optional

from sqlalchemy import BigInteger, Float, Index, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from poistore.database.connection import Base


class CategoryRow(Base):
    """Node of the category tree, owned by the category manager."""

    __tablename__ = "poi_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<CategoryRow(id={self.id}, name='{self.name}', parent={self.parent})>"


class TagKey(Base):
    """Dictionary of distinct tag keys."""

    __tablename__ = "poi_tagkeys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(Text, unique=True)


class TagValue(Base):
    """Dictionary of distinct tag values."""

    __tablename__ = "poi_tagvalues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    value: Mapped[str] = mapped_column(Text, unique=True)


class PoiTag(Base):
    """
    Tag association: ties a POI to one (key, value) dictionary pair.

    The (id, key) primary key allows a single value per key and POI.
    """

    __tablename__ = "poi_data"

    id: Mapped[int] = mapped_column(BigInteger)
    key: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("id", "key"),
    )


class PoiCategoryMap(Base):
    """Category association of a POI."""

    __tablename__ = "poi_cmap"

    id: Mapped[int] = mapped_column(BigInteger)
    category: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("id", "category"),
    )


class PoiIndexEntry(Base):
    """
    Spatial index row, one per POI.

    Every row is a degenerate rectangle (min == max). On SQLite the table is
    created as an R*Tree virtual table; other engines get a plain table with
    the composite index below.
    """

    __tablename__ = "poi_index"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    min_lat: Mapped[float] = mapped_column("minLat", Float)
    max_lat: Mapped[float] = mapped_column("maxLat", Float)
    min_lon: Mapped[float] = mapped_column("minLon", Float)
    max_lon: Mapped[float] = mapped_column("maxLon", Float)

    __table_args__ = (
        Index("idx_poi_index_location", "minLat", "minLon"),
    )


class MetadataEntry(Base):
    """Store-level name/value metadata."""

    __tablename__ = "metadata"

    name: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
