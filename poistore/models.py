"""
Value objects exchanged with the POI store.

These models are immutable (and therefore hashable) so POIs, tags and
categories can be collected in sets and compared after a round trip through
the database.
"""

from datetime import datetime
from typing import FrozenSet, Optional

from pydantic import BaseModel, Field, model_validator


class Tag(BaseModel):
    """A free-form key/value annotation on a POI (e.g. amenity=cafe)."""
    key: str = Field(..., description="Tag key")
    value: str = Field(..., description="Tag value")

    model_config = {"frozen": True}

    @classmethod
    def from_string(cls, tag: str) -> "Tag":
        """Parse a ``key=value`` string. The value may itself contain ``=``."""
        key, sep, value = tag.partition("=")
        if not sep:
            raise ValueError(f"Tag must be formatted as key=value: {tag!r}")
        return cls(key=key, value=value)

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


class PoiCategory(BaseModel):
    """
    A node of the category tree.

    Only the id is stored with a POI; title and parent come from the
    ``poi_categories`` table through the category manager.
    """
    id: int = Field(..., description="Category identifier")
    title: str = Field(..., description="Category name")
    parent_id: Optional[int] = Field(None, description="Parent category id, None for a root")

    model_config = {"frozen": True}


class BoundingBox(BaseModel):
    """Latitude/longitude rectangle, inclusive on every edge."""
    min_latitude: float = Field(..., ge=-90, le=90)
    min_longitude: float = Field(..., ge=-180, le=180)
    max_latitude: float = Field(..., ge=-90, le=90)
    max_longitude: float = Field(..., ge=-180, le=180)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_corners(self) -> "BoundingBox":
        if self.min_latitude > self.max_latitude:
            raise ValueError(
                f"min_latitude {self.min_latitude} exceeds max_latitude {self.max_latitude}"
            )
        if self.min_longitude > self.max_longitude:
            raise ValueError(
                f"min_longitude {self.min_longitude} exceeds max_longitude {self.max_longitude}"
            )
        return self

    @classmethod
    def from_string(cls, bounds: str) -> "BoundingBox":
        """
        Parse the metadata representation ``minLat,minLon,maxLat,maxLon``.

        Raises:
            ValueError: If the string does not hold four numbers
        """
        parts = [part.strip() for part in bounds.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Invalid bounding box: {bounds!r}")
        min_lat, min_lon, max_lat, max_lon = (float(part) for part in parts)
        return cls(
            min_latitude=min_lat,
            min_longitude=min_lon,
            max_latitude=max_lat,
            max_longitude=max_lon,
        )

    def to_string(self) -> str:
        return f"{self.min_latitude},{self.min_longitude},{self.max_latitude},{self.max_longitude}"

    def contains(self, latitude: float, longitude: float) -> bool:
        """Check whether a point lies inside the box."""
        return (
            self.min_latitude <= latitude <= self.max_latitude
            and self.min_longitude <= longitude <= self.max_longitude
        )


class PointOfInterest(BaseModel):
    """
    A geolocated entity with tags and category memberships.

    The id is assigned by the caller and must be unique across the store.
    """
    id: int = Field(..., description="Unique, caller-assigned identifier")
    latitude: float = Field(..., ge=-90, le=90, description="Latitude coordinate")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude coordinate")
    tags: FrozenSet[Tag] = Field(default_factory=frozenset, description="Free-form tags")
    categories: FrozenSet[PoiCategory] = Field(
        default_factory=frozenset,
        description="Categories this POI belongs to"
    )

    model_config = {"frozen": True}

    def get_tag(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None."""
        for tag in self.tags:
            if tag.key == key:
                return tag.value
        return None

    @property
    def name(self) -> Optional[str]:
        """Value of the ``name`` tag."""
        return self.get_tag("name")

    def __repr__(self) -> str:
        return (
            f"<PointOfInterest(id={self.id}, lat={self.latitude}, lon={self.longitude}, "
            f"tags={len(self.tags)}, categories={len(self.categories)})>"
        )


class PoiFileInfo(BaseModel):
    """Store-level metadata decoded from the ``metadata`` table."""
    bounds: Optional[BoundingBox] = None
    comment: Optional[str] = None
    date: Optional[datetime] = Field(None, description="Creation date (UTC)")
    language: Optional[str] = None
    version: Optional[int] = None
    ways: bool = False
    writer: Optional[str] = None

    model_config = {"frozen": True}
