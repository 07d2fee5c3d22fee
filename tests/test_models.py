"""
Tests for the POI store value objects.
"""

import pytest
from pydantic import ValidationError

from poistore.models import BoundingBox, PoiCategory, PoiFileInfo, PointOfInterest, Tag


class TestTag:
    """Test suite for Tag parsing and identity."""

    def test_from_string(self):
        """It should split key and value on the first '='."""
        tag = Tag.from_string("name=a=b")
        assert tag.key == "name"
        assert tag.value == "a=b"

    def test_from_string_without_separator(self):
        """It should reject strings without '='."""
        with pytest.raises(ValueError):
            Tag.from_string("amenity")

    def test_tags_are_hashable_and_equal_by_value(self):
        """It should deduplicate equal tags in a set."""
        tags = {Tag(key="amenity", value="cafe"), Tag(key="amenity", value="cafe")}
        assert len(tags) == 1

    def test_str(self):
        assert str(Tag(key="amenity", value="cafe")) == "amenity=cafe"


class TestBoundingBox:
    """Test suite for BoundingBox."""

    def test_from_string_round_trip(self):
        """It should parse the metadata format minLat,minLon,maxLat,maxLon."""
        bbox = BoundingBox.from_string("52.3, 13.0,52.7,13.8")
        assert bbox.min_latitude == 52.3
        assert bbox.min_longitude == 13.0
        assert bbox.max_latitude == 52.7
        assert bbox.max_longitude == 13.8
        assert BoundingBox.from_string(bbox.to_string()) == bbox

    def test_from_string_wrong_arity(self):
        with pytest.raises(ValueError):
            BoundingBox.from_string("1,2,3")

    def test_rejects_inverted_corners(self):
        """It should refuse a box whose min exceeds its max."""
        with pytest.raises(ValidationError):
            BoundingBox(min_latitude=10, min_longitude=0, max_latitude=5, max_longitude=1)

    def test_contains_is_inclusive(self):
        bbox = BoundingBox(min_latitude=5, min_longitude=5, max_latitude=25, max_longitude=25)
        assert bbox.contains(25, 25)
        assert bbox.contains(10, 10)
        assert not bbox.contains(30, 30)


class TestPointOfInterest:
    """Test suite for PointOfInterest."""

    def test_coerces_iterables_to_frozensets(self):
        poi = PointOfInterest(
            id=1,
            latitude=10,
            longitude=20,
            tags=[Tag(key="name", value="Joe's")],
            categories=[PoiCategory(id=7, title="Cafes")],
        )
        assert isinstance(poi.tags, frozenset)
        assert isinstance(poi.categories, frozenset)

    def test_name_and_get_tag(self):
        poi = PointOfInterest(id=1, latitude=0, longitude=0, tags={Tag(key="name", value="Joe's")})
        assert poi.name == "Joe's"
        assert poi.get_tag("amenity") is None

    def test_rejects_out_of_range_latitude(self):
        with pytest.raises(ValidationError):
            PointOfInterest(id=1, latitude=91, longitude=0)

    def test_is_immutable(self):
        poi = PointOfInterest(id=1, latitude=0, longitude=0)
        with pytest.raises(ValidationError):
            poi.latitude = 5


class TestPoiFileInfo:
    def test_defaults(self):
        info = PoiFileInfo()
        assert info.bounds is None
        assert info.ways is False
