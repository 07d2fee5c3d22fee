"""
Rectangle query compiler.

A rectangle search is composed from typed clauses, each contributing its
filter to the SELECT and its parameter names to the binding order, so the
statement and its parameters can never drift apart:

1. ``max_lat, max_lon, min_lat, min_lon`` - the bounding box
2. ``tag_key_i, tag_value_i`` - one pair per tag pattern (value uses LIKE)
3. ``limit``
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import Integer, bindparam, exists, select
from sqlalchemy.sql import Select

from poistore.database.models import PoiCategoryMap, PoiIndexEntry, PoiTag, TagKey, TagValue
from poistore.database.repositories.spatial_index import location_columns
from poistore.exceptions import QueryError
from poistore.models import BoundingBox, Tag

LIMIT_BINDING = "limit"

TagPatterns = Union[Mapping[str, str], Iterable[Optional[Tag]], None]


class QueryClause:
    """A node of the rectangle query: a filter plus the parameters it binds."""

    bindings: Tuple[str, ...] = ()

    def apply(self, statement: Select) -> Select:
        raise NotImplementedError


class BoundingBoxClause(QueryClause):
    """Keeps index rows whose min corner lies inside the box."""

    bindings = ("max_lat", "max_lon", "min_lat", "min_lon")

    def apply(self, statement: Select) -> Select:
        return statement.where(
            PoiIndexEntry.min_lat <= bindparam("max_lat"),
            PoiIndexEntry.min_lon <= bindparam("max_lon"),
            PoiIndexEntry.min_lat >= bindparam("min_lat"),
            PoiIndexEntry.min_lon >= bindparam("min_lon"),
        )


@dataclass(frozen=True)
class CategoryClause(QueryClause):
    """
    Keeps POIs belonging to any of the accepted categories.

    Category ids come from the category tree, not from the caller's
    bindings, and are part of the statement itself.
    """

    category_ids: Tuple[int, ...]

    def apply(self, statement: Select) -> Select:
        return (
            statement
            .join(PoiCategoryMap, PoiCategoryMap.id == PoiIndexEntry.id)
            .where(PoiCategoryMap.category.in_(self.category_ids))
            # A POI in several accepted categories must appear once
            .distinct()
        )


@dataclass(frozen=True)
class TagPatternClause(QueryClause):
    """Keeps POIs having a tag with an exact key and a LIKE-matching value."""

    index: int

    @property
    def key_binding(self) -> str:
        return f"tag_key_{self.index}"

    @property
    def value_binding(self) -> str:
        return f"tag_value_{self.index}"

    @property
    def bindings(self) -> Tuple[str, ...]:
        return (self.key_binding, self.value_binding)

    def apply(self, statement: Select) -> Select:
        match = exists().where(
            PoiTag.id == PoiIndexEntry.id,
            PoiTag.key.in_(
                select(TagKey.id).where(TagKey.key == bindparam(self.key_binding))
            ),
            PoiTag.value.in_(
                select(TagValue.id).where(TagValue.value.like(bindparam(self.value_binding)))
            ),
        )
        return statement.where(match)


@dataclass
class CompiledRectQuery:
    """A rectangle search statement and the ordered names of its bindings."""

    statement: Select
    binding_order: List[str]
    pattern_count: int

    def bind(
        self,
        bbox: BoundingBox,
        patterns: Sequence[Tag] = (),
        limit: int = 0,
        unbounded_limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Build the parameter mapping for one execution.

        Args:
            bbox: Search rectangle
            patterns: Tag patterns, in clause order
            limit: Maximum number of rows; <= 0 means no limit
            unbounded_limit: Value the backend uses for "no limit"

        Raises:
            QueryError: If the number of patterns differs from the compiled one
        """
        patterns = list(patterns)
        if len(patterns) != self.pattern_count:
            raise QueryError(
                f"Query compiled for {self.pattern_count} tag patterns, got {len(patterns)}"
            )

        values: List[Any] = [
            bbox.max_latitude,
            bbox.max_longitude,
            bbox.min_latitude,
            bbox.min_longitude,
        ]
        for pattern in patterns:
            values.extend((pattern.key, pattern.value))
        values.append(limit if limit > 0 else unbounded_limit)

        return dict(zip(self.binding_order, values))


class RectQueryBuilder:
    """Composes query clauses into a CompiledRectQuery."""

    def __init__(self):
        self._clauses: List[QueryClause] = [BoundingBoxClause()]

    def with_categories(self, category_ids: Iterable[int]) -> "RectQueryBuilder":
        self._clauses.append(CategoryClause(tuple(sorted(set(category_ids)))))
        return self

    def with_tag_pattern(self) -> "RectQueryBuilder":
        index = sum(1 for c in self._clauses if isinstance(c, TagPatternClause))
        self._clauses.append(TagPatternClause(index))
        return self

    def build(self) -> CompiledRectQuery:
        statement = select(*location_columns())
        binding_order: List[str] = []
        for clause in self._clauses:
            statement = clause.apply(statement)
            binding_order.extend(clause.bindings)

        statement = statement.limit(bindparam(LIMIT_BINDING, type_=Integer))
        binding_order.append(LIMIT_BINDING)

        pattern_count = sum(1 for c in self._clauses if isinstance(c, TagPatternClause))
        return CompiledRectQuery(statement, binding_order, pattern_count)


def compile_rect_query(
    category_ids: Optional[Iterable[int]], pattern_count: int
) -> CompiledRectQuery:
    """
    Compile a rectangle search.

    Args:
        category_ids: Accepted category ids, or None for no category restriction
        pattern_count: Number of tag patterns the query will be bound with
    """
    if pattern_count < 0:
        raise QueryError(f"Invalid tag pattern count: {pattern_count}")

    builder = RectQueryBuilder()
    if category_ids is not None:
        builder.with_categories(category_ids)
    for _ in range(pattern_count):
        builder.with_tag_pattern()
    return builder.build()


def normalize_patterns(patterns: TagPatterns) -> List[Tag]:
    """Turn a mapping or an iterable of tags into a list, dropping None entries."""
    if patterns is None:
        return []
    if isinstance(patterns, Mapping):
        return [Tag(key=k, value=v) for k, v in patterns.items() if k is not None and v is not None]
    return [pattern for pattern in patterns if pattern is not None]
