"""Query compilation for rectangle searches."""
from poistore.query.compiler import (
    CompiledRectQuery,
    RectQueryBuilder,
    compile_rect_query,
    normalize_patterns,
)

__all__ = [
    "CompiledRectQuery",
    "RectQueryBuilder",
    "compile_rect_query",
    "normalize_patterns",
]
