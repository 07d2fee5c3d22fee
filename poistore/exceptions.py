"""
Error kinds raised by the POI store.

Absence is never an error: lookups return ``None`` and searches return an
empty list. These exceptions are reserved for I/O, schema and consistency
problems.
"""
from typing import Optional


class PoiStoreError(Exception):
    """Base class for every error raised by poistore."""

    def __init__(self, message: str, *, location: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        if self.location:
            return f"{self.message} ({self.location})"
        return self.message


class StoreOpenError(PoiStoreError):
    """The backing store could not be opened or created."""


class SchemaError(PoiStoreError):
    """Table creation or validation failed."""


class UnknownCategoryError(PoiStoreError):
    """An association references a category the category manager cannot resolve."""

    def __init__(self, category_id: int):
        super().__init__(f"Unknown POI category: {category_id}")
        self.category_id = category_id


class QueryError(PoiStoreError):
    """A compiled query was malformed, mis-bound or failed to execute."""


class TransactionError(PoiStoreError):
    """A multi-statement mutation failed and was rolled back."""


class StoreClosedError(PoiStoreError):
    """An operation was attempted on a manager that is not open."""
