"""
Utility functions for the workflow engine.

Includes:
- UTC datetime helpers
- JSON-safe serialization
- Pagination helpers
"""

from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    """
    Get the current UTC datetime as a naive value.

    Stored timestamps are naive UTC so they compare the same way on
    PostgreSQL and SQLite.

    Returns:
        Current datetime in UTC without tzinfo
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def safe_serialize(obj: Any) -> Any:
    """Recursively ensure all values are JSON-serializable.

    JSON-shaped values come back unchanged at any depth; datetimes become
    ISO strings and other objects their str().
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): safe_serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [safe_serialize(v) for v in obj]
    return str(obj)


def calculate_offset(page: int = 1, per_page: int = 20) -> int:
    """
    Calculate database offset from page and per_page values.

    Args:
        page: Page number (1-indexed)
        per_page: Items per page

    Returns:
        Offset for database queries
    """
    return (page - 1) * per_page
