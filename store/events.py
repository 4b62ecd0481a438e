"""
Conversion of stored documents and change events into JSON-safe values.

Change events are forwarded to WebSocket clients verbatim, so BSON types
have to become plain JSON before they leave the store.
"""

from datetime import date, datetime, timezone
from typing import Any

from bson import ObjectId, Timestamp

OPERATION_INSERT = "insert"
OPERATION_UPDATE = "update"
OPERATION_DELETE = "delete"


def _format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_json_safe(value: Any) -> Any:
    """Recursively replace ObjectId, datetime and BSON timestamps with strings."""
    if isinstance(value, dict):
        return {key: to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(item) for item in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, Timestamp):
        return _format_datetime(value.as_datetime())
    if isinstance(value, datetime):
        return _format_datetime(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def from_stored(document: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a stored document with its ``_id`` as a string."""
    result = dict(document)
    if isinstance(result.get("_id"), ObjectId):
        result["_id"] = str(result["_id"])
    return result
