"""
Validation layer: rejects vehicle writes before they reach the store.
"""

from typing import Any, Mapping

from pydantic import ValidationError

from errors.exceptions import validation_error
from errors.handlers import format_violations
from vehicles.models import VehicleRecord

# Never taken from client input
IMMUTABLE_FIELDS = ("_id", "lastUpdated")


def validate(record: Mapping[str, Any]) -> VehicleRecord:
    """
    Validate a complete vehicle record.

    Args:
        record: Mapping keyed by stored (camelCase) field names

    Returns:
        The validated record

    Raises:
        AppException: VALIDATION_ERROR with ``details.violations`` listing
            every violated field as ``{field, message}``
    """
    try:
        return VehicleRecord.model_validate(dict(record))
    except ValidationError as exc:
        raise validation_error(
            "Vehicle validation failed",
            violations=format_violations(exc.errors()),
        ) from exc


def merge(current: Mapping[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay a partial update on a stored record, dropping immutable fields from the update."""
    merged = dict(current)
    merged.update({key: value for key, value in changes.items() if key not in IMMUTABLE_FIELDS})
    return merged
