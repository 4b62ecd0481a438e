"""
Vehicle domain: models, validation, service and REST routes.
"""

from vehicles.models import (
    ReseedResult,
    Vehicle,
    VehicleCreate,
    VehicleRecord,
    VehicleStatus,
    VehicleUpdate,
)
from vehicles.service import VehicleService, next_last_updated
from vehicles.validation import validate

__all__ = [
    "ReseedResult",
    "Vehicle",
    "VehicleCreate",
    "VehicleRecord",
    "VehicleStatus",
    "VehicleUpdate",
    "VehicleService",
    "next_last_updated",
    "validate",
]
