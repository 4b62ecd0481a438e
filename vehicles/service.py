"""
Vehicle service: the record store adapter used by the HTTP routes.

Every write is validated first and stamped with ``lastUpdated``. Updates
merge the partial payload over the stored record and validate the merged
result, so a rejected update leaves the stored record untouched.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from errors.exceptions import resource_not_found
from errors.handlers import format_violations
from store.record_store import RecordStore
from telemetry.service import TelemetryService
from vehicles.models import Vehicle
from vehicles.validation import merge, validate

logger = logging.getLogger(__name__)

VEHICLE_NOT_FOUND = "Vehicle not found"


def next_last_updated(previous: Optional[datetime] = None) -> datetime:
    """
    Return a UTC timestamp for a write, truncated to milliseconds.

    The store keeps millisecond precision, so when the clock has not moved
    past ``previous`` the result is ``previous`` plus one millisecond.
    """
    now = datetime.now(timezone.utc)
    now = now.replace(microsecond=(now.microsecond // 1000) * 1000)
    if previous is not None:
        if previous.tzinfo is None:
            previous = previous.replace(tzinfo=timezone.utc)
        if now <= previous:
            now = previous + timedelta(milliseconds=1)
    return now


def _read_vehicle(document: Mapping[str, Any]) -> Optional[Vehicle]:
    try:
        return Vehicle.from_document(dict(document))
    except ValidationError as exc:
        logger.warning(
            "Skipping stored vehicle that does not match the current schema",
            extra={"extra_data": {
                "id": str(document.get("_id")),
                "violations": format_violations(exc.errors()),
            }}
        )
        return None


class VehicleService:
    """
    CRUD operations on the vehicle collection.

    Args:
        store: The record store holding vehicles
        telemetry: Optional telemetry service for audit events
    """

    def __init__(self, store: RecordStore, telemetry: Optional[TelemetryService] = None):
        self.store = store
        self.telemetry = telemetry

    async def list_all(self) -> list[Vehicle]:
        """
        Return every vehicle, sorted by name.

        Documents that do not match the current schema are left out and
        logged until they are migrated.
        """
        vehicles = []
        for document in await self.store.find_all():
            vehicle = _read_vehicle(document)
            if vehicle is not None:
                vehicles.append(vehicle)
        return vehicles

    async def get_by_id(self, vehicle_id: str) -> Vehicle:
        document = await self.store.find_by_id(vehicle_id)
        vehicle = _read_vehicle(document) if document is not None else None
        if vehicle is None:
            raise resource_not_found(VEHICLE_NOT_FOUND, details={"id": vehicle_id})
        return vehicle

    async def insert(self, payload: Mapping[str, Any]) -> Vehicle:
        """
        Validate and store a new vehicle.

        Raises:
            AppException: VALIDATION_ERROR if the payload violates the schema
        """
        document = validate(payload).to_document()
        document["lastUpdated"] = next_last_updated()
        stored = await self.store.insert_one(document)

        self._audit("create", stored["_id"], {"name": stored.get("name")})
        return Vehicle.from_document(stored)

    async def update_by_id(self, vehicle_id: str, changes: Mapping[str, Any]) -> Vehicle:
        """
        Merge ``changes`` over the stored vehicle and persist the result.

        Raises:
            AppException: RESOURCE_NOT_FOUND for an unknown id,
                VALIDATION_ERROR if the merged record is invalid
        """
        current = await self.store.find_by_id(vehicle_id)
        if current is None:
            raise resource_not_found(VEHICLE_NOT_FOUND, details={"id": vehicle_id})

        record = validate(merge(current, changes)).to_document()
        fields = {key: value for key, value in record.items() if current.get(key) != value}
        previous = current.get("lastUpdated")
        fields["lastUpdated"] = next_last_updated(previous if isinstance(previous, datetime) else None)

        updated = await self.store.update_fields(vehicle_id, fields)
        if updated is None:
            # Removed by a concurrent reseed
            raise resource_not_found(VEHICLE_NOT_FOUND, details={"id": vehicle_id})

        self._audit("update", vehicle_id, {"changed_fields": sorted(fields)})
        return Vehicle.from_document(updated)

    async def bulk_replace(self, records: Iterable[Mapping[str, Any]]) -> int:
        """
        Replace the whole collection with ``records``.

        All records are validated before anything is deleted. Delete-all
        followed by insert-many is not atomic; readers may briefly see an
        empty collection.

        Returns:
            The number of vehicles inserted
        """
        documents = []
        for record in records:
            document = validate(record).to_document()
            document["lastUpdated"] = next_last_updated()
            documents.append(document)

        deleted = await self.store.delete_all()
        inserted = await self.store.insert_many(documents)

        logger.info(
            "Vehicle collection replaced",
            extra={"extra_data": {"deleted": deleted, "inserted": inserted}}
        )
        self._audit("reseed", None, {"deleted": deleted, "inserted": inserted})
        return inserted

    def _audit(self, action: str, vehicle_id: Optional[str], details: dict[str, Any]) -> None:
        if self.telemetry is None:
            return
        self.telemetry.log_audit_event(
            event_type="fleet_reseed" if action == "reseed" else "vehicle_write",
            user_id=None,
            resource_type="vehicle",
            resource_id=vehicle_id,
            action=action,
            details=details,
        )
