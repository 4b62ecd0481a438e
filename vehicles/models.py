"""
Vehicle models.

Field names are snake_case in Python and camelCase on the wire and in the
store (``oilChangeDue``, ``safetyDue``, ``lastUpdated``). Unknown fields
are ignored, and so are ``_id`` and ``lastUpdated`` in request bodies.
"""

import math
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, Strict, field_validator
from pydantic.alias_generators import to_camel


class VehicleStatus(str, Enum):
    """Operational status of a vehicle."""
    ON_ROAD = "on-road"
    IN_SHOP = "in-shop"
    OUT_OF_SERVICE = "out-of-service"


# Accepts JSON integers and floats; booleans and numeric strings are rejected
Reading = Annotated[float, Strict()]


def _check_name(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("name cannot be empty")
    return v.strip()


def _check_non_negative(v: float) -> float:
    if not math.isfinite(v):
        raise ValueError("must be a finite number")
    if v < 0:
        raise ValueError("must be a non-negative number")
    return v


def _check_drivers(v: List[str]) -> List[str]:
    drivers = [driver.strip() for driver in v]
    if not drivers:
        raise ValueError("at least one driver is required")
    if any(not driver for driver in drivers):
        raise ValueError("driver names cannot be blank")
    return drivers


class VehicleRecord(BaseModel):
    """
    The mutable fields of a vehicle, as validated before every write.

    Attributes:
        name: Display name, e.g. "Bus 101"
        status: One of on-road, in-shop, out-of-service
        km: Odometer reading
        oil_change_due: Odometer reading at which the next oil change is due
        safety_due: Date of the next safety inspection
        drivers: Assigned drivers, in order
        comment: Free text
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    name: str
    status: VehicleStatus
    km: Reading
    oil_change_due: Reading
    safety_due: date
    drivers: List[str]
    comment: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("km", "oil_change_due")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        return _check_non_negative(v)

    @field_validator("drivers")
    @classmethod
    def validate_drivers(cls, v: List[str]) -> List[str]:
        return _check_drivers(v)

    @field_validator("comment", mode="before")
    @classmethod
    def default_comment(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_document(self) -> dict[str, Any]:
        """Return the stored form: camelCase keys, status as its value, safetyDue as YYYY-MM-DD."""
        return self.model_dump(by_alias=True, mode="json")


class VehicleCreate(VehicleRecord):
    """Request body for creating a vehicle."""


class VehicleUpdate(BaseModel):
    """
    Request body for a partial update.

    Only the fields present in the body are merged over the stored
    vehicle; the merged result is validated as a whole afterwards, so an
    explicit null here is rejected there.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    name: Optional[str] = None
    status: Optional[VehicleStatus] = None
    km: Optional[Reading] = None
    oil_change_due: Optional[Reading] = None
    safety_due: Optional[date] = None
    drivers: Optional[List[str]] = None
    comment: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v) if v is not None else v

    @field_validator("km", "oil_change_due")
    @classmethod
    def validate_non_negative(cls, v: Optional[float]) -> Optional[float]:
        return _check_non_negative(v) if v is not None else v

    @field_validator("drivers")
    @classmethod
    def validate_drivers(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _check_drivers(v) if v is not None else v

    def to_changes(self) -> dict[str, Any]:
        """Return only the fields the client sent, keyed by their stored names."""
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)


class Vehicle(VehicleRecord):
    """A stored vehicle as returned by the API."""

    id: str = Field(alias="_id")
    last_updated: datetime

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Vehicle":
        return cls.model_validate(document)


class ReseedResult(BaseModel):
    """Response body of the reseed endpoint."""
    message: str
    count: int
