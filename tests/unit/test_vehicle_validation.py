"""
Unit tests for vehicle models and the validation layer.

Tests cover:
- Accepted records and their stored form
- Every rejected field reported as a violation
- Merging partial updates over stored records
- Property tests for numeric bounds and driver lists
"""

from datetime import date

import pytest
from hypothesis import given
from hypothesis import strategies as st

from errors.codes import ErrorCode
from errors.exceptions import AppException
from vehicles.models import VehicleStatus, VehicleUpdate
from vehicles.validation import IMMUTABLE_FIELDS, merge, validate


def make_record(**overrides):
    record = {
        "name": "Van 201",
        "status": "on-road",
        "km": 45200,
        "oilChangeDue": 50000,
        "safetyDue": "2025-03-01",
        "drivers": ["Li Wei"],
        "comment": "",
    }
    record.update(overrides)
    return record


def violation_fields(exc_info) -> set:
    return {v["field"] for v in exc_info.value.details["violations"]}


class TestValidate:
    """Tests for validate()."""

    def test_valid_record(self):
        record = validate(make_record())

        assert record.name == "Van 201"
        assert record.status == VehicleStatus.ON_ROAD
        assert record.safety_due == date(2025, 3, 1)

    def test_stored_form_uses_camel_case(self):
        document = validate(make_record()).to_document()

        assert document == make_record()

    def test_fractional_km_accepted(self):
        assert validate(make_record(km=45200.5)).km == 45200.5

    def test_missing_comment_defaults_to_empty(self):
        record = make_record()
        del record["comment"]

        assert validate(record).comment == ""

    def test_null_comment_becomes_empty(self):
        assert validate(make_record(comment=None)).comment == ""

    def test_unknown_fields_ignored(self):
        document = validate(make_record(color="yellow")).to_document()

        assert "color" not in document

    def test_driver_names_are_trimmed(self):
        assert validate(make_record(drivers=["  Li Wei "])).drivers == ["Li Wei"]

    @pytest.mark.parametrize("field, value", [
        ("name", ""),
        ("name", "   "),
        ("status", "parked"),
        ("km", -1),
        ("km", "lots"),
        ("oilChangeDue", -0.5),
        ("safetyDue", "not-a-date"),
        ("drivers", []),
        ("drivers", ["Li Wei", " "]),
        ("drivers", "Li Wei, Ahmed Khan"),
    ])
    def test_invalid_field_rejected(self, field, value):
        with pytest.raises(AppException) as exc_info:
            validate(make_record(**{field: value}))

        assert exc_info.value.error_code == ErrorCode.VALIDATION_ERROR
        assert exc_info.value.status_code == 400
        assert field in violation_fields(exc_info)

    def test_missing_required_field_rejected(self):
        record = make_record()
        del record["safetyDue"]

        with pytest.raises(AppException) as exc_info:
            validate(record)

        assert violation_fields(exc_info) == {"safetyDue"}

    def test_every_violation_is_reported(self):
        with pytest.raises(AppException) as exc_info:
            validate(make_record(name="", km=-5, drivers=[]))

        assert violation_fields(exc_info) == {"name", "km", "drivers"}

    def test_infinite_km_rejected(self):
        with pytest.raises(AppException):
            validate(make_record(km=float("inf")))

    @pytest.mark.parametrize("field", ["km", "oilChangeDue"])
    @pytest.mark.parametrize("value", [True, False, "125000", "1e5"])
    def test_booleans_and_numeric_strings_rejected(self, field, value):
        with pytest.raises(AppException) as exc_info:
            validate(make_record(**{field: value}))

        assert violation_fields(exc_info) == {field}

    def test_integer_km_accepted_as_number(self):
        assert validate(make_record(km=125000)).km == 125000


class TestMerge:
    """Tests for merge()."""

    def test_changes_overlay_current(self):
        current = make_record(_id="abc", lastUpdated="2024-01-01T00:00:00.000Z")

        merged = merge(current, {"status": "in-shop", "comment": "Brakes"})

        assert merged["status"] == "in-shop"
        assert merged["comment"] == "Brakes"
        assert merged["name"] == "Van 201"

    def test_immutable_fields_are_not_overwritten(self):
        current = make_record(_id="abc", lastUpdated="2024-01-01T00:00:00.000Z")

        merged = merge(current, {"_id": "other", "lastUpdated": "2030-01-01T00:00:00.000Z"})

        assert merged["_id"] == "abc"
        assert merged["lastUpdated"] == "2024-01-01T00:00:00.000Z"
        assert set(IMMUTABLE_FIELDS) == {"_id", "lastUpdated"}

    def test_current_is_not_mutated(self):
        current = make_record()

        merge(current, {"km": 1})

        assert current["km"] == 45200

    def test_explicit_null_fails_merged_validation(self):
        changes = VehicleUpdate.model_validate({"km": None}).to_changes()

        with pytest.raises(AppException) as exc_info:
            validate(merge(make_record(), changes))

        assert violation_fields(exc_info) == {"km"}


class TestVehicleUpdate:
    """Tests for partial update payloads."""

    def test_only_sent_fields_are_changes(self):
        update = VehicleUpdate.model_validate({"status": "in-shop", "oilChangeDue": 140000})

        assert update.to_changes() == {"status": "in-shop", "oilChangeDue": 140000}

    def test_empty_body_has_no_changes(self):
        assert VehicleUpdate.model_validate({}).to_changes() == {}

    def test_unknown_and_immutable_fields_dropped(self):
        update = VehicleUpdate.model_validate({"_id": "x", "lastUpdated": "y", "color": "red"})

        assert update.to_changes() == {}

    def test_negative_km_rejected_early(self):
        with pytest.raises(ValueError):
            VehicleUpdate.model_validate({"km": -3})

    @pytest.mark.parametrize("value", [True, "126000"])
    def test_non_numeric_km_rejected_early(self, value):
        with pytest.raises(ValueError):
            VehicleUpdate.model_validate({"km": value})


class TestValidationProperties:
    """Property-based tests for numeric and driver constraints."""

    @given(km=st.one_of(
        st.integers(min_value=0, max_value=10**9),
        st.floats(min_value=0, max_value=1e9, allow_nan=False, allow_infinity=False),
    ))
    def test_non_negative_km_accepted(self, km):
        assert validate(make_record(km=km)).km == km

    @given(km=st.floats(max_value=-1e-6, allow_nan=False, allow_infinity=False))
    def test_negative_km_rejected(self, km):
        with pytest.raises(AppException):
            validate(make_record(km=km))

    @given(drivers=st.lists(
        st.text(min_size=1, max_size=20).filter(lambda s: s.strip()),
        min_size=1,
        max_size=5,
    ))
    def test_non_blank_driver_lists_accepted(self, drivers):
        assert validate(make_record(drivers=drivers)).drivers == [d.strip() for d in drivers]
