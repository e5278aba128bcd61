from datetime import date

import pytest

from maintenix.models.enums import ImportType, MaintenanceType, OperationType
from maintenix.models.location import Location
from maintenix.models.machine import Machine
from maintenix.models.machine_model import MachineModel
from maintenix.repositories import location_repo, machine_model_repo
from maintenix.services.errors import RowValidationError
from maintenix.services.row_validators import (
    parse_days_of_week,
    parse_properties,
    validate_row,
)


def _validate_error(import_type, db, row, company_id) -> RowValidationError:
    with pytest.raises(RowValidationError) as exc_info:
        validate_row(import_type, db, row, company_id)
    return exc_info.value


def test_location_with_existing_parent(db, company):
    plant = location_repo.create_location(db, company_id=company.id, name="Plant A")

    record = validate_row(
        ImportType.LOCATIONS, db, {"name": " Building A ", "parentId": "Plant A"}, company.id
    )
    assert isinstance(record, Location)
    assert record.name == "Building A"
    assert record.parent_id == plant.id
    assert record.path == "/Plant A/Building A"
    assert record.level == 1
    assert plant.is_leaf is False


def test_location_with_unknown_parent_is_created_as_root(db, company):
    record = validate_row(ImportType.LOCATIONS, db, {"name": "Orphan", "parentId": "Nonexistent"}, company.id)
    assert record.parent_id is None
    assert record.path == "/Orphan"
    assert record.level == 0


def test_location_parent_of_other_company_is_ignored(db, company, make_company):
    other = make_company()
    location_repo.create_location(db, company_id=other.id, name="Plant A")

    record = validate_row(ImportType.LOCATIONS, db, {"name": "Hall", "parentId": "Plant A"}, company.id)
    assert record.parent_id is None


def test_location_requires_name(db, company):
    error = _validate_error(ImportType.LOCATIONS, db, {"name": "   ", "icon": "factory"}, company.id)
    assert error.field == "name"
    assert error.message == "Name is required"


@pytest.mark.parametrize(
    "row, field, message",
    [
        ({"name": "N" * 101}, "name", "Location name too long"),
        ({"name": "Hall", "description": "d" * 501}, "description", "Description too long"),
        ({"name": "Hall", "icon": "i" * 51}, "icon", "Icon identifier too long"),
    ],
)
def test_location_field_lengths(db, company, row, field, message):
    error = _validate_error(ImportType.LOCATIONS, db, row, company.id)
    assert (error.field, error.message) == (field, message)


def test_location_name_at_limit_is_valid(db, company):
    record = validate_row(ImportType.LOCATIONS, db, {"name": "N" * 100, "icon": "i" * 50}, company.id)
    assert len(record.name) == 100


def test_long_fields_in_other_types(db, company):
    error = _validate_error(
        ImportType.MACHINE_MODELS,
        db,
        {"name": "X1", "manufacturer": "M" * 101, "brand": "B" * 101, "year": 2020},
        company.id,
    )
    assert error.field == "manufacturer"
    assert error.message == "manufacturer cannot exceed 100 characters"

    error = _validate_error(
        ImportType.OPERATIONS, db, {"name": "Check", "description": "d" * 501, "type": "text"}, company.id
    )
    assert error.field == "description"

    error = _validate_error(
        ImportType.MAINTENANCE_RANGES,
        db,
        {"name": "Daily", "description": "Check", "type": "preventive", "frequency": "f" * 51},
        company.id,
    )
    assert error.field == "frequency"


def test_machine_description_too_long(db, company):
    machine_model_repo.create_machine_model(
        db, company_id=company.id, name="X1", manufacturer="A", brand="X", year=2020
    )
    location_repo.create_location(db, company_id=company.id, name="Plant A")

    error = _validate_error(
        ImportType.MACHINES,
        db,
        {"model": "X1", "location": "/Plant A", "description": "d" * 501},
        company.id,
    )
    assert error.field == "description"
    assert error.message == "Description cannot exceed 500 characters"


def test_machine_model_invalid_year(db, company):
    row = {"name": "X1", "manufacturer": "A", "brand": "X", "year": "not-a-number", "properties": "{}"}
    error = _validate_error(ImportType.MACHINE_MODELS, db, row, company.id)
    assert error.field == "year"
    assert error.value == "not-a-number"
    assert error.message == "Valid year is required"


@pytest.mark.parametrize("year", ["1850", "2020.5", str(date.today().year + 2)])
def test_machine_model_year_out_of_range_or_fractional(db, company, year):
    row = {"name": "X1", "manufacturer": "A", "brand": "X", "year": year}
    error = _validate_error(ImportType.MACHINE_MODELS, db, row, company.id)
    assert error.field == "year"


def test_machine_model_numeric_year_and_properties(db, company):
    row = {
        "name": "X1",
        "manufacturer": "Acme",
        "brand": "ACM",
        "year": 2021,
        "properties": '{"power": 5.5, "unit": "kW", "cnc": true}',
    }
    record = validate_row(ImportType.MACHINE_MODELS, db, row, company.id)
    assert isinstance(record, MachineModel)
    assert record.year == 2021
    assert record.properties == {"power": 5.5, "unit": "kW", "cnc": True}


def test_machine_model_fails_fast_on_first_invalid_field(db, company):
    # manufacturer y year son invalidos: solo se informa el primero
    row = {"name": "X1", "manufacturer": "", "brand": "X", "year": "abc"}
    error = _validate_error(ImportType.MACHINE_MODELS, db, row, company.id)
    assert error.field == "manufacturer"
    assert error.message == "Manufacturer is required"


def test_machine_with_unknown_model(db, company):
    location_repo.create_location(db, company_id=company.id, name="Plant A")
    error = _validate_error(
        ImportType.MACHINES, db, {"model": "Ghost", "location": "/Plant A"}, company.id
    )
    assert error.field == "model"
    assert error.value == "Ghost"
    assert error.message == "Machine model not found"


def test_machine_with_unknown_location(db, company):
    machine_model_repo.create_machine_model(
        db, company_id=company.id, name="X1", manufacturer="A", brand="X", year=2020, properties={}
    )
    error = _validate_error(ImportType.MACHINES, db, {"model": "X1", "location": "/Nowhere"}, company.id)
    assert error.field == "location"
    assert error.message == "Location not found"


def test_machine_resolves_model_and_location_path(db, company):
    model = machine_model_repo.create_machine_model(
        db, company_id=company.id, name="X1", manufacturer="A", brand="X", year=2020, properties={}
    )
    plant = location_repo.create_location(db, company_id=company.id, name="Plant A")
    hall = location_repo.create_location(db, company_id=company.id, name="Hall 1", parent=plant)

    record = validate_row(
        ImportType.MACHINES,
        db,
        {"model": "X1", "location": "/Plant A/Hall 1", "description": "Linea 2", "properties": '{"serial": "S-1"}'},
        company.id,
    )
    assert isinstance(record, Machine)
    assert record.model_id == model.id
    assert record.location_id == hall.id
    assert record.location == "/Plant A/Hall 1"
    assert record.properties == {"serial": "S-1"}


def test_machine_invalid_properties_json(db, company):
    machine_model_repo.create_machine_model(
        db, company_id=company.id, name="X1", manufacturer="A", brand="X", year=2020, properties={}
    )
    location_repo.create_location(db, company_id=company.id, name="Plant A")
    error = _validate_error(
        ImportType.MACHINES, db, {"model": "X1", "location": "/Plant A", "properties": "{power: 5"}, company.id
    )
    assert error.field == "properties"
    assert error.value == "{power: 5"
    assert error.message == "Invalid JSON format"


def test_maintenance_range_invalid_type(db, company):
    row = {"name": "Revision", "description": "Mensual", "type": "urgent"}
    error = _validate_error(ImportType.MAINTENANCE_RANGES, db, row, company.id)
    assert error.field == "type"
    assert error.value == "urgent"
    assert error.message == "Type must be preventive or corrective"


def test_maintenance_range_valid_row(db, company):
    row = {
        "name": "Revision",
        "description": "Mensual",
        "type": "preventive",
        "frequency": "monthly",
        "daysOfWeek": "1, 3,5",
        "startDate": "2026-01-15",
        "startTime": "08:00",
    }
    record = validate_row(ImportType.MAINTENANCE_RANGES, db, row, company.id)
    assert record.maintenance_type is MaintenanceType.PREVENTIVE
    assert record.days_of_week == [1, 3, 5]
    assert record.start_date == date(2026, 1, 15)
    assert record.start_time == "08:00"
    assert record.frequency == "monthly"


def test_maintenance_range_invalid_days(db, company):
    row = {"name": "Revision", "description": "Mensual", "type": "corrective", "daysOfWeek": "1,lunes"}
    error = _validate_error(ImportType.MAINTENANCE_RANGES, db, row, company.id)
    assert error.field == "daysOfWeek"
    assert error.message == "Invalid days of week format"


def test_operation_types(db, company):
    record = validate_row(
        ImportType.OPERATIONS, db, {"name": "Temperatura", "description": "Lectura", "type": "number"}, company.id
    )
    assert record.operation_type is OperationType.NUMBER

    error = _validate_error(
        ImportType.OPERATIONS, db, {"name": "Foto", "description": "Adjuntar", "type": "image"}, company.id
    )
    assert error.field == "type"
    assert error.message == "Type must be one of: text, date, time, datetime, boolean, number"


@pytest.mark.parametrize(
    "raw, expected",
    [(None, {}), ("  ", {}), ('{"a": 1, "b": "x", "c": false}', {"a": 1, "b": "x", "c": False})],
)
def test_parse_properties_valid(raw, expected):
    assert parse_properties(raw) == expected


@pytest.mark.parametrize("raw", ["[1, 2]", '{"nested": {"a": 1}}', '{"list": [1]}', '{"n": null}'])
def test_parse_properties_rejects_non_scalar_maps(raw):
    with pytest.raises(RowValidationError) as exc_info:
        parse_properties(raw)
    assert exc_info.value.message == "Properties must be a JSON object of scalar values"


@pytest.mark.parametrize("raw", ["7", "-1", "1,,2", "1.5"])
def test_parse_days_of_week_rejects_out_of_range(raw):
    with pytest.raises(RowValidationError):
        parse_days_of_week(raw)


def test_parse_days_of_week_blank_means_no_constraint():
    assert parse_days_of_week("   ") is None
