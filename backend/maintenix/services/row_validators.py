"""
Validacion y transformacion de filas importadas.

Cada tipo de importacion tiene su validador: recibe la fila ya parseada,
comprueba los campos en orden y se para en el primer fallo
(``RowValidationError``), o devuelve el registro listo para insertar.
Nunca se guarda nada aqui; el runner hace el insert.
"""

import json
import math
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy.orm import Session

from maintenix.db.base import Base
from maintenix.models.enums import ImportType, MaintenanceType, OperationType
from maintenix.models.machine import Machine
from maintenix.models.machine_model import MachineModel
from maintenix.models.maintenance_range import MaintenanceRange
from maintenix.models.operation import Operation
from maintenix.repositories import location_repo, machine_model_repo
from maintenix.services.errors import RowValidationError
from maintenix.services.tabular_parser import Row


PropertyValue = str | int | float | bool
RowValidator = Callable[[Session, Row, int], Base]

MIN_MODEL_YEAR = 1900


def _raw(row: Row, key: str) -> str:
    value = row.get(key)
    if value is None:
        return ""
    return str(value)


def _text(row: Row, key: str) -> str | None:
    value = _raw(row, key).strip()
    return value or None


def _required(row: Row, key: str, message: str) -> str:
    value = _text(row, key)
    if value is None:
        raise RowValidationError(key, _raw(row, key), message)
    return value


def _max_length(key: str, value: str | None, limit: int, message: str | None = None) -> str | None:
    # limites de las columnas; un valor largo es error de la fila, no del job
    if value is not None and len(value) > limit:
        raise RowValidationError(key, value, message or f"{key} cannot exceed {limit} characters")
    return value


def parse_properties(raw: str | None) -> dict[str, PropertyValue]:
    """JSON objeto con valores escalares (texto, numero o booleano)."""
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        raise RowValidationError("properties", raw, "Invalid JSON format")
    if not isinstance(parsed, dict):
        raise RowValidationError("properties", raw, "Properties must be a JSON object of scalar values")

    properties: dict[str, PropertyValue] = {}
    for key, value in parsed.items():
        if isinstance(value, float) and not math.isfinite(value):
            raise RowValidationError("properties", raw, "Properties must be a JSON object of scalar values")
        if not isinstance(value, (str, int, float, bool)):
            raise RowValidationError("properties", raw, "Properties must be a JSON object of scalar values")
        properties[key] = value
    return properties


def parse_year(row: Row) -> int:
    raw = row.get("year")
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        number = float(raw)
    else:
        text = _text(row, "year")
        if text is None:
            raise RowValidationError("year", _raw(row, "year"), "Valid year is required")
        try:
            number = float(text)
        except ValueError:
            raise RowValidationError("year", _raw(row, "year"), "Valid year is required")

    if not math.isfinite(number) or not number.is_integer():
        raise RowValidationError("year", _raw(row, "year"), "Valid year is required")
    max_year = date.today().year + 1
    if not MIN_MODEL_YEAR <= number <= max_year:
        raise RowValidationError(
            "year",
            _raw(row, "year"),
            f"Year must be between {MIN_MODEL_YEAR} and {max_year}",
        )
    return int(number)


def parse_days_of_week(raw: str | None) -> list[int] | None:
    """'1, 3,5' -> [1, 3, 5]; vacio -> sin restriccion."""
    if raw is None or not raw.strip():
        return None
    days = []
    for part in raw.split(","):
        part = part.strip()
        if not (part.isascii() and part.isdigit()) or not 0 <= int(part) <= 6:
            raise RowValidationError("daysOfWeek", raw, "Invalid days of week format")
        days.append(int(part))
    return days


def parse_start_date(raw: str | None) -> date | None:
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        raise RowValidationError("startDate", raw, "Invalid date format")


def validate_location(db: Session, row: Row, company_id: int):
    name = _max_length("name", _required(row, "name", "Name is required"), 100, "Location name too long")

    parent = None
    parent_name = _text(row, "parentId")
    if parent_name:
        # un padre inexistente no es error: se crea como raiz
        parent = location_repo.get_by_name(db, company_id, parent_name)

    description = _max_length("description", _text(row, "description"), 500, "Description too long")
    icon = _max_length("icon", _text(row, "icon"), 50, "Icon identifier too long")

    return location_repo.build_location(
        db,
        company_id=company_id,
        name=name,
        description=description,
        icon=icon,
        parent=parent,
    )


def validate_machine_model(db: Session, row: Row, company_id: int):
    name = _max_length("name", _required(row, "name", "Name is required"), 100)
    manufacturer = _max_length("manufacturer", _required(row, "manufacturer", "Manufacturer is required"), 100)
    brand = _max_length("brand", _required(row, "brand", "Brand is required"), 100)
    year = parse_year(row)
    properties = parse_properties(_text(row, "properties"))

    return MachineModel(
        company_id=company_id,
        name=name,
        manufacturer=manufacturer,
        brand=brand,
        year=year,
        properties=properties,
    )


def validate_machine(db: Session, row: Row, company_id: int):
    model_name = _required(row, "model", "Model is required")
    location_path = _required(row, "location", "Location is required")

    model = machine_model_repo.get_by_name(db, company_id, model_name)
    if model is None:
        raise RowValidationError("model", _raw(row, "model"), "Machine model not found")

    location = location_repo.get_by_path(db, company_id, location_path)
    if location is None:
        raise RowValidationError("location", _raw(row, "location"), "Location not found")

    description = _max_length(
        "description", _text(row, "description"), 500, "Description cannot exceed 500 characters"
    )
    properties = parse_properties(_text(row, "properties"))

    return Machine(
        company_id=company_id,
        model_id=model.id,
        location=location.path,
        location_id=location.id,
        description=description,
        properties=properties,
    )


def validate_maintenance_range(db: Session, row: Row, company_id: int):
    name = _max_length("name", _required(row, "name", "Name is required"), 100)
    description = _max_length("description", _required(row, "description", "Description is required"), 500)

    raw_type = _text(row, "type")
    try:
        maintenance_type = MaintenanceType(raw_type)
    except ValueError:
        raise RowValidationError("type", _raw(row, "type"), "Type must be preventive or corrective")

    frequency = _max_length("frequency", _text(row, "frequency"), 50)
    days_of_week = parse_days_of_week(_text(row, "daysOfWeek"))
    start_date = parse_start_date(_text(row, "startDate"))
    start_time = _max_length("startTime", _text(row, "startTime"), 20)

    return MaintenanceRange(
        company_id=company_id,
        name=name,
        description=description,
        maintenance_type=maintenance_type,
        frequency=frequency,
        start_date=start_date,
        start_time=start_time,
        days_of_week=days_of_week,
    )


def validate_operation(db: Session, row: Row, company_id: int):
    name = _max_length("name", _required(row, "name", "Name is required"), 100)
    description = _max_length("description", _required(row, "description", "Description is required"), 500)

    raw_type = _text(row, "type")
    try:
        operation_type = OperationType(raw_type)
    except ValueError:
        allowed = ", ".join(t.value for t in OperationType)
        raise RowValidationError("type", _raw(row, "type"), f"Type must be one of: {allowed}")

    return Operation(
        company_id=company_id,
        name=name,
        description=description,
        operation_type=operation_type,
    )


VALIDATORS: dict[ImportType, RowValidator] = {
    ImportType.LOCATIONS: validate_location,
    ImportType.MACHINE_MODELS: validate_machine_model,
    ImportType.MACHINES: validate_machine,
    ImportType.MAINTENANCE_RANGES: validate_maintenance_range,
    ImportType.OPERATIONS: validate_operation,
}


def validate_row(import_type: ImportType, db: Session, row: Row, company_id: int) -> Any:
    return VALIDATORS[ImportType(import_type)](db, row, company_id)
