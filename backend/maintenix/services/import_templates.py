"""
Plantillas descargables para cada tipo de importacion.

La cabecera es la que esperan los validadores; las filas de ejemplo se
pueden importar tal cual (las de ``machines`` usan las ubicaciones y
modelos de sus propias plantillas).
"""

import csv
import io

import openpyxl

from maintenix.models.enums import FileFormat, ImportType


TEMPLATE_MEDIA_TYPES = {
    FileFormat.CSV: "text/csv",
    FileFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

TEMPLATES: dict[ImportType, list[list]] = {
    ImportType.LOCATIONS: [
        ["name", "description", "icon", "parentId"],
        ["Plant A", "Main production facility", "factory", ""],
        ["Building A", "Main building structure", "building", "Plant A"],
        ["Building B", "Secondary building", "building2", "Plant A"],
        ["Production Line 1", "Production line 1", "wrench", "Building A"],
        ["Production Line 2", "Production line 2", "wrench", "Building A"],
        ["Warehouse Section", "Storage and logistics area", "warehouse", "Building B"],
        ["Office Area", "Administrative offices", "landmark", "Building A"],
        ["Loading Dock", "Transport and loading area", "truck", "Plant A"],
    ],
    ImportType.MACHINE_MODELS: [
        ["name", "manufacturer", "brand", "year", "properties"],
        ["Model X1", "Manufacturer A", "Brand X", 2023, '{"power":"100kW","weight":"500kg"}'],
        ["Model Y2", "Manufacturer B", "Brand Y", 2022, '{"power":"150kW","weight":"750kg"}'],
        ["Model Z3", "Manufacturer C", "Brand Z", 2024, '{"power":"200kW","weight":"1000kg"}'],
    ],
    ImportType.MACHINES: [
        ["model", "location", "description", "properties"],
        [
            "Model X1",
            "/Plant A/Building A/Production Line 1",
            "Main production machine",
            '{"serialNumber":"MX1001","installationDate":"2023-01-15"}',
        ],
        [
            "Model Y2",
            "/Plant A/Building A/Production Line 1",
            "Secondary machine",
            '{"serialNumber":"MY2002","installationDate":"2023-02-20"}',
        ],
        [
            "Model Z3",
            "/Plant A/Building A/Production Line 2",
            "Backup machine",
            '{"serialNumber":"MZ3003","installationDate":"2023-03-10"}',
        ],
    ],
    ImportType.MAINTENANCE_RANGES: [
        ["name", "description", "type", "frequency", "startDate", "startTime", "daysOfWeek"],
        ["Daily Inspection", "Daily safety and performance check", "preventive", "daily", "", "08:00", "1,2,3,4,5"],
        ["Weekly Maintenance", "Weekly comprehensive maintenance", "preventive", "weekly", "2024-01-01", "09:00", "1"],
        ["Monthly Service", "Monthly deep service", "preventive", "monthly", "2024-01-01", "10:00", ""],
        ["Annual Overhaul", "Annual complete overhaul", "preventive", "yearly", "2024-01-01", "08:00", ""],
        ["Emergency Repair", "Emergency corrective maintenance", "corrective", "", "", "", ""],
    ],
    ImportType.OPERATIONS: [
        ["name", "description", "type"],
        ["Temperature Check", "Measure and record temperature", "number"],
        ["Pressure Reading", "Check pressure levels", "number"],
        ["Visual Inspection", "Perform visual inspection", "text"],
        ["Maintenance Date", "Date when maintenance was performed", "date"],
        ["Start Time", "Time when operation started", "time"],
        ["Completion Status", "Whether operation was completed", "boolean"],
        ["Notes", "Additional notes and observations", "text"],
    ],
}


def template_file_name(import_type: ImportType, file_format: FileFormat) -> str:
    return f"{import_type.value}_template.{file_format.value}"


def render_template(import_type: ImportType, file_format: FileFormat) -> bytes:
    rows = TEMPLATES[ImportType(import_type)]
    file_format = FileFormat(file_format)
    if file_format is FileFormat.CSV:
        buffer = io.StringIO(newline="")
        csv.writer(buffer).writerows(rows)
        return buffer.getvalue().encode("utf-8")
    if file_format is FileFormat.XLSX:
        workbook = openpyxl.Workbook()
        sheet = workbook.active
        sheet.title = "Template"
        for row in rows:
            # celdas vacias como None para que no queden strings vacios
            sheet.append([None if value == "" else value for value in row])
        output = io.BytesIO()
        workbook.save(output)
        return output.getvalue()
    raise ValueError(f"Templates are not available as {file_format.value}")
