from maintenix.models.company import Company
from maintenix.models.import_job import ImportJob, ImportJobError
from maintenix.models.location import Location
from maintenix.models.machine import Machine
from maintenix.models.machine_model import MachineModel
from maintenix.models.maintenance_range import MaintenanceRange
from maintenix.models.operation import Operation

__all__ = [
    "Company",
    "ImportJob",
    "ImportJobError",
    "Location",
    "Machine",
    "MachineModel",
    "MaintenanceRange",
    "Operation",
]
