import enum


class ImportType(str, enum.Enum):
    LOCATIONS = "locations"
    MACHINE_MODELS = "machine-models"
    MACHINES = "machines"
    MAINTENANCE_RANGES = "maintenance-ranges"
    OPERATIONS = "operations"


class ImportJobStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class MaintenanceType(str, enum.Enum):
    PREVENTIVE = "preventive"
    CORRECTIVE = "corrective"


class OperationType(str, enum.Enum):
    TEXT = "text"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    NUMBER = "number"


class FileFormat(str, enum.Enum):
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"
