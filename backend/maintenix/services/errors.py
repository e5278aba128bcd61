from typing import Any


class ImportPipelineError(Exception):
    """Base de los errores del pipeline de importacion."""


class IntakeError(ImportPipelineError):
    """Subida rechazada antes de crear ningun job."""


class ParseError(ImportPipelineError):
    """El contenido no se puede leer en el formato declarado."""


class TransportError(ImportPipelineError):
    """No se pudo descargar el fichero subido."""


class ImportJobFailed(ImportPipelineError):
    def __init__(self, job_id: int, message: str) -> None:
        super().__init__(message)
        self.job_id = job_id
        self.message = message


class RowValidationError(ValueError):
    """Fila invalida: se registra como error de fila y se continua."""

    def __init__(self, field: str, value: Any, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.value = value
        self.message = message
