import json
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from maintenix.models.enums import ImportType
from maintenix.models.import_job import ImportJob
from maintenix.repositories import import_job_repo
from maintenix.services.blob_storage import BlobStorage
from maintenix.services.errors import IntakeError, ParseError
from maintenix.services.tabular_parser import detect_format


logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".csv", ".xlsx", ".xls")


@dataclass(frozen=True)
class UploadedFile:
    file_name: str
    content: bytes


def parse_import_type(raw: str | None) -> ImportType:
    if raw is None or not raw.strip():
        raise IntakeError("Import type is required")
    try:
        return ImportType(raw.strip())
    except ValueError:
        allowed = ", ".join(t.value for t in ImportType)
        raise IntakeError(f"Invalid import type. Allowed: {allowed}")


def validate_upload(files: list[UploadedFile], *, max_bytes: int | None = None) -> None:
    """Comprueba todos los ficheros antes de guardar ninguno."""
    if not files:
        raise IntakeError("No files provided")
    for upload in files:
        if not upload.file_name:
            raise IntakeError("File name is required")
        try:
            detect_format(upload.file_name)
        except ParseError:
            raise IntakeError(
                f"Invalid file type: {upload.file_name}. Allowed: {', '.join(ALLOWED_EXTENSIONS)}"
            )
        if max_bytes is not None and len(upload.content) > max_bytes:
            raise IntakeError(f"File too large: {upload.file_name}")


def create_import_jobs(
    db: Session,
    storage: BlobStorage,
    *,
    company_id: int,
    import_type: str | None,
    files: list[UploadedFile],
    max_bytes: int | None = None,
) -> list[ImportJob]:
    parsed_type = parse_import_type(import_type)
    validate_upload(files, max_bytes=max_bytes)

    jobs = []
    for upload in files:
        url = storage.put(upload.file_name, upload.content)
        jobs.append(
            import_job_repo.create_job(
                db,
                company_id=company_id,
                import_type=parsed_type,
                file_name=upload.file_name,
                file_url=url,
                file_size=len(upload.content),
            )
        )

    logger.info(
        json.dumps(
            {
                "event": "import_jobs_created",
                "company_id": company_id,
                "import_type": parsed_type.value,
                "job_ids": [job.id for job in jobs],
            }
        )
    )
    return jobs
