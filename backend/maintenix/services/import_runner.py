import json
import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from maintenix.core.observability import MetricsRegistry
from maintenix.models.enums import ImportJobStatus, ImportType
from maintenix.repositories import import_job_repo
from maintenix.schemas.import_job import ProcessingResult, RowError
from maintenix.services.errors import ImportJobFailed, RowValidationError
from maintenix.services.file_fetcher import FileFetcher
from maintenix.services.row_validators import validate_row
from maintenix.services.tabular_parser import Row, detect_format, parse_rows


logger = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_EVERY = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportJobRunner:
    """
    Procesa un ImportJob de principio a fin:
    descarga -> parseo -> validacion fila a fila -> insert -> resultado final.

    Cada fila valida se guarda en su propia transaccion; un fallo en una fila
    no impide procesar las siguientes. El progreso se vuelca al job cada
    ``checkpoint_every`` filas para que la UI pueda consultarlo en curso.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        fetcher: FileFetcher,
        *,
        clock: Callable[[], datetime] = utcnow,
        checkpoint_every: int = DEFAULT_CHECKPOINT_EVERY,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        if checkpoint_every < 1:
            raise ValueError("checkpoint_every must be >= 1")
        self.session_factory = session_factory
        self.fetcher = fetcher
        self.clock = clock
        self.checkpoint_every = checkpoint_every
        self.metrics = metrics

    def run(self, job_id: int) -> ProcessingResult:
        with self.session_factory() as db:
            job = import_job_repo.get(db, job_id)
            if job is None:
                raise ImportJobFailed(job_id, "Job not found")
            if job.is_terminal:
                raise ImportJobFailed(job_id, f"Job already {job.status.value}")

            import_type = ImportType(job.import_type)
            company_id = job.company_id
            file_url = job.file_url
            file_name = job.file_name or file_url

            # reprocesado completo: siempre desde la fila 0
            import_job_repo.start_run(db, job, now=self.clock())
            self._log("import_job_started", job_id, company_id=company_id, import_type=import_type.value)

            result = ProcessingResult()
            saved_errors = 0
            try:
                content = self.fetcher.fetch(file_url)
                rows = parse_rows(content, detect_format(file_name))
                result.total_rows = len(rows)
                import_job_repo.set_total_rows(db, job_id, result.total_rows, now=self.clock())

                for row_number, row in enumerate(rows, start=1):
                    self._process_row(db, import_type, company_id, row_number, row, result)
                    if result.processed_rows % self.checkpoint_every == 0:
                        saved_errors = import_job_repo.save_progress(
                            db, job_id, result, saved_errors=saved_errors, now=self.clock()
                        )
            except Exception as exc:
                db.rollback()
                message = str(exc) or exc.__class__.__name__
                logger.exception(
                    json.dumps(
                        {
                            "event": "import_job_failed",
                            "job_id": job_id,
                            "company_id": company_id,
                            "processed_rows": result.processed_rows,
                            "error": message,
                        },
                        ensure_ascii=False,
                    )
                )
                self._mark_failed(db, job_id, result, saved_errors, message)
                raise ImportJobFailed(job_id, message) from exc

            import_job_repo.save_progress(
                db,
                job_id,
                result,
                saved_errors=saved_errors,
                now=self.clock(),
                status=ImportJobStatus.COMPLETED,
            )

        if self.metrics is not None:
            self.metrics.observe_import_job(
                status=ImportJobStatus.COMPLETED.value,
                success_rows=result.success_rows,
                error_rows=result.error_rows,
            )
        self._log(
            "import_job_completed",
            job_id,
            company_id=company_id,
            total_rows=result.total_rows,
            success_rows=result.success_rows,
            error_rows=result.error_rows,
        )
        return result

    def _process_row(
        self,
        db: Session,
        import_type: ImportType,
        company_id: int,
        row_number: int,
        row: Row,
        result: ProcessingResult,
    ) -> None:
        try:
            record = validate_row(import_type, db, row, company_id)
        except RowValidationError as exc:
            db.rollback()
            self._add_error(result, row_number, exc.field, exc.value, exc.message)
        else:
            try:
                db.add(record)
                db.commit()
            except (IntegrityError, DataError) as exc:
                # error atribuible a la fila: se registra y se sigue
                db.rollback()
                self._add_error(result, row_number, "record", "", f"Could not save record: {exc.orig}")
            else:
                result.success_rows += 1
        result.processed_rows += 1

    @staticmethod
    def _add_error(result: ProcessingResult, row_number: int, field: str, value, message: str) -> None:
        result.errors.append(
            RowError(
                row=row_number,
                field=field,
                value="" if value is None else str(value),
                message=message,
            )
        )
        result.error_rows += 1

    def _mark_failed(
        self,
        db: Session,
        job_id: int,
        result: ProcessingResult,
        saved_errors: int,
        message: str,
    ) -> None:
        try:
            import_job_repo.save_progress(
                db,
                job_id,
                result,
                saved_errors=saved_errors,
                now=self.clock(),
                status=ImportJobStatus.FAILED,
                last_error=message,
            )
        except SQLAlchemyError:
            # queda en processing; lo recupera el barrido de jobs atascados
            db.rollback()
            logger.exception("Could not mark import job %s as failed", job_id)
            return
        if self.metrics is not None:
            self.metrics.observe_import_job(
                status=ImportJobStatus.FAILED.value,
                success_rows=result.success_rows,
                error_rows=result.error_rows,
            )

    @staticmethod
    def _log(event: str, job_id: int, **fields) -> None:
        logger.info(json.dumps({"event": event, "job_id": job_id, **fields}, ensure_ascii=False))
