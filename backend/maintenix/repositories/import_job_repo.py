from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from maintenix.models.enums import ImportJobStatus, ImportType
from maintenix.models.import_job import ImportJob, ImportJobError
from maintenix.schemas.import_job import ProcessingResult, RowError


TERMINAL_STATUSES = (ImportJobStatus.COMPLETED, ImportJobStatus.FAILED)


def create_job(
    db: Session,
    *,
    company_id: int,
    import_type: ImportType,
    file_name: str,
    file_url: str,
    file_size: int,
) -> ImportJob:
    job = ImportJob(
        company_id=company_id,
        import_type=import_type,
        status=ImportJobStatus.PENDING,
        file_name=file_name,
        file_url=file_url,
        file_size=file_size,
        total_rows=0,
        processed_rows=0,
        success_rows=0,
        error_rows=0,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get(db: Session, job_id: int) -> ImportJob | None:
    return db.get(ImportJob, job_id)


def get_for_company(db: Session, job_id: int, company_id: int) -> ImportJob | None:
    return db.scalar(
        select(ImportJob).where(ImportJob.id == job_id, ImportJob.company_id == company_id)
    )


def list_jobs(
    db: Session,
    company_id: int,
    *,
    limit: int = 10,
    offset: int = 0,
) -> tuple[Sequence[ImportJob], int]:
    stmt = (
        select(ImportJob)
        .where(ImportJob.company_id == company_id)
        .order_by(ImportJob.created_at.desc(), ImportJob.id.desc())
    )
    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    items = db.scalars(stmt.offset(offset).limit(limit)).all()
    return items, total


def list_errors(db: Session, job_id: int) -> list[RowError]:
    entries = db.scalars(
        select(ImportJobError)
        .where(ImportJobError.job_id == job_id)
        .order_by(ImportJobError.position.asc())
    ).all()
    return [
        RowError(row=e.row_number, field=e.field, value=e.value, message=e.message)
        for e in entries
    ]


def oldest_pending(db: Session, limit: int) -> Sequence[ImportJob]:
    return db.scalars(
        select(ImportJob)
        .where(ImportJob.status == ImportJobStatus.PENDING)
        .order_by(ImportJob.created_at.asc(), ImportJob.id.asc())
        .limit(limit)
    ).all()


def claim(db: Session, job_id: int, *, now: datetime) -> bool:
    """pending -> processing solo si nadie lo ha reclamado antes."""
    result = db.execute(
        update(ImportJob)
        .where(ImportJob.id == job_id, ImportJob.status == ImportJobStatus.PENDING)
        .values(status=ImportJobStatus.PROCESSING, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def start_run(db: Session, job: ImportJob, *, now: datetime) -> None:
    """Deja el job en processing con contadores y errores a cero."""
    db.execute(delete(ImportJobError).where(ImportJobError.job_id == job.id))
    job.status = ImportJobStatus.PROCESSING
    job.total_rows = 0
    job.processed_rows = 0
    job.success_rows = 0
    job.error_rows = 0
    job.last_error = None
    job.completed_at = None
    job.updated_at = now
    db.commit()


def set_total_rows(db: Session, job_id: int, total_rows: int, *, now: datetime) -> None:
    db.execute(
        update(ImportJob)
        .where(ImportJob.id == job_id)
        .values(total_rows=total_rows, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def _append_errors(db: Session, job_id: int, errors: Iterable[RowError], start: int) -> None:
    for position, error in enumerate(errors, start=start):
        db.add(
            ImportJobError(
                job_id=job_id,
                position=position,
                row_number=error.row,
                field=error.field,
                value=error.value[:1000],
                message=error.message[:255],
            )
        )


def save_progress(
    db: Session,
    job_id: int,
    result: ProcessingResult,
    *,
    saved_errors: int,
    now: datetime,
    status: ImportJobStatus | None = None,
    last_error: str | None = None,
) -> int:
    """
    Checkpoint: vuelca contadores y los errores nuevos desde el ultimo volcado.
    Con status terminal tambien sella completed_at. Devuelve cuantos errores hay guardados.
    """
    _append_errors(db, job_id, result.errors[saved_errors:], saved_errors)
    values = {
        "total_rows": result.total_rows,
        "processed_rows": result.processed_rows,
        "success_rows": result.success_rows,
        "error_rows": result.error_rows,
        "updated_at": now,
    }
    if status is not None:
        values["status"] = status
        if status in TERMINAL_STATUSES:
            values["completed_at"] = now
    if last_error is not None:
        values["last_error"] = last_error[:255]
    db.execute(
        update(ImportJob)
        .where(ImportJob.id == job_id, ImportJob.status.not_in(TERMINAL_STATUSES))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return len(result.errors)


def _stale_filters(cutoff: datetime, company_id: int | None) -> list:
    filters = [
        ImportJob.status == ImportJobStatus.PROCESSING,
        ImportJob.updated_at < cutoff,
    ]
    if company_id is not None:
        filters.append(ImportJob.company_id == company_id)
    return filters


def list_stale(db: Session, *, cutoff: datetime, company_id: int | None = None) -> Sequence[ImportJob]:
    """Jobs en processing sin avance desde ``cutoff``. Solo lectura."""
    return db.scalars(
        select(ImportJob).where(*_stale_filters(cutoff, company_id)).order_by(ImportJob.updated_at.asc())
    ).all()


def reset_stuck(
    db: Session,
    *,
    cutoff: datetime,
    now: datetime,
    company_id: int | None = None,
) -> list[ImportJob]:
    stuck = list_stale(db, cutoff=cutoff, company_id=company_id)
    if not stuck:
        return []

    db.execute(
        update(ImportJob)
        .where(ImportJob.id.in_([job.id for job in stuck]), *_stale_filters(cutoff, company_id))
        .values(status=ImportJobStatus.PENDING, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    for job in stuck:
        db.refresh(job)
    return [job for job in stuck if job.status == ImportJobStatus.PENDING]


def count_by_status(db: Session, company_id: int | None = None) -> dict[ImportJobStatus, int]:
    stmt = select(ImportJob.status, func.count()).group_by(ImportJob.status)
    if company_id is not None:
        stmt = stmt.where(ImportJob.company_id == company_id)
    counts = {status: 0 for status in ImportJobStatus}
    for status, total in db.execute(stmt).all():
        counts[status] = total
    return counts


def next_pending(db: Session, company_id: int | None = None) -> ImportJob | None:
    stmt = select(ImportJob).where(ImportJob.status == ImportJobStatus.PENDING)
    if company_id is not None:
        stmt = stmt.where(ImportJob.company_id == company_id)
    return db.scalar(stmt.order_by(ImportJob.created_at.asc(), ImportJob.id.asc()).limit(1))


def created_since(db: Session, company_id: int | None, since: datetime) -> Sequence[ImportJob]:
    stmt = select(ImportJob).where(ImportJob.created_at >= since)
    if company_id is not None:
        stmt = stmt.where(ImportJob.company_id == company_id)
    return db.scalars(stmt).all()
