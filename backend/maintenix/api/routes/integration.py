import math

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from maintenix.api.deps import get_blob_storage, get_current_company, get_import_scheduler
from maintenix.cache.redis_cache import (
    JOB_STATS_PREFIX,
    QUEUE_STATUS_PREFIX,
    cache_get,
    cache_set,
    invalidate_company_import_cache,
    make_key,
)
from maintenix.core.config import settings
from maintenix.db.deps import get_db
from maintenix.models.company import Company
from maintenix.models.enums import FileFormat
from maintenix.repositories import import_job_repo
from maintenix.schemas.import_job import (
    DiagnoseResponse,
    ImportJobErrorsResponse,
    ImportJobListResponse,
    ImportJobResponse,
    JobStatsResponse,
    QueueStatusResponse,
    ResetJobInfo,
    ResetStuckJobsResponse,
    UploadResponse,
)
from maintenix.services.blob_storage import BlobStorage
from maintenix.services.errors import IntakeError
from maintenix.services.import_intake import UploadedFile, create_import_jobs, parse_import_type
from maintenix.services.import_scheduler import ImportScheduler
from maintenix.services.import_templates import TEMPLATE_MEDIA_TYPES, render_template, template_file_name


router = APIRouter(prefix="/integration", tags=["integration"])


def _get_job_or_404(db: Session, job_id: int, company: Company):
    job = import_job_repo.get_for_company(db, job_id, company.id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
def upload_files(
    files: list[UploadFile] = File(default=[]),
    import_type: str | None = Form(None, alias="type"),
    db: Session = Depends(get_db),
    company: Company = Depends(get_current_company),
    storage: BlobStorage = Depends(get_blob_storage),
):
    uploads = [UploadedFile(file_name=f.filename or "", content=f.file.read()) for f in files]
    try:
        jobs = create_import_jobs(
            db,
            storage,
            company_id=company.id,
            import_type=import_type,
            files=uploads,
            max_bytes=settings.max_upload_bytes,
        )
    except IntakeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    invalidate_company_import_cache(company.id)
    return UploadResponse(
        message=f"{len(jobs)} file(s) queued for processing",
        job_ids=[job.id for job in jobs],
    )


@router.get("/jobs", response_model=ImportJobListResponse)
def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    company: Company = Depends(get_current_company),
):
    jobs, total = import_job_repo.list_jobs(db, company.id, limit=limit, offset=(page - 1) * limit)
    return ImportJobListResponse(
        jobs=[ImportJobResponse.model_validate(job) for job in jobs],
        total_items=total,
        total_pages=math.ceil(total / limit) if total else 0,
        current_page=page,
        items_per_page=limit,
    )


@router.get("/jobs/{job_id}", response_model=ImportJobResponse)
def get_job(
    job_id: int,
    db: Session = Depends(get_db),
    company: Company = Depends(get_current_company),
):
    return _get_job_or_404(db, job_id, company)


@router.get("/jobs/{job_id}/errors", response_model=ImportJobErrorsResponse)
def get_job_errors(
    job_id: int,
    db: Session = Depends(get_db),
    company: Company = Depends(get_current_company),
):
    job = _get_job_or_404(db, job_id, company)
    errors = import_job_repo.list_errors(db, job.id)
    return ImportJobErrorsResponse(
        errors=errors,
        total_errors=len(errors),
        success_rows=job.success_rows,
        total_rows=job.total_rows,
    )


@router.get("/queue", response_model=QueueStatusResponse)
def queue_status(
    db: Session = Depends(get_db),
    company: Company = Depends(get_current_company),
    scheduler: ImportScheduler = Depends(get_import_scheduler),
):
    cache_key = make_key(QUEUE_STATUS_PREFIX, company.id)
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    payload = scheduler.queue_status(db, company.id)
    cache_set(cache_key, payload, ttl_seconds=30)
    return payload


@router.get("/stats", response_model=JobStatsResponse)
def job_stats(
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
    company: Company = Depends(get_current_company),
    scheduler: ImportScheduler = Depends(get_import_scheduler),
):
    cache_key = make_key(JOB_STATS_PREFIX, company.id, {"days": days})
    cached = cache_get(cache_key)
    if cached is not None:
        return cached

    payload = scheduler.job_stats(db, company.id, days=days)
    cache_set(cache_key, payload, ttl_seconds=300)
    return payload


@router.post("/reset-stuck-jobs", response_model=ResetStuckJobsResponse)
def reset_stuck_jobs(
    company: Company = Depends(get_current_company),
    scheduler: ImportScheduler = Depends(get_import_scheduler),
):
    reset = scheduler.reset_stuck_jobs(company_id=company.id)
    return ResetStuckJobsResponse(
        message=f"Reset {len(reset)} stuck job(s) to pending",
        reset_jobs=[
            ResetJobInfo(id=job.id, file_name=job.file_name, import_type=job.import_type)
            for job in reset
        ],
    )


@router.get("/diagnose", response_model=DiagnoseResponse)
def diagnose(
    db: Session = Depends(get_db),
    company: Company = Depends(get_current_company),
    scheduler: ImportScheduler = Depends(get_import_scheduler),
):
    # sin cache: se consulta justo cuando algo parece atascado
    return scheduler.diagnose(db, company.id)


@router.get(
    "/templates/{import_type}",
    response_class=Response,
    dependencies=[Depends(get_current_company)],
    responses={200: {"content": {media: {} for media in TEMPLATE_MEDIA_TYPES.values()}}},
)
def download_template(
    import_type: str,
    file_format: FileFormat = Query(FileFormat.XLSX, alias="format"),
):
    try:
        parsed_type = parse_import_type(import_type)
    except IntakeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if file_format not in TEMPLATE_MEDIA_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Templates are available as csv or xlsx",
        )

    filename = template_file_name(parsed_type, file_format)
    return Response(
        content=render_template(parsed_type, file_format),
        media_type=TEMPLATE_MEDIA_TYPES[file_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
