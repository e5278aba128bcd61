from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from maintenix.models.enums import ImportJobStatus, ImportType


class RowError(BaseModel):
    row: int = Field(examples=[3])
    field: str = Field(examples=["year"])
    value: str = Field(default="", examples=["not-a-number"])
    message: str = Field(examples=["Valid year is required"])


class ProcessingResult(BaseModel):
    total_rows: int = 0
    processed_rows: int = 0
    success_rows: int = 0
    error_rows: int = 0
    errors: list[RowError] = Field(default_factory=list)


class ImportJobResponse(BaseModel):
    id: int
    company_id: int
    import_type: ImportType
    status: ImportJobStatus
    file_name: str
    file_url: str
    file_size: int
    total_rows: int
    processed_rows: int
    success_rows: int
    error_rows: int
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 12,
                "company_id": 1,
                "import_type": "machines",
                "status": "processing",
                "file_name": "machines.xlsx",
                "file_url": "http://localhost:8000/files/3f1c-machines.xlsx",
                "file_size": 18231,
                "total_rows": 100,
                "processed_rows": 40,
                "success_rows": 37,
                "error_rows": 3,
                "last_error": None,
                "created_at": "2026-10-18T10:30:00Z",
                "updated_at": "2026-10-18T10:31:10Z",
                "completed_at": None,
            }
        },
    )


class ImportJobListResponse(BaseModel):
    jobs: list[ImportJobResponse]
    total_items: int
    total_pages: int
    current_page: int
    items_per_page: int


class ImportJobErrorsResponse(BaseModel):
    errors: list[RowError]
    total_errors: int
    success_rows: int
    total_rows: int


class UploadResponse(BaseModel):
    message: str
    job_ids: list[int]


class NextJobInfo(BaseModel):
    id: int
    file_name: str
    import_type: ImportType
    created_at: datetime


class QueueStatusResponse(BaseModel):
    pending_jobs: int
    processing_jobs: int
    completed_jobs: int
    failed_jobs: int
    next_job_to_process: NextJobInfo | None = None


class JobStatsResponse(BaseModel):
    total_jobs: int
    success_rate: float
    average_processing_time: float
    jobs_by_type: dict[str, int]
    jobs_by_status: dict[str, int]


class ResetJobInfo(BaseModel):
    id: int
    file_name: str
    import_type: ImportType


class ResetStuckJobsResponse(BaseModel):
    message: str
    reset_jobs: list[ResetJobInfo]


class StuckJobInfo(BaseModel):
    id: int
    file_name: str
    import_type: ImportType
    status: ImportJobStatus
    created_at: datetime
    updated_at: datetime
    stuck_for_minutes: int


class RecentJobInfo(BaseModel):
    id: int
    file_name: str
    status: ImportJobStatus
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class DiagnoseResponse(BaseModel):
    stuck_jobs: list[StuckJobInfo]
    jobs_by_status: dict[str, int]
    recent_jobs: list[RecentJobInfo]


class FailedJobInfo(BaseModel):
    job_id: int
    error: str


class SchedulerReport(BaseModel):
    processed: list[int] = Field(default_factory=list)
    failed: list[FailedJobInfo] = Field(default_factory=list)
    skipped: list[int] = Field(default_factory=list)
    companies: list[int] = Field(default_factory=list)


class CronRunResponse(SchedulerReport):
    message: str
    timestamp: datetime
