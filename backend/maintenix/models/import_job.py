from datetime import datetime, timezone

from sqlalchemy import Enum, Integer, String, DateTime, ForeignKey, func, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from maintenix.db.base import Base
from maintenix.models.enums import ImportJobStatus, ImportType


def _values(enum_cls):
    return [member.value for member in enum_cls]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)
    import_type: Mapped[ImportType] = mapped_column(
        Enum(ImportType, values_callable=_values, name="import_type"),
        nullable=False,
    )
    status: Mapped[ImportJobStatus] = mapped_column(
        Enum(ImportJobStatus, values_callable=_values, name="import_job_status"),
        nullable=False,
        default=ImportJobStatus.PENDING,
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    # se escribe siempre con el reloj del runner/scheduler, ver import_job_repo
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    errors: Mapped[list["ImportJobError"]] = relationship(
        back_populates="job",
        order_by="ImportJobError.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_import_jobs_company_status", "company_id", "status"),
        Index("ix_import_jobs_type_status", "import_type", "status"),
        Index("ix_import_jobs_created", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (ImportJobStatus.COMPLETED, ImportJobStatus.FAILED)


class ImportJobError(Base):
    __tablename__ = "import_job_errors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[int] = mapped_column(ForeignKey("import_jobs.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    row_number: Mapped[int] = mapped_column(Integer, nullable=False)
    field: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    message: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    job: Mapped[ImportJob] = relationship(back_populates="errors")

    __table_args__ = (
        Index("ix_import_job_errors_job", "job_id", "position"),
    )
