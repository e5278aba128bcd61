import asyncio
import json
import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence, TypeVar

from sqlalchemy.orm import Session

from maintenix.cache.redis_cache import invalidate_company_import_cache
from maintenix.models.enums import ImportJobStatus
from maintenix.models.import_job import ImportJob
from maintenix.repositories import import_job_repo
from maintenix.schemas.import_job import (
    DiagnoseResponse,
    FailedJobInfo,
    JobStatsResponse,
    NextJobInfo,
    QueueStatusResponse,
    RecentJobInfo,
    SchedulerReport,
    StuckJobInfo,
)
from maintenix.services.errors import ImportJobFailed
from maintenix.services.import_runner import ImportJobRunner, utcnow


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_POOL_SIZE = 10
DEFAULT_STALE_AFTER = timedelta(minutes=10)

T = TypeVar("T")


def _as_utc(value: datetime) -> datetime:
    # SQLite devuelve fechas naive (siempre guardadas en UTC)
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def select_fair_batch(jobs: Sequence[T], limit: int, *, key: Callable[[T], object] | None = None) -> list[T]:
    """
    Reparto round-robin entre empresas.

    ``jobs`` llega en orden FIFO. Se agrupa por empresa (en orden de primera
    aparicion) y se toma un job por empresa en cada vuelta hasta ``limit``.
    """
    key = key or (lambda job: job.company_id)
    queues: OrderedDict[object, list[T]] = OrderedDict()
    for job in jobs:
        queues.setdefault(key(job), []).append(job)

    selected: list[T] = []
    while len(selected) < limit and queues:
        for company in list(queues):
            if len(selected) >= limit:
                break
            pending = queues[company]
            selected.append(pending.pop(0))
            if not pending:
                del queues[company]
    return selected


class ImportScheduler:
    """
    Despachador de jobs de importacion.

    Una pasada (``run_once``) coge los jobs pendientes mas antiguos de todas
    las empresas, aplica el reparto justo, reclama cada job de forma atomica
    y lo procesa en serie. Un job que falla no corta la pasada.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        runner: ImportJobRunner,
        *,
        clock: Callable[[], datetime] = utcnow,
        batch_size: int = DEFAULT_BATCH_SIZE,
        pool_size: int = DEFAULT_POOL_SIZE,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
        interval_seconds: float = 120.0,
    ) -> None:
        self.session_factory = session_factory
        self.runner = runner
        self.clock = clock
        self.batch_size = batch_size
        self.pool_size = max(pool_size, batch_size)
        self.stale_after = stale_after
        self.interval_seconds = interval_seconds

        self._pass_lock = threading.Lock()
        self._task: asyncio.Task | None = None

    # -- pasada de procesamiento ---------------------------------------

    def run_once(self) -> SchedulerReport:
        report = SchedulerReport()
        if not self._pass_lock.acquire(blocking=False):
            logger.info("Import scheduler pass already running, skipping")
            return report
        try:
            with self.session_factory() as db:
                pool = import_job_repo.oldest_pending(db, self.pool_size)
                selected = [(job.id, job.company_id) for job in select_fair_batch(pool, self.batch_size)]

                for job_id, company_id in selected:
                    # se reclama justo antes de procesar para que los que esperan sigan en pending
                    if not import_job_repo.claim(db, job_id, now=self.clock()):
                        report.skipped.append(job_id)
                        continue
                    if company_id not in report.companies:
                        report.companies.append(company_id)
                    try:
                        self.runner.run(job_id)
                    except ImportJobFailed as exc:
                        report.failed.append(FailedJobInfo(job_id=job_id, error=exc.message))
                    except Exception as exc:
                        logger.exception("Unexpected error running import job %s", job_id)
                        report.failed.append(
                            FailedJobInfo(job_id=job_id, error=str(exc) or exc.__class__.__name__)
                        )
                    else:
                        report.processed.append(job_id)
        finally:
            self._pass_lock.release()

        for company_id in report.companies:
            invalidate_company_import_cache(company_id)

        logger.info(
            json.dumps(
                {
                    "event": "scheduler_pass",
                    "processed": report.processed,
                    "failed": [f.job_id for f in report.failed],
                    "skipped": report.skipped,
                    "companies": report.companies,
                }
            )
        )
        return report

    def trigger_now(self) -> SchedulerReport:
        return self.run_once()

    # -- recuperacion de jobs atascados ----------------------------------

    def reset_stuck_jobs(self, company_id: int | None = None) -> list[ImportJob]:
        now = self.clock()
        with self.session_factory() as db:
            reset = import_job_repo.reset_stuck(
                db,
                cutoff=now - self.stale_after,
                now=now,
                company_id=company_id,
            )
            db.expunge_all()
        if reset:
            for company in {job.company_id for job in reset}:
                invalidate_company_import_cache(company)
            logger.warning(
                json.dumps(
                    {
                        "event": "import_jobs_reset",
                        "company_id": company_id,
                        "job_ids": [job.id for job in reset],
                    }
                )
            )
        return reset

    # -- consultas de cola -----------------------------------------------

    def queue_status(self, db: Session, company_id: int | None = None) -> QueueStatusResponse:
        counts = import_job_repo.count_by_status(db, company_id)
        next_job = import_job_repo.next_pending(db, company_id)
        return QueueStatusResponse(
            pending_jobs=counts[ImportJobStatus.PENDING],
            processing_jobs=counts[ImportJobStatus.PROCESSING],
            completed_jobs=counts[ImportJobStatus.COMPLETED],
            failed_jobs=counts[ImportJobStatus.FAILED],
            next_job_to_process=(
                NextJobInfo(
                    id=next_job.id,
                    file_name=next_job.file_name,
                    import_type=next_job.import_type,
                    created_at=next_job.created_at,
                )
                if next_job
                else None
            ),
        )

    def job_stats(self, db: Session, company_id: int | None = None, days: int = 7) -> JobStatsResponse:
        jobs = import_job_repo.created_since(db, company_id, self.clock() - timedelta(days=days))

        total = len(jobs)
        completed = [job for job in jobs if job.status == ImportJobStatus.COMPLETED]
        durations = [
            (_as_utc(job.completed_at) - _as_utc(job.created_at)).total_seconds()
            for job in completed
            if job.completed_at is not None
        ]

        by_type: dict[str, int] = {}
        by_status: dict[str, int] = {}
        for job in jobs:
            by_type[job.import_type.value] = by_type.get(job.import_type.value, 0) + 1
            by_status[job.status.value] = by_status.get(job.status.value, 0) + 1

        return JobStatsResponse(
            total_jobs=total,
            success_rate=(len(completed) / total * 100) if total else 0.0,
            average_processing_time=(sum(durations) / len(durations)) if durations else 0.0,
            jobs_by_type=by_type,
            jobs_by_status=by_status,
        )

    def diagnose(self, db: Session, company_id: int, recent: int = 10) -> DiagnoseResponse:
        """Jobs atascados (sin tocarlos), conteo por estado y ultimos jobs."""
        now = self.clock()
        stale = import_job_repo.list_stale(db, cutoff=now - self.stale_after, company_id=company_id)
        counts = import_job_repo.count_by_status(db, company_id)
        latest, _ = import_job_repo.list_jobs(db, company_id, limit=recent)

        return DiagnoseResponse(
            stuck_jobs=[
                StuckJobInfo(
                    id=job.id,
                    file_name=job.file_name,
                    import_type=job.import_type,
                    status=job.status,
                    created_at=job.created_at,
                    updated_at=job.updated_at,
                    stuck_for_minutes=int((now - _as_utc(job.updated_at)).total_seconds() // 60),
                )
                for job in stale
            ],
            jobs_by_status={status.value: total for status, total in counts.items() if total},
            recent_jobs=[RecentJobInfo.model_validate(job) for job in latest],
        )

    # -- bucle en proceso --------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.info("Import scheduler loop already running")
            return
        logger.info("Starting import scheduler loop every %s seconds", self.interval_seconds)
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Import scheduler loop stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception("Import scheduler pass failed")
            await asyncio.sleep(self.interval_seconds)
