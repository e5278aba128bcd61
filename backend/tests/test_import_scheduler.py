import asyncio
from collections import namedtuple
from datetime import datetime, timedelta, timezone

import pytest

from maintenix.models.enums import ImportJobStatus, ImportType
from maintenix.repositories import import_job_repo
from maintenix.services.errors import ImportJobFailed
from maintenix.services.import_scheduler import ImportScheduler, select_fair_batch
from conftest import session_factory


FakeJob = namedtuple("FakeJob", ["id", "company_id"])

LOCATIONS_CSV = b"name\nPlanta\n"


def _create_job(db, files, company_id: int, content: bytes = LOCATIONS_CSV, file_name: str = "locations.csv"):
    return import_job_repo.create_job(
        db,
        company_id=company_id,
        import_type=ImportType.LOCATIONS,
        file_name=file_name,
        file_url=files.put(file_name, content),
        file_size=len(content),
    )


class RecordingRunner:
    def __init__(self) -> None:
        self.calls: list[int] = []

    def run(self, job_id: int):
        self.calls.append(job_id)


def test_fair_batch_round_robin_across_companies():
    pool = [FakeJob(1, "a"), FakeJob(2, "a"), FakeJob(3, "a"), FakeJob(4, "b"), FakeJob(5, "c"), FakeJob(6, "b")]
    selected = select_fair_batch(pool, 5)
    assert [job.id for job in selected] == [1, 4, 5, 2, 6]


def test_fair_batch_picks_distinct_companies_first():
    pool = [FakeJob(i, company) for i, company in enumerate("aabbccddeeff", start=1)]
    selected = select_fair_batch(pool, 5)
    assert len({job.company_id for job in selected}) == 5


def test_fair_batch_single_company_is_fifo_and_capped():
    pool = [FakeJob(i, "a") for i in range(1, 9)]
    assert [job.id for job in select_fair_batch(pool, 5)] == [1, 2, 3, 4, 5]
    assert select_fair_batch([], 5) == []


def test_run_once_processes_fair_batch(db, files, scheduler, make_company):
    busy = make_company("Busy")
    quiet = make_company("Quiet")
    busy_jobs = [_create_job(db, files, busy.id) for _ in range(6)]
    quiet_job = _create_job(db, files, quiet.id)

    report = scheduler.run_once()

    assert len(report.processed) == 5
    assert quiet_job.id in report.processed
    assert report.processed[:2] == [busy_jobs[0].id, quiet_job.id]
    assert set(report.companies) == {busy.id, quiet.id}
    assert report.failed == []

    db.expire_all()
    pending = [job for job in busy_jobs if import_job_repo.get(db, job.id).status == ImportJobStatus.PENDING]
    assert [job.id for job in pending] == [busy_jobs[4].id, busy_jobs[5].id]


def test_failed_job_does_not_stop_batch(db, files, scheduler, company):
    broken = _create_job(db, files, company.id, content=b"garbage", file_name="broken.xlsx")
    good = _create_job(db, files, company.id)

    report = scheduler.run_once()

    assert report.processed == [good.id]
    assert [(f.job_id, f.error) for f in report.failed][0][0] == broken.id
    assert "Could not read Excel file" in report.failed[0].error
    db.expire_all()
    assert import_job_repo.get(db, broken.id).status == ImportJobStatus.FAILED
    assert import_job_repo.get(db, good.id).status == ImportJobStatus.COMPLETED


def test_unexpected_runner_error_is_reported(db, files, company):
    class ExplodingRunner:
        def run(self, job_id):
            raise RuntimeError("runner crashed")

    job = _create_job(db, files, company.id)
    scheduler = ImportScheduler(session_factory, ExplodingRunner())

    report = scheduler.run_once()

    assert report.failed[0].job_id == job.id
    assert report.failed[0].error == "runner crashed"


def test_claim_is_atomic(db, files, company):
    job = _create_job(db, files, company.id)
    now = datetime.now(timezone.utc)

    assert import_job_repo.claim(db, job.id, now=now) is True
    assert import_job_repo.claim(db, job.id, now=now) is False


def test_already_claimed_job_is_skipped(db, files, company, monkeypatch):
    job = _create_job(db, files, company.id)
    runner = RecordingRunner()
    scheduler = ImportScheduler(session_factory, runner)

    original_claim = import_job_repo.claim

    def _claim_lost(session, job_id, *, now):
        # otro scheduler lo reclama justo antes
        original_claim(session, job_id, now=now)
        return original_claim(session, job_id, now=now)

    monkeypatch.setattr(import_job_repo, "claim", _claim_lost)
    report = scheduler.run_once()

    assert report.skipped == [job.id]
    assert report.processed == []
    assert runner.calls == []


def test_overlapping_pass_is_skipped(db, files, company):
    _create_job(db, files, company.id)
    runner = RecordingRunner()
    scheduler = ImportScheduler(session_factory, runner)

    scheduler._pass_lock.acquire()
    try:
        report = scheduler.run_once()
    finally:
        scheduler._pass_lock.release()

    assert report.processed == [] and runner.calls == []


def test_reset_stuck_jobs_uses_staleness_window(db, files, scheduler, company):
    now = datetime.now(timezone.utc)
    stale = _create_job(db, files, company.id)
    recent = _create_job(db, files, company.id)
    for job, minutes in ((stale, 15), (recent, 2)):
        job.status = ImportJobStatus.PROCESSING
        job.updated_at = now - timedelta(minutes=minutes)
    db.commit()

    reset = scheduler.reset_stuck_jobs()

    assert [job.id for job in reset] == [stale.id]
    db.expire_all()
    assert import_job_repo.get(db, stale.id).status == ImportJobStatus.PENDING
    assert import_job_repo.get(db, recent.id).status == ImportJobStatus.PROCESSING


def test_reset_stuck_jobs_scoped_to_company(db, files, scheduler, make_company):
    first = make_company()
    second = make_company()
    old = datetime.now(timezone.utc) - timedelta(minutes=30)
    jobs = [_create_job(db, files, first.id), _create_job(db, files, second.id)]
    for job in jobs:
        job.status = ImportJobStatus.PROCESSING
        job.updated_at = old
    db.commit()

    reset = scheduler.reset_stuck_jobs(company_id=first.id)

    assert [job.id for job in reset] == [jobs[0].id]
    db.expire_all()
    assert import_job_repo.get(db, jobs[1].id).status == ImportJobStatus.PROCESSING


def test_completed_jobs_are_never_reset(db, files, scheduler, company):
    job = _create_job(db, files, company.id)
    job.status = ImportJobStatus.COMPLETED
    job.updated_at = datetime.now(timezone.utc) - timedelta(hours=1)
    db.commit()

    assert scheduler.reset_stuck_jobs() == []


def test_queue_status_and_stats(db, files, scheduler, company):
    done = _create_job(db, files, company.id)
    scheduler.runner.run(done.id)
    broken = _create_job(db, files, company.id, content=b"x", file_name="broken.xlsx")
    with pytest.raises(ImportJobFailed):
        scheduler.runner.run(broken.id)
    waiting = _create_job(db, files, company.id)
    db.expire_all()

    status = scheduler.queue_status(db, company.id)
    assert (status.pending_jobs, status.processing_jobs, status.completed_jobs, status.failed_jobs) == (1, 0, 1, 1)
    assert status.next_job_to_process.id == waiting.id

    stats = scheduler.job_stats(db, company.id, days=7)
    assert stats.total_jobs == 3
    assert stats.success_rate == pytest.approx(100 / 3)
    assert stats.average_processing_time >= 0
    assert stats.jobs_by_type == {"locations": 3}
    assert stats.jobs_by_status == {"completed": 1, "failed": 1, "pending": 1}


def test_start_and_stop_local_loop(db, company):
    runner = RecordingRunner()
    scheduler = ImportScheduler(session_factory, runner, interval_seconds=3600)

    async def _scenario():
        scheduler.start()
        assert scheduler.is_running
        await asyncio.sleep(0.05)
        await scheduler.stop()
        assert not scheduler.is_running

    asyncio.run(_scenario())
