from datetime import timedelta

from maintenix.core.config import Settings, settings as default_settings
from maintenix.core.observability import MetricsRegistry
from maintenix.db import session as db_session
from maintenix.services.blob_storage import LocalBlobStorage
from maintenix.services.file_fetcher import FileFetcher, HttpFileFetcher
from maintenix.services.import_runner import ImportJobRunner
from maintenix.services.import_scheduler import ImportScheduler


def _session_factory():
    # se resuelve en cada llamada: los tests sustituyen SessionLocal
    return db_session.SessionLocal()


def build_blob_storage(settings: Settings = default_settings) -> LocalBlobStorage:
    return LocalBlobStorage(settings.upload_dir, settings.public_base_url)


def build_runner(
    settings: Settings = default_settings,
    *,
    fetcher: FileFetcher | None = None,
    metrics: MetricsRegistry | None = None,
) -> ImportJobRunner:
    return ImportJobRunner(
        _session_factory,
        fetcher or HttpFileFetcher(timeout_seconds=settings.import_fetch_timeout_seconds),
        checkpoint_every=settings.import_checkpoint_every,
        metrics=metrics,
    )


def build_scheduler(
    settings: Settings = default_settings,
    *,
    fetcher: FileFetcher | None = None,
    metrics: MetricsRegistry | None = None,
) -> ImportScheduler:
    return ImportScheduler(
        _session_factory,
        build_runner(settings, fetcher=fetcher, metrics=metrics),
        batch_size=settings.import_batch_size,
        pool_size=settings.import_pool_size,
        stale_after=timedelta(minutes=settings.import_stale_after_minutes),
        interval_seconds=settings.import_scheduler_interval_seconds,
    )
