from maintenix.celery_app import celery_app
from maintenix.services.import_factory import build_scheduler


@celery_app.task(name="maintenix.tasks.process_import_jobs")
def process_import_jobs() -> dict:
    report = build_scheduler().run_once()
    return report.model_dump()


@celery_app.task(name="maintenix.tasks.reset_stuck_import_jobs")
def reset_stuck_import_jobs() -> dict:
    # barrido global: todas las empresas
    reset = build_scheduler().reset_stuck_jobs()
    return {"reset": [job.id for job in reset]}
