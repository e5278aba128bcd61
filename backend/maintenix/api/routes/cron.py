import hmac
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status

from maintenix.api.deps import get_import_scheduler
from maintenix.api.security import get_optional_bearer_token
from maintenix.core.config import settings
from maintenix.schemas.import_job import CronRunResponse
from maintenix.services.import_scheduler import ImportScheduler


router = APIRouter(prefix="/cron", tags=["cron"])


def require_cron_secret(token: str | None = Depends(get_optional_bearer_token)) -> None:
    if not settings.cron_secret:
        return
    if token is None or not hmac.compare_digest(token, settings.cron_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.api_route(
    "/process-import-jobs",
    methods=["GET", "POST"],
    response_model=CronRunResponse,
    dependencies=[Depends(require_cron_secret)],
)
def process_import_jobs(scheduler: ImportScheduler = Depends(get_import_scheduler)):
    report = scheduler.run_once()
    return CronRunResponse(
        message=f"Processed {len(report.processed)} job(s), {len(report.failed)} failed",
        timestamp=datetime.now(timezone.utc),
        **report.model_dump(),
    )
