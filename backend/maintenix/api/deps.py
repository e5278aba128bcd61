from fastapi import Depends, HTTPException, Request, status
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from maintenix.api.security import get_bearer_token
from maintenix.core.config import settings
from maintenix.db.deps import get_db
from maintenix.models.company import Company
from maintenix.repositories import company_repo
from maintenix.services.blob_storage import BlobStorage
from maintenix.services.import_scheduler import ImportScheduler


def get_current_company(db: Session = Depends(get_db), token: str = Depends(get_bearer_token)) -> Company:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        company_id = payload.get("company_id")
        if company_id is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        company = company_repo.get(db, int(company_id))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if not company:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Company not found")
    return company


def get_blob_storage(request: Request) -> BlobStorage:
    return request.app.state.blob_storage


def get_import_scheduler(request: Request) -> ImportScheduler:
    return request.app.state.import_scheduler
