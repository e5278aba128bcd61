from datetime import datetime, timedelta, timezone

from jose import jwt

from maintenix.core.config import settings


def create_access_token(company_id: int, expires_minutes: int | None = None, subject: str | None = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    claims = {"company_id": company_id, "exp": expire}
    if subject:
        claims["sub"] = subject
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
