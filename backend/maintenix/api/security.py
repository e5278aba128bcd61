from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)

def get_bearer_token(
    creds: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> str:
    if not creds.scheme or creds.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid auth scheme")
    return creds.credentials

def get_optional_bearer_token(
    creds: HTTPAuthorizationCredentials | None = Depends(optional_bearer_scheme),
) -> str | None:
    # para endpoints que solo exigen token si hay secreto configurado (cron)
    if creds is None:
        return None
    return creds.credentials
