from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from nazdeeki.core.errors import AuthenticationError, ServiceUnavailableError
from nazdeeki.db.session import get_db
from nazdeeki.services.db_health import get_database_health
from nazdeeki.models.otp_attempt import ACCOUNT_KIND_USER
from nazdeeki.services.sessions import TOKEN_TYPE_ACCESS, decode_token

bearer = HTTPBearer(auto_error=False)

def get_bearer_token(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> str | None:
    if not creds:
        return None
    return creds.credentials

def get_current_claims(token: str | None = Depends(get_bearer_token)) -> dict:
    if not token:
        raise AuthenticationError("Missing Bearer token")
    return decode_token(token, TOKEN_TYPE_ACCESS)

def get_current_user_claims(token: str | None = Depends(get_bearer_token)) -> dict:
    if not token:
        raise AuthenticationError("Missing Bearer token")
    return decode_token(token, TOKEN_TYPE_ACCESS, kind=ACCOUNT_KIND_USER)

def require_database(db: Session = Depends(get_db)) -> None:
    if not get_database_health().ping(db):
        raise ServiceUnavailableError()
