from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from jose import JWTError
from sqlalchemy.orm import Session

from nazdeeki.core.config import settings
from nazdeeki.core.errors import AuthenticationError
from nazdeeki.core.security import create_jwt, decode_jwt, hash_token
from nazdeeki.models.auth_session import AuthSession
from nazdeeki.models.common import utcnow
from nazdeeki.models.otp_attempt import ACCOUNT_KIND_SELLER

_LOG = logging.getLogger("nazdeeki.auth.sessions")

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_in: int


def access_ttl() -> timedelta:
    return timedelta(minutes=settings.ACCESS_TOKEN_TTL_MINUTES)


def refresh_ttl() -> timedelta:
    return timedelta(days=settings.REFRESH_TOKEN_TTL_DAYS)


def create_access_token(directory: Any, account: Any) -> str:
    claims = dict(directory.access_claims(account))
    claims.update({"sub": directory.subject(account), "kind": directory.kind, "type": TOKEN_TYPE_ACCESS})
    return create_jwt(claims, settings.JWT_SECRET, access_ttl())


def create_refresh_token(directory: Any, account: Any) -> str:
    # jti keeps two grants issued within the same second from hashing alike.
    return create_jwt(
        {
            "sub": directory.subject(account),
            "phone": directory.phone_of(account),
            "kind": directory.kind,
            "type": TOKEN_TYPE_REFRESH,
            "jti": uuid.uuid4().hex,
        },
        settings.JWT_SECRET,
        refresh_ttl(),
    )


def decode_token(
    token: str | None,
    expected_type: str,
    *,
    kind: str = ACCOUNT_KIND_SELLER,
    detail: str | None = None,
) -> dict:
    """Verify signature, expiry, declared type and account kind; all failures look the same."""
    if not token:
        raise AuthenticationError(detail)
    try:
        claims = decode_jwt(token, settings.JWT_SECRET)
    except JWTError as exc:
        _LOG.debug("token rejected: %s", exc.__class__.__name__)
        raise AuthenticationError(detail) from exc
    if claims.get("type") != expected_type or claims.get("kind") != kind or not claims.get("sub"):
        _LOG.debug("token rejected: type=%s kind=%s expected=%s/%s", claims.get("type"), claims.get("kind"), expected_type, kind)
        raise AuthenticationError(detail)
    return claims


class SessionManager:
    def __init__(self, db: Session, directory: Any, *, now: Callable[[], datetime] = utcnow):
        self.db = db
        self.directory = directory
        self.now = now

    def issue(self, account: Any, *, device_info: str | None, ip_address: str | None) -> IssuedTokens:
        access_token = create_access_token(self.directory, account)
        refresh_token = create_refresh_token(self.directory, account)
        now = self.now()
        self.db.add(
            AuthSession(
                **self.directory.session_owner(account),
                refresh_token_hash=hash_token(refresh_token),
                device_info=device_info,
                ip_address=ip_address,
                created_at=now,
                expires_at=now + refresh_ttl(),
                is_active=True,
                last_used=now,
            )
        )
        self.db.flush()
        return IssuedTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_in=int(access_ttl().total_seconds()),
            refresh_expires_in=int(refresh_ttl().total_seconds()),
        )

    def find_active_session(self, subject: str, refresh_token: str) -> AuthSession | None:
        return (
            self.db.query(AuthSession)
            .filter(
                self.directory.session_clause(subject),
                AuthSession.refresh_token_hash == hash_token(refresh_token),
                AuthSession.is_active.is_(True),
                AuthSession.expires_at > self.now(),
            )
            .first()
        )

    def rotate_access(self, refresh_token: str | None) -> tuple[str, Any]:
        """Mint a fresh access token from the account's current row.

        The refresh token itself is not replaced; it stays valid until its
        fixed expiry or an explicit logout.
        """
        claims = decode_token(
            refresh_token, TOKEN_TYPE_REFRESH, kind=self.directory.kind, detail=INVALID_REFRESH_TOKEN
        )
        subject = str(claims["sub"])
        session_row = self.find_active_session(subject, str(refresh_token))
        if session_row is None:
            raise AuthenticationError(INVALID_REFRESH_TOKEN)
        account = self.directory.get(self.db, subject)
        if account is None:
            raise AuthenticationError(INVALID_REFRESH_TOKEN)
        session_row.last_used = self.now()
        self.db.flush()
        return create_access_token(self.directory, account), account

    def revoke(self, refresh_token: str) -> int:
        return int(
            self.db.query(AuthSession)
            .filter(AuthSession.refresh_token_hash == hash_token(refresh_token))
            .update({AuthSession.is_active: False}, synchronize_session=False)
            or 0
        )
