"""Phone/OTP sign-in state machine.

Per phone number the flow moves ``NoAttempt -> OtpSent -> Verified ->
SessionIssued``; failed verifications stay in ``OtpSent`` and bump the
attempt's counter until it is exhausted. Attempts are never deleted here:
a newer send simply shadows older rows, and expiry is a timestamp check.

``AuthFlow`` is built per request around an injected SQLAlchemy session, an
OTP provider and an account directory (sellers by default, diners for the
``/auth/user`` routes). Every public method owns its commit; every rejection
that matters for forensics is written to ``auth_logs`` before the error
leaves.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from nazdeeki.core.config import settings
from nazdeeki.core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    OtpError,
    PersistenceError,
    RateLimitError,
    ValidationError,
)
from nazdeeki.core.security import hash_otp_code, verify_otp_code
from nazdeeki.models.common import utcnow
from nazdeeki.models.otp_attempt import (
    PROVIDER_CONSOLE,
    PROVIDER_TWOFACTOR,
    STATUS_FALLBACK,
    STATUS_SENT,
    OtpAttempt,
)
from nazdeeki.services import accounts, otp_store
from nazdeeki.services.auth_audit import (
    EVENT_LOGIN,
    EVENT_LOGOUT,
    EVENT_OTP_REQUEST,
    EVENT_OTP_SENT,
    EVENT_OTP_VERIFY,
    EVENT_SIGNUP,
    log_auth_event,
)
from nazdeeki.services.sessions import (
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    SessionManager,
    access_ttl,
    decode_token,
)
from nazdeeki.services.sms_service import OtpProvider, announce_fallback_code

_LOG = logging.getLogger("nazdeeki.auth")

VERIFY_METHOD_TWOFACTOR = "2factor"
VERIFY_METHOD_LOCAL = "local"
RATE_LIMIT_WINDOW = timedelta(hours=1)
BLOCKED_STATUSES = {
    accounts.STATUS_SUSPENDED: "Account is suspended",
    accounts.STATUS_DELETED: "Account is deleted",
}

NO_VALID_OTP = "No valid OTP found or OTP expired"
TOO_MANY_ATTEMPTS = "Too many failed attempts"
INVALID_OTP = "Invalid OTP"


@dataclass
class ClientContext:
    ip: str | None = None
    user_agent: str | None = None


def generate_otp_code() -> str:
    return str(1000 + secrets.randbelow(9000))


class AuthFlow:
    def __init__(
        self,
        db: Session,
        provider: OtpProvider,
        *,
        directory: Any = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.provider = provider
        self.directory = directory if directory is not None else accounts.SellerDirectory()
        self.now = now
        self.sessions = SessionManager(db, self.directory, now=now)

    def _audit(
        self,
        event_type: str,
        client: ClientContext,
        *,
        phone_number: str | None = None,
        subject: str | None = None,
        success: bool = True,
        error: str | None = None,
        persist_now: bool = False,
    ) -> None:
        log_auth_event(
            self.db,
            event_type=f"{self.directory.event_prefix}{event_type}",
            phone_number=phone_number,
            seller_id=self.directory.audit_id(subject) if subject else None,
            ip_address=client.ip,
            user_agent=client.user_agent,
            success=success,
            error=error,
            persist_now=persist_now,
        )

    def _persistence_failure(
        self, exc: SQLAlchemyError, *, event_type: str, client: ClientContext, phone_number: str | None, detail: str
    ) -> PersistenceError:
        _LOG.error("%s failed for phone=%s", event_type, phone_number or "-", exc_info=exc)
        try:
            self.db.rollback()
        except SQLAlchemyError:
            _LOG.debug("rollback after persistence failure failed", exc_info=True)
        self._audit(event_type, client, phone_number=phone_number, success=False, error=str(exc), persist_now=True)
        return PersistenceError(detail)

    # -- send-OTP ---------------------------------------------------------

    def send_otp(self, phone_number: Any, client: ClientContext) -> dict[str, Any]:
        try:
            phone = accounts.canonical_phone(phone_number)
        except ValidationError:
            raw = str(phone_number or "").strip()[:20] or None
            self._audit(EVENT_OTP_REQUEST, client, phone_number=raw, success=False, error="Invalid phone number", persist_now=True)
            raise
        try:
            return self._send_otp(phone, client)
        except SQLAlchemyError as exc:
            raise self._persistence_failure(
                exc, event_type=EVENT_OTP_REQUEST, client=client, phone_number=phone, detail="Failed to send OTP"
            ) from exc

    def _send_otp(self, phone: str, client: ClientContext) -> dict[str, Any]:
        now = self.now()
        account = self.directory.find_by_phone(self.db, phone)
        is_signup = account is None
        subject = self.directory.subject(account) if account is not None else None

        if account is not None and account.account_status in BLOCKED_STATUSES:
            message = BLOCKED_STATUSES[account.account_status]
            self._audit(EVENT_OTP_REQUEST, client, phone_number=phone, subject=subject, success=False, error=message, persist_now=True)
            raise ConflictError(message)

        recent = otp_store.count_recent_attempts(self.db, phone, since=now - RATE_LIMIT_WINDOW)
        if recent >= settings.OTP_SEND_LIMIT_PER_HOUR:
            self._audit(
                EVENT_OTP_REQUEST, client, phone_number=phone, subject=subject, success=False, error="Rate limit exceeded", persist_now=True
            )
            raise RateLimitError()

        code = generate_otp_code()
        expires_at = now + timedelta(minutes=settings.OTP_TTL_MINUTES)
        delivery = self.provider.send(phone, code)
        if delivery.success:
            sms_provider, sms_status = PROVIDER_TWOFACTOR, STATUS_SENT
        else:
            sms_provider, sms_status = PROVIDER_CONSOLE, STATUS_FALLBACK
            announce_fallback_code(phone_number=phone, code=code, is_signup=is_signup, reason=delivery.error)

        otp_store.record_attempt(
            self.db,
            phone_number=phone,
            otp_hash=hash_otp_code(code),
            expires_at=expires_at,
            ip_address=client.ip,
            is_signup=is_signup,
            account_kind=self.directory.kind,
            session_id=delivery.session_id if delivery.success else None,
            sms_provider=sms_provider,
            sms_status=sms_status,
            created_at=now,
        )
        self._audit(
            EVENT_OTP_SENT,
            client,
            phone_number=phone,
            subject=subject,
            success=delivery.success,
            error=None if delivery.success else delivery.error,
        )
        self.db.commit()
        _LOG.info(
            "OTP issued phone=%s kind=%s signup=%s provider=%s status=%s",
            phone,
            self.directory.kind,
            is_signup,
            sms_provider,
            sms_status,
        )

        return {
            "success": True,
            "message": "OTP sent successfully via SMS" if delivery.success else "OTP generated (SMS gateway unavailable)",
            "isSignup": is_signup,
            "expiresIn": settings.OTP_TTL_MINUTES * 60,
            "smsProvider": sms_provider,
            "smsStatus": sms_status,
        }

    # -- verify-OTP -------------------------------------------------------

    def _verify_with_provider(self, attempt: OtpAttempt, code: str) -> bool:
        result = self.provider.verify(str(attempt.session_id), code)
        if not result.success:
            _LOG.info("provider verification failed for attempt=%s: %s", attempt.id, result.error)
        return result.success

    def _verify_locally(self, attempt: OtpAttempt, code: str) -> bool:
        return verify_otp_code(code, attempt.otp_hash)

    def _verification_strategies(self, attempt: OtpAttempt) -> list[tuple[str, Callable[[OtpAttempt, str], bool]]]:
        strategies: list[tuple[str, Callable[[OtpAttempt, str], bool]]] = []
        if attempt.session_id and attempt.sms_provider == PROVIDER_TWOFACTOR:
            strategies.append((VERIFY_METHOD_TWOFACTOR, self._verify_with_provider))
        strategies.append((VERIFY_METHOD_LOCAL, self._verify_locally))
        return strategies

    def _verify_code(self, attempt: OtpAttempt, code: str) -> str | None:
        for method, check in self._verification_strategies(attempt):
            if check(attempt, code):
                return method
        return None

    def verify_otp(self, phone_number: Any, code: Any, signup_data: Any, client: ClientContext) -> dict[str, Any]:
        code = str(code or "").strip()
        if not str(phone_number or "").strip() or not code:
            raise ValidationError("Phone number and OTP required")
        phone = accounts.canonical_phone(phone_number)
        try:
            return self._verify_otp(phone, code, signup_data, client)
        except SQLAlchemyError as exc:
            raise self._persistence_failure(
                exc, event_type=EVENT_OTP_VERIFY, client=client, phone_number=phone, detail="Failed to verify OTP"
            ) from exc

    def _reject_spent(self, phone: str, client: ClientContext, reason: str) -> OtpError:
        self._audit(EVENT_OTP_VERIFY, client, phone_number=phone, success=False, error=reason, persist_now=True)
        return OtpError(NO_VALID_OTP)

    def _verify_otp(self, phone: str, code: str, signup_data: Any, client: ClientContext) -> dict[str, Any]:
        now = self.now()
        attempt = otp_store.most_recent_unexpired(self.db, phone, now=now, account_kind=self.directory.kind)
        # A verified attempt is spent; it must not authenticate a second time.
        if attempt is None or attempt.verified_at is not None:
            raise self._reject_spent(phone, client, "No valid OTP found")

        if int(attempt.attempts or 0) >= settings.OTP_MAX_FAILED_ATTEMPTS:
            self._audit(EVENT_OTP_VERIFY, client, phone_number=phone, success=False, error="Too many attempts", persist_now=True)
            raise OtpError(TOO_MANY_ATTEMPTS)

        is_signup = bool(attempt.is_signup)
        profile = self.directory.signup_profile(signup_data) if is_signup else None

        method = self._verify_code(attempt, code)
        if method is None:
            otp_store.increment_failure(self.db, attempt)
            self._audit(EVENT_OTP_VERIFY, client, phone_number=phone, success=False, error=INVALID_OTP, persist_now=True)
            raise OtpError(INVALID_OTP)

        claimed = otp_store.mark_verified(
            self.db, attempt, method=method, now=now, max_failed=settings.OTP_MAX_FAILED_ATTEMPTS
        )
        if not claimed:
            self.db.rollback()
            _LOG.warning("OTP attempt=%s was claimed by a concurrent request", attempt.id)
            raise self._reject_spent(phone, client, "OTP already used")

        if is_signup:
            try:
                account = self.directory.create(self.db, phone_number=phone, profile=profile, now=now)
            except IntegrityError as exc:
                self.db.rollback()
                _LOG.warning("signup collided with an existing %s phone=%s", self.directory.kind, phone)
                raise ValidationError("An account already exists for this phone number") from exc
            event_type = EVENT_SIGNUP
        else:
            account = self.directory.find_by_phone(self.db, phone)
            if account is None:
                self._audit(
                    EVENT_OTP_VERIFY, client, phone_number=phone, success=False, error=self.directory.not_found_detail, persist_now=True
                )
                raise NotFoundError(self.directory.not_found_detail)
            self.directory.record_login(account, now=now)
            event_type = EVENT_LOGIN

        subject = self.directory.subject(account)
        tokens = self.sessions.issue(account, device_info=client.user_agent, ip_address=client.ip)
        self._audit(event_type, client, phone_number=phone, subject=subject)
        self.db.commit()
        _LOG.info("%s completed %s=%s via=%s", event_type, self.directory.kind, subject, method)

        return {
            "success": True,
            "message": "Signup successful" if is_signup else "Login successful",
            "isSignup": is_signup,
            "tokens": {
                "accessToken": tokens.access_token,
                "refreshToken": tokens.refresh_token,
                "expiresIn": tokens.access_expires_in,
                "refreshExpiresIn": tokens.refresh_expires_in,
            },
            "user": self.directory.projection(account),
        }

    # -- refresh / logout -------------------------------------------------

    def refresh(self, refresh_token: str | None) -> dict[str, Any]:
        if not str(refresh_token or "").strip():
            raise ValidationError("Refresh token required")
        try:
            access_token, account = self.sessions.rotate_access(refresh_token)
            self.db.commit()
        except SQLAlchemyError as exc:
            _LOG.error("token refresh failed", exc_info=exc)
            self.db.rollback()
            raise PersistenceError("Failed to refresh token") from exc
        return {
            "success": True,
            "tokens": {
                "accessToken": access_token,
                "expiresIn": int(access_ttl().total_seconds()),
            },
            "user": self.directory.projection(account),
        }

    def _identify(self, token: str | None, token_type: str) -> str | None:
        if not token:
            return None
        try:
            return str(decode_token(token, token_type, kind=self.directory.kind)["sub"])
        except AuthenticationError:
            return None

    def logout(
        self, *, refresh_token: str | None, access_token: str | None, client: ClientContext
    ) -> dict[str, Any]:
        subject = self._identify(access_token, TOKEN_TYPE_ACCESS) or self._identify(refresh_token, TOKEN_TYPE_REFRESH)
        try:
            if refresh_token:
                self.sessions.revoke(refresh_token)
            if subject:
                self._audit(EVENT_LOGOUT, client, subject=subject)
            self.db.commit()
        except SQLAlchemyError as exc:
            _LOG.error("logout failed %s=%s", self.directory.kind, subject or "-", exc_info=exc)
            self.db.rollback()
            raise PersistenceError("Logout failed") from exc
        return {"success": True, "message": "Logged out successfully"}

    # -- profile ----------------------------------------------------------

    def load_account(self, claims: dict[str, Any]) -> Any:
        account = self.directory.get(self.db, claims.get("sub"))
        if account is None:
            raise NotFoundError("User not found")
        return account

    def me(self, claims: dict[str, Any]) -> dict[str, Any]:
        return {"success": True, "user": self.directory.projection(self.load_account(claims), detailed=True)}

    def update_profile(self, claims: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
        account = self.load_account(claims)
        self.directory.update_profile(self.db, account, changes)
        self.db.commit()
        self.db.refresh(account)
        return {
            "success": True,
            "message": "Profile updated successfully",
            "user": self.directory.projection(account, detailed=True),
        }
