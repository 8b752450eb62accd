from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from nazdeeki.core.config import settings
from nazdeeki.models.otp_attempt import PROVIDER_CONSOLE, PROVIDER_TWOFACTOR

_LOG = logging.getLogger("nazdeeki.sms")

COUNTRY_CODE = "91"
_COUNTRY_PREFIX_RE = re.compile(r"^\+91")
_NON_DIGIT_RE = re.compile(r"\D")
INVALID_PHONE_ERROR = "Invalid phone number format. Must be 10 digits."


@dataclass
class OtpDeliveryResult:
    success: bool
    session_id: str | None = None
    error: str | None = None
    details: Any = None


@dataclass
class OtpVerificationResult:
    success: bool
    error: str | None = None
    details: Any = None


class OtpProvider(Protocol):
    name: str

    def send(self, phone_number: str, code: str | None = None) -> OtpDeliveryResult:
        ...

    def verify(self, session_id: str, code: str) -> OtpVerificationResult:
        ...


def normalize_phone(phone_number: str | None) -> str | None:
    """Return the 10-digit national number, or None when it cannot be one.

    "+91 98765-43210", "919876543210", "09876543210" and "9876543210" reduce to
    "9876543210"; this is also the identity key used for accounts and the
    OTP send limit.
    """
    raw = _COUNTRY_PREFIX_RE.sub("", str(phone_number or "").strip())
    digits = _NON_DIGIT_RE.sub("", raw)
    if len(digits) == 12 and digits.startswith(COUNTRY_CODE):
        digits = digits[len(COUNTRY_CODE):]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    if len(digits) != 10:
        return None
    return digits


class TwoFactorOtpProvider:
    """2Factor.in SMS OTP gateway.

    Both calls are plain GETs against ``{base}/{api_key}/SMS/...``; the
    gateway answers ``{"Status": "Success" | "Error", "Details": ...}`` where
    ``Details`` carries the session id on send. Every failure mode (bad
    number, timeout, HTTP error, non-success status, unparsable body) is
    returned as a result object so that the caller decides on fallback.
    """

    name = PROVIDER_TWOFACTOR

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = float(timeout_seconds)
        self._transport = transport

    def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}/{self.api_key}/{path}"
        with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = client.get(url, headers={"Content-Type": "application/json"})
            response.raise_for_status()
            return response.json()

    def _call(self, path: str, *, action: str) -> tuple[dict[str, Any] | None, str | None, Any]:
        try:
            data = self._get_json(path)
        except httpx.TimeoutException as exc:
            _LOG.warning("2factor %s timed out after %.1fs", action, self.timeout_seconds)
            return None, "SMS service timeout. Please try again.", str(exc)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            _LOG.warning("2factor %s failed with HTTP %s", action, status)
            return None, f"SMS service error: {status}", exc.response.text[:500]
        except (httpx.HTTPError, ValueError) as exc:
            _LOG.warning("2factor %s failed: %s", action, exc.__class__.__name__)
            return None, f"Failed to {action}", str(exc)
        if not isinstance(data, dict):
            return None, f"Failed to {action}", data
        return data, None, None

    def send(self, phone_number: str, code: str | None = None) -> OtpDeliveryResult:
        clean = normalize_phone(phone_number)
        if clean is None:
            return OtpDeliveryResult(success=False, error=INVALID_PHONE_ERROR)

        data, error, details = self._call(f"SMS/{clean}/{code or 'AUTOGEN'}", action="send SMS")
        if data is None:
            return OtpDeliveryResult(success=False, error=error, details=details)
        if str(data.get("Status") or "") != "Success":
            return OtpDeliveryResult(
                success=False,
                error=f"2Factor API Error: {data.get('Details') or 'Unknown error'}",
                details=data,
            )
        session_id = str(data.get("Details") or "").strip() or None
        _LOG.info("2factor OTP accepted for ******%s session=%s", clean[-4:], session_id)
        return OtpDeliveryResult(success=True, session_id=session_id, details=data)

    def verify(self, session_id: str, code: str) -> OtpVerificationResult:
        if not session_id or not code:
            return OtpVerificationResult(success=False, error="Invalid OTP")
        data, error, details = self._call(f"SMS/VERIFY/{session_id}/{code}", action="verify OTP")
        if data is None:
            return OtpVerificationResult(success=False, error=error, details=details)
        if str(data.get("Status") or "") != "Success":
            return OtpVerificationResult(success=False, error="Invalid OTP", details=data.get("Details"))
        return OtpVerificationResult(success=True, details=data.get("Details"))


class ConsoleOtpProvider:
    """Stand-in used when no gateway is configured: nothing is ever delivered."""

    name = PROVIDER_CONSOLE

    def send(self, phone_number: str, code: str | None = None) -> OtpDeliveryResult:
        if normalize_phone(phone_number) is None:
            return OtpDeliveryResult(success=False, error=INVALID_PHONE_ERROR)
        return OtpDeliveryResult(success=False, error="SMS gateway is not configured")

    def verify(self, session_id: str, code: str) -> OtpVerificationResult:
        return OtpVerificationResult(success=False, error="SMS gateway is not configured")


def announce_fallback_code(*, phone_number: str, code: str, is_signup: bool, reason: str | None) -> None:
    # Operator channel for codes that never reached a handset.
    _LOG.warning(
        "[OTP FALLBACK] phone=%s mode=%s code=%s reason=%s",
        phone_number,
        "SIGNUP" if is_signup else "LOGIN",
        code,
        reason or "-",
    )


def get_otp_provider() -> OtpProvider:
    provider = str(settings.SMS_PROVIDER or "").strip().lower()
    api_key = str(settings.TWOFACTOR_API_KEY or "").strip()
    if provider in {"2factor", "twofactor"} and api_key:
        return TwoFactorOtpProvider(
            api_key=api_key,
            base_url=settings.TWOFACTOR_BASE_URL,
            timeout_seconds=settings.SMS_TIMEOUT_SECONDS,
        )
    return ConsoleOtpProvider()
