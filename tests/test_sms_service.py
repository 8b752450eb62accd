import os
import unittest

import httpx

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from nazdeeki.core.config import settings
from nazdeeki.services.sms_service import (
    ConsoleOtpProvider,
    TwoFactorOtpProvider,
    get_otp_provider,
    normalize_phone,
)

BASE_URL = "https://2factor.test/API/V1"


class TwoFactorProviderTests(unittest.TestCase):
    def setUp(self):
        self.requests: list[httpx.Request] = []

    def provider_for(self, handler):
        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        return TwoFactorOtpProvider(
            api_key="key-123",
            base_url=BASE_URL,
            timeout_seconds=2,
            transport=httpx.MockTransport(recording_handler),
        )

    def test_send_returns_gateway_session_id(self):
        provider = self.provider_for(lambda request: httpx.Response(200, json={"Status": "Success", "Details": "abc-session"}))
        result = provider.send("+91 98765-43210", "4821")
        self.assertTrue(result.success)
        self.assertEqual(result.session_id, "abc-session")
        self.assertEqual(len(self.requests), 1)
        self.assertEqual(self.requests[0].url.path, "/API/V1/key-123/SMS/9876543210/4821")

    def test_send_without_code_asks_gateway_to_generate(self):
        provider = self.provider_for(lambda request: httpx.Response(200, json={"Status": "Success", "Details": "s1"}))
        provider.send("9876543210")
        self.assertTrue(self.requests[0].url.path.endswith("/SMS/9876543210/AUTOGEN"))

    def test_invalid_phone_makes_no_call(self):
        provider = self.provider_for(lambda request: httpx.Response(200, json={"Status": "Success"}))
        result = provider.send("+91 12345", "1111")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Invalid phone number format. Must be 10 digits.")
        self.assertEqual(self.requests, [])

    def test_error_status_is_reported(self):
        provider = self.provider_for(lambda request: httpx.Response(200, json={"Status": "Error", "Details": "Invalid API key"}))
        result = provider.send("9876543210", "1111")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "2Factor API Error: Invalid API key")
        self.assertIsNone(result.session_id)

    def test_http_error_is_reported(self):
        provider = self.provider_for(lambda request: httpx.Response(500, text="upstream down"))
        result = provider.send("9876543210", "1111")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "SMS service error: 500")

    def test_timeout_is_reported(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result = self.provider_for(handler).send("9876543210", "1111")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "SMS service timeout. Please try again.")

    def test_unparsable_body_is_reported(self):
        provider = self.provider_for(lambda request: httpx.Response(200, text="<html>"))
        result = provider.send("9876543210", "1111")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Failed to send SMS")

    def test_verify_matches_gateway_answer(self):
        def handler(request):
            matched = request.url.path.endswith("/SMS/VERIFY/abc-session/4821")
            return httpx.Response(200, json={"Status": "Success" if matched else "Error", "Details": "OTP Matched" if matched else "OTP Mismatch"})

        provider = self.provider_for(handler)
        self.assertTrue(provider.verify("abc-session", "4821").success)
        mismatch = provider.verify("abc-session", "0000")
        self.assertFalse(mismatch.success)
        self.assertEqual(mismatch.error, "Invalid OTP")

    def test_verify_without_session_makes_no_call(self):
        provider = self.provider_for(lambda request: httpx.Response(200, json={"Status": "Success"}))
        self.assertFalse(provider.verify("", "4821").success)
        self.assertEqual(self.requests, [])


class ProviderSelectionTests(unittest.TestCase):
    def setUp(self):
        self._settings_backup = {
            "SMS_PROVIDER": settings.SMS_PROVIDER,
            "TWOFACTOR_API_KEY": settings.TWOFACTOR_API_KEY,
        }

    def tearDown(self):
        for key, value in self._settings_backup.items():
            setattr(settings, key, value)

    def test_missing_api_key_selects_console(self):
        settings.SMS_PROVIDER = "2factor"
        settings.TWOFACTOR_API_KEY = ""
        provider = get_otp_provider()
        self.assertIsInstance(provider, ConsoleOtpProvider)
        self.assertFalse(provider.send("9876543210", "1234").success)

    def test_configured_key_selects_two_factor(self):
        settings.SMS_PROVIDER = "2factor"
        settings.TWOFACTOR_API_KEY = "key-123"
        self.assertIsInstance(get_otp_provider(), TwoFactorOtpProvider)

    def test_console_setting_wins_over_key(self):
        settings.SMS_PROVIDER = "console"
        settings.TWOFACTOR_API_KEY = "key-123"
        self.assertIsInstance(get_otp_provider(), ConsoleOtpProvider)

    def test_normalize_phone(self):
        self.assertEqual(normalize_phone("+919876543210"), "9876543210")
        self.assertEqual(normalize_phone("98765 43210"), "9876543210")
        self.assertEqual(normalize_phone("919876543210"), "9876543210")
        self.assertEqual(normalize_phone("09876543210"), "9876543210")
        self.assertEqual(normalize_phone(9876543210), "9876543210")
        self.assertIsNone(normalize_phone("98765432"))
        self.assertIsNone(normalize_phone("+1 555 0100"))
        self.assertIsNone(normalize_phone(None))
