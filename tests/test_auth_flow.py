import os
from datetime import timedelta
from unittest.mock import patch

from jose import jwt
from sqlalchemy.exc import OperationalError

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from nazdeeki.core.config import settings
from nazdeeki.core.security import hash_otp_code
from nazdeeki.models.auth_log import AuthLog
from nazdeeki.models.auth_session import AuthSession
from nazdeeki.models.common import utcnow
from nazdeeki.models.otp_attempt import OtpAttempt
from nazdeeki.models.seller import Seller
from nazdeeki.services import otp_store
from tests.base import NazdeekiApiTestCase

PHONE = "+919876543210"


class SendOtpTests(NazdeekiApiTestCase):
    def test_send_otp_for_unknown_phone_is_signup(self):
        response = self.send_otp(PHONE)
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertTrue(body["isSignup"])
        self.assertEqual(body["expiresIn"], 300)
        self.assertEqual(body["smsProvider"], "2factor")
        self.assertEqual(body["smsStatus"], "sent")

        with self.SessionLocal() as db:
            attempt = db.query(OtpAttempt).one()
            self.assertEqual(attempt.phone_number, PHONE)
            self.assertEqual(attempt.attempts, 0)
            self.assertEqual(attempt.session_id, "session-1")
            self.assertNotEqual(attempt.otp_hash, self.provider.last_code)
            self.assertIsNone(attempt.verified_at)

    def test_invalid_phone_is_rejected_and_audited(self):
        response = self.send_otp("12345")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Valid phone number required")
        self.assertEqual(self.provider.sent, [])
        with self.SessionLocal() as db:
            self.assertEqual(db.query(OtpAttempt).count(), 0)
            log = db.query(AuthLog).one()
            self.assertEqual(log.event_type, "otp_request")
            self.assertFalse(log.success)

    def test_sixth_send_within_an_hour_is_rate_limited(self):
        for _ in range(5):
            self.assertEqual(self.send_otp(PHONE).status_code, 200)
        response = self.send_otp(PHONE)
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()["detail"], "Too many OTP requests. Try again later.")
        self.assertEqual(len(self.provider.sent), 5)
        with self.SessionLocal() as db:
            self.assertEqual(db.query(OtpAttempt).filter(OtpAttempt.phone_number == PHONE).count(), 5)

    def test_sends_older_than_an_hour_do_not_count(self):
        old = utcnow() - timedelta(hours=2)
        with self.SessionLocal() as db:
            for _ in range(5):
                db.add(
                    OtpAttempt(
                        phone_number=PHONE,
                        otp_hash=hash_otp_code("1234"),
                        created_at=old,
                        expires_at=old + timedelta(minutes=5),
                    )
                )
            db.commit()
        self.assertEqual(self.send_otp(PHONE).status_code, 200)

    def test_suspended_seller_cannot_request_code(self):
        self.signup(PHONE)
        with self.SessionLocal() as db:
            seller = db.query(Seller).filter(Seller.rest_phone == PHONE).one()
            seller.account_status = "suspended"
            db.commit()
        sent_before = len(self.provider.sent)
        response = self.send_otp(PHONE)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"], "Account is suspended")
        self.assertEqual(len(self.provider.sent), sent_before)

    def test_gateway_failure_falls_back_to_logged_code(self):
        self.provider.deliver = False
        with self.assertLogs("nazdeeki.sms", level="WARNING") as captured:
            response = self.send_otp(PHONE)
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["smsProvider"], "console")
        self.assertEqual(body["smsStatus"], "fallback")
        self.assertTrue(any(self.provider.last_code in line for line in captured.output))
        with self.SessionLocal() as db:
            attempt = db.query(OtpAttempt).one()
            self.assertIsNone(attempt.session_id)
            self.assertEqual(attempt.sms_provider, "console")


class VerifyOtpTests(NazdeekiApiTestCase):
    def test_signup_creates_seller_session_and_audit_trail(self):
        body = self.signup(PHONE, owner="Asha Rao", restaurant="Rao's Kitchen")
        self.assertTrue(body["isSignup"])
        self.assertEqual(body["tokens"]["expiresIn"], 900)
        self.assertEqual(body["tokens"]["refreshExpiresIn"], 7 * 24 * 3600)
        user = body["user"]
        self.assertRegex(user["id"], r"^SELLER_\d+_[0-9a-z]{9}$")
        self.assertEqual(user["phone"], PHONE)
        self.assertEqual(user["name"], "Asha Rao")
        self.assertEqual(user["restaurant"], "Rao's Kitchen")
        self.assertIsNotNone(user["addressId"])
        self.assertTrue(user["menuId"].startswith("MENU_"))

        claims = jwt.decode(body["tokens"]["accessToken"], settings.JWT_SECRET, algorithms=["HS256"])
        self.assertEqual(claims["type"], "access")
        self.assertEqual(claims["sub"], user["id"])
        self.assertEqual(claims["restaurant"], "Rao's Kitchen")

        with self.SessionLocal() as db:
            seller = db.get(Seller, user["id"])
            self.assertEqual(seller.account_status, "active")
            self.assertTrue(seller.phone_verified)
            session_row = db.query(AuthSession).one()
            self.assertTrue(session_row.is_active)
            self.assertNotEqual(session_row.refresh_token_hash, body["tokens"]["refreshToken"])
            attempt = db.query(OtpAttempt).one()
            self.assertEqual(attempt.sms_status, "verified_2factor")
            events = {row.event_type for row in db.query(AuthLog).all()}
            self.assertTrue({"otp_sent", "signup"}.issubset(events))

    def test_existing_seller_logs_in(self):
        first = self.signup(PHONE)
        sent = self.send_otp(PHONE)
        self.assertFalse(sent.json()["isSignup"])
        response = self.verify_otp(PHONE, self.provider.last_code)
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertFalse(body["isSignup"])
        self.assertEqual(body["user"]["id"], first["user"]["id"])
        with self.SessionLocal() as db:
            self.assertEqual(db.query(Seller).count(), 1)
            self.assertEqual(db.query(AuthSession).count(), 2)
            self.assertEqual(db.query(AuthLog).filter(AuthLog.event_type == "login").count(), 1)

    def test_code_cannot_be_used_twice(self):
        self.signup(PHONE)
        response = self.verify_otp(
            PHONE, self.provider.last_code, {"ownerName": "Asha Rao", "restaurantName": "Rao's Kitchen"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "No valid OTP found or OTP expired")
        with self.SessionLocal() as db:
            self.assertEqual(db.query(AuthSession).count(), 1)

    def test_expired_attempt_is_never_accepted(self):
        past = utcnow() - timedelta(minutes=10)
        with self.SessionLocal() as db:
            db.add(
                OtpAttempt(
                    phone_number=PHONE,
                    otp_hash=hash_otp_code("4321"),
                    created_at=past,
                    expires_at=past + timedelta(minutes=5),
                    is_signup=True,
                )
            )
            db.commit()
        response = self.verify_otp(PHONE, "4321", {"ownerName": "A", "restaurantName": "B"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "No valid OTP found or OTP expired")

    def test_newest_code_shadows_older_ones(self):
        self.provider.deliver = False
        with patch("nazdeeki.services.auth_flow.generate_otp_code", side_effect=["1111", "2222"]):
            self.send_otp(PHONE)
            self.send_otp(PHONE)
        signup = {"ownerName": "Asha Rao", "restaurantName": "Rao's Kitchen"}
        stale = self.verify_otp(PHONE, "1111", signup)
        self.assertEqual(stale.status_code, 400)
        self.assertEqual(stale.json()["detail"], "Invalid OTP")
        fresh = self.verify_otp(PHONE, "2222", signup)
        self.assertEqual(fresh.status_code, 200, fresh.text)

    def test_three_failures_lock_the_attempt(self):
        self.send_otp(PHONE)
        code = self.provider.last_code
        signup = {"ownerName": "Asha Rao", "restaurantName": "Rao's Kitchen"}
        for _ in range(3):
            response = self.verify_otp(PHONE, "0000", signup)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["detail"], "Invalid OTP")
        locked = self.verify_otp(PHONE, code, signup)
        self.assertEqual(locked.status_code, 400)
        self.assertEqual(locked.json()["detail"], "Too many failed attempts")
        with self.SessionLocal() as db:
            attempt = db.query(OtpAttempt).one()
            self.assertEqual(attempt.attempts, 3)
            self.assertIsNone(attempt.verified_at)
            self.assertEqual(db.query(Seller).count(), 0)

    def test_signup_without_profile_keeps_code_usable(self):
        self.send_otp(PHONE)
        code = self.provider.last_code
        missing = self.verify_otp(PHONE, code, {"ownerName": "Asha Rao"})
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json()["detail"], "Owner name and restaurant name required for signup")
        with self.SessionLocal() as db:
            self.assertEqual(db.query(OtpAttempt).one().attempts, 0)
        retry = self.verify_otp(PHONE, code, {"ownerName": "Asha Rao", "restaurantName": "Rao's Kitchen"})
        self.assertEqual(retry.status_code, 200, retry.text)

    def test_missing_code_is_rejected(self):
        response = self.verify_otp(PHONE, None)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Phone number and OTP required")

    def test_fallback_code_is_verified_locally(self):
        self.provider.deliver = False
        self.send_otp(PHONE)
        self.signup_verify_last()
        self.assertEqual(self.provider.verify_calls, [])
        with self.SessionLocal() as db:
            self.assertEqual(db.query(OtpAttempt).one().sms_status, "verified_local")

    def test_gateway_verify_outage_falls_back_to_local_hash(self):
        self.provider.verify_available = False
        self.send_otp(PHONE)
        self.signup_verify_last()
        self.assertEqual(len(self.provider.verify_calls), 1)
        with self.SessionLocal() as db:
            self.assertEqual(db.query(OtpAttempt).one().sms_status, "verified_local")

    def signup_verify_last(self):
        response = self.verify_otp(
            PHONE, self.provider.last_code, {"ownerName": "Asha Rao", "restaurantName": "Rao's Kitchen"}
        )
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()


class PhoneSpellingTests(NazdeekiApiTestCase):
    def test_bare_national_number_reaches_the_same_seller(self):
        first = self.signup("+919876543210")
        sent = self.send_otp("9876543210")
        self.assertEqual(sent.status_code, 200, sent.text)
        self.assertFalse(sent.json()["isSignup"])

        response = self.verify_otp("9876543210", self.provider.last_code)
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertFalse(body["isSignup"])
        self.assertEqual(body["user"]["id"], first["user"]["id"])
        with self.SessionLocal() as db:
            self.assertEqual(db.query(Seller).count(), 1)
            self.assertEqual(db.query(Seller).one().rest_phone, PHONE)

    def test_send_limit_is_shared_across_spellings(self):
        spellings = ["+919876543210", "9876543210", "919876543210", "+91 98765-43210", "09876543210"]
        for spelling in spellings:
            self.assertEqual(self.send_otp(spelling).status_code, 200, spelling)
        response = self.send_otp("9876543210")
        self.assertEqual(response.status_code, 429)
        self.assertEqual(len(self.provider.sent), 5)
        with self.SessionLocal() as db:
            phones = {row.phone_number for row in db.query(OtpAttempt).all()}
            self.assertEqual(phones, {PHONE})

    def test_number_that_is_not_ten_digits_is_rejected(self):
        for raw in ("98765432", "+1 415 555 0100", "abcdefghij"):
            response = self.send_otp(raw)
            self.assertEqual(response.status_code, 400, raw)
            self.assertEqual(response.json()["detail"], "Valid phone number required")
        self.assertEqual(self.provider.sent, [])

    def test_numeric_json_fields_are_accepted(self):
        sent = self.client.post("/auth/send-otp", json={"phoneNumber": 9876543210})
        self.assertEqual(sent.status_code, 200, sent.text)
        response = self.client.post(
            "/auth/verify-otp",
            json={
                "phoneNumber": 9876543210,
                "otp": int(self.provider.last_code),
                "signupData": {"ownerName": "Asha Rao", "restaurantName": "Rao's Kitchen"},
            },
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["user"]["phone"], PHONE)


class ConcurrentClaimTests(NazdeekiApiTestCase):
    def test_attempt_claimed_elsewhere_does_not_issue_a_second_session(self):
        self.send_otp(PHONE)
        code = self.provider.last_code

        def claim_elsewhere(session_id, submitted):
            with self.SessionLocal() as other:
                attempt = other.query(OtpAttempt).one()
                attempt.verified_at = utcnow()
                attempt.sms_status = "verified_2factor"
                other.commit()

        self.provider.before_verify = claim_elsewhere
        response = self.verify_otp(PHONE, code, {"ownerName": "Asha Rao", "restaurantName": "Rao's Kitchen"})
        self.assertEqual(response.status_code, 400, response.text)
        self.assertEqual(response.json()["detail"], "No valid OTP found or OTP expired")
        with self.SessionLocal() as db:
            self.assertEqual(db.query(AuthSession).count(), 0)
            self.assertEqual(db.query(Seller).count(), 0)
            failure = db.query(AuthLog).filter(AuthLog.error_message == "OTP already used").one()
            self.assertFalse(failure.success)

    def test_mark_verified_refuses_a_spent_or_exhausted_attempt(self):
        now = utcnow()
        with self.SessionLocal() as db:
            spent = OtpAttempt(
                phone_number=PHONE, otp_hash=hash_otp_code("1234"), created_at=now,
                expires_at=now + timedelta(minutes=5), verified_at=now,
            )
            exhausted = OtpAttempt(
                phone_number=PHONE, otp_hash=hash_otp_code("1234"), created_at=now,
                expires_at=now + timedelta(minutes=5), attempts=3,
            )
            fresh = OtpAttempt(
                phone_number=PHONE, otp_hash=hash_otp_code("1234"), created_at=now,
                expires_at=now + timedelta(minutes=5),
            )
            db.add_all([spent, exhausted, fresh])
            db.commit()

            self.assertFalse(otp_store.mark_verified(db, spent, method="local", now=now, max_failed=3))
            self.assertFalse(otp_store.mark_verified(db, exhausted, method="local", now=now, max_failed=3))
            self.assertTrue(otp_store.mark_verified(db, fresh, method="local", now=now, max_failed=3))
            self.assertFalse(otp_store.mark_verified(db, fresh, method="local", now=now, max_failed=3))
            db.commit()
            db.refresh(fresh)
            self.assertEqual(fresh.sms_status, "verified_local")
            self.assertIsNotNone(fresh.verified_at)


class DatastoreFailureTests(NazdeekiApiTestCase):
    @staticmethod
    def _locked():
        return OperationalError("SELECT count(otp_attempts.id) FROM otp_attempts", {}, Exception("database is locked"))

    def test_send_failure_returns_generic_error(self):
        with patch("nazdeeki.services.otp_store.count_recent_attempts", side_effect=self._locked()):
            with self.assertLogs("nazdeeki.auth", level="ERROR"):
                response = self.send_otp(PHONE)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "Failed to send OTP"})
        self.assertNotIn("SELECT", response.text)
        self.assertEqual(self.provider.sent, [])
        with self.SessionLocal() as db:
            self.assertEqual(db.query(OtpAttempt).count(), 0)
            log = db.query(AuthLog).one()
            self.assertEqual(log.event_type, "otp_request")
            self.assertFalse(log.success)

    def test_verify_failure_returns_generic_error(self):
        self.send_otp(PHONE)
        with patch("nazdeeki.services.otp_store.most_recent_unexpired", side_effect=self._locked()):
            with self.assertLogs("nazdeeki.auth", level="ERROR"):
                response = self.verify_otp(PHONE, self.provider.last_code, {"ownerName": "A", "restaurantName": "B"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "Failed to verify OTP"})
        self.assertNotIn("database is locked", response.text)
        with self.SessionLocal() as db:
            self.assertEqual(db.query(AuthSession).count(), 0)
            self.assertIsNone(db.query(OtpAttempt).one().verified_at)

    def test_unexpected_database_error_is_masked(self):
        body = self.signup(PHONE)
        with patch("nazdeeki.services.accounts.get_by_id", side_effect=self._locked()):
            response = self.client.get("/auth/me", headers=self.bearer(body["tokens"]["accessToken"]))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "Internal server error"})
        self.assertNotIn("SELECT", response.text)
