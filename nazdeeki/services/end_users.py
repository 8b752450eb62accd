"""Diner (end-user) accounts for the ``/auth/user`` sign-in routes.

Same OTP and session machinery as sellers; the differences are the key
(integer ``user_id``), a name-only signup that falls back to ``User <last4>``
and a wider set of editable profile fields.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import false
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from nazdeeki.models.auth_session import AuthSession
from nazdeeki.models.end_user import EndUser
from nazdeeki.models.otp_attempt import ACCOUNT_KIND_USER
from nazdeeki.services.accounts import STATUS_ACTIVE, apply_profile_changes, iso

USER_PROFILE_FIELDS = ("name", "email", "gender", "dob", "preference")
REQUIRED_USER_FIELDS = ("name",)
AUDIT_PREFIX = "USER_"


def find_by_phone(db: Session, phone_number: str) -> EndUser | None:
    return db.query(EndUser).filter(EndUser.phone == phone_number).first()


def get_by_id(db: Session, user_id: Any) -> EndUser | None:
    if not str(user_id or "").isdigit():
        return None
    return db.get(EndUser, int(user_id))


def default_name(phone_number: str) -> str:
    return f"User {phone_number[-4:]}"


def create_user(db: Session, *, phone_number: str, name: str | None, now: datetime) -> EndUser:
    user = EndUser(
        phone=phone_number,
        name=name or default_name(phone_number),
        phone_verified=True,
        account_status=STATUS_ACTIVE,
        last_login=now,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.flush()
    return user


def user_projection(user: EndUser, *, detailed: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": user.user_id,
        "name": user.name,
        "phone": user.phone,
        "email": user.email,
        "gender": user.gender,
        "dob": user.dob.isoformat() if user.dob is not None else None,
        "preference": user.preference,
    }
    if detailed:
        payload.update(
            {
                "accountStatus": user.account_status,
                "phoneVerified": bool(user.phone_verified),
                "createdAt": iso(user.created_at),
                "lastLogin": iso(user.last_login),
            }
        )
    return payload


class EndUserDirectory:
    kind = ACCOUNT_KIND_USER
    event_prefix = "user_"
    not_found_detail = "User not found"

    def find_by_phone(self, db: Session, phone_number: str) -> EndUser | None:
        return find_by_phone(db, phone_number)

    def get(self, db: Session, subject: str | None) -> EndUser | None:
        return get_by_id(db, subject)

    def subject(self, user: EndUser) -> str:
        return str(user.user_id)

    def audit_id(self, subject: str) -> str:
        return f"{AUDIT_PREFIX}{subject}"

    def signup_profile(self, signup_data: Any) -> str | None:
        name = str(getattr(signup_data, "name", None) or "").strip()
        return name or None

    def create(self, db: Session, *, phone_number: str, profile: str | None, now: datetime) -> EndUser:
        return create_user(db, phone_number=phone_number, name=profile, now=now)

    def record_login(self, user: EndUser, *, now: datetime) -> None:
        user.last_login = now
        user.phone_verified = True

    def access_claims(self, user: EndUser) -> dict[str, Any]:
        return {"phone": user.phone, "name": user.name}

    def phone_of(self, user: EndUser) -> str:
        return user.phone

    def session_owner(self, user: EndUser) -> dict[str, Any]:
        return {"user_id": user.user_id}

    def session_clause(self, subject: str) -> ColumnElement[bool]:
        if not str(subject).isdigit():
            return false()
        return AuthSession.user_id == int(subject)

    def projection(self, user: EndUser, *, detailed: bool = False) -> dict[str, Any]:
        return user_projection(user, detailed=detailed)

    def update_profile(self, db: Session, user: EndUser, changes: dict[str, Any]) -> EndUser:
        return apply_profile_changes(db, user, changes, allowed=USER_PROFILE_FIELDS, required=REQUIRED_USER_FIELDS)
