from __future__ import annotations

import secrets
import string
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from nazdeeki.core.errors import ValidationError
from nazdeeki.models.address import Address
from nazdeeki.models.auth_session import AuthSession
from nazdeeki.models.common import as_utc, utcnow
from nazdeeki.models.otp_attempt import ACCOUNT_KIND_SELLER
from nazdeeki.models.seller import Seller
from nazdeeki.services.sms_service import COUNTRY_CODE, normalize_phone

STATUS_ACTIVE = "active"
STATUS_SUSPENDED = "suspended"
STATUS_DELETED = "deleted"

# Client-editable seller columns; anything else in a profile payload is dropped.
PROFILE_UPDATE_FIELDS = ("owner_name", "restaurant_name", "email")
REQUIRED_PROFILE_FIELDS = ("owner_name",)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def canonical_phone(raw: Any) -> str:
    """Identity key for a handset: ``+91`` followed by the national number.

    Built from the same normalization the SMS gateway applies, so every
    spelling that reaches one handset maps to one account and one send limit.
    """
    national = normalize_phone(None if raw is None else str(raw))
    if national is None:
        raise ValidationError("Valid phone number required")
    return f"+{COUNTRY_CODE}{national}"


def find_by_phone(db: Session, phone_number: str) -> Seller | None:
    return db.query(Seller).filter(Seller.rest_phone == phone_number).first()


def get_by_id(db: Session, seller_id: str | None) -> Seller | None:
    if not seller_id:
        return None
    return db.get(Seller, str(seller_id))


def generate_seller_id(now: datetime | None = None) -> str:
    moment = now or utcnow()
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"SELLER_{int(moment.timestamp() * 1000)}_{suffix}"


def require_signup_profile(signup_data: Any) -> tuple[str, str]:
    owner_name = str(getattr(signup_data, "owner_name", None) or "").strip()
    restaurant_name = str(getattr(signup_data, "restaurant_name", None) or "").strip()
    if not owner_name or not restaurant_name:
        raise ValidationError("Owner name and restaurant name required for signup")
    return owner_name, restaurant_name


def create_seller(
    db: Session,
    *,
    phone_number: str,
    owner_name: str,
    restaurant_name: str,
    now: datetime | None = None,
) -> Seller:
    """Create an active, phone-verified seller with its placeholder records.

    The address row and the menu namespace id exist from the first flush, so
    ``sellers.address_id``/``menu_id`` never sit at NULL between signup and
    the first profile edit.
    """
    moment = now or utcnow()
    seller_id = generate_seller_id(moment)

    address = Address(rest_id=seller_id, address_type="restaurant", created_at=moment, updated_at=moment)
    db.add(address)
    db.flush()

    seller = Seller(
        seller_id=seller_id,
        owner_name=owner_name,
        restaurant_name=restaurant_name,
        rest_phone=phone_number,
        address_id=address.address_id,
        menu_id=f"MENU_{seller_id.removeprefix('SELLER_')}",
        phone_verified=True,
        account_status=STATUS_ACTIVE,
        last_login=moment,
        created_at=moment,
        updated_at=moment,
    )
    db.add(seller)
    db.flush()
    return seller


def record_login(seller: Seller, *, now: datetime) -> None:
    seller.last_login = now
    seller.phone_verified = True
    seller.login_attempts = 0


def apply_profile_changes(
    db: Session,
    account: Any,
    changes: dict[str, Any],
    *,
    allowed: tuple[str, ...],
    required: tuple[str, ...] = (),
) -> Any:
    applied: dict[str, Any] = {}
    for field in allowed:
        if field not in changes:
            continue
        value = changes[field]
        if isinstance(value, str):
            value = value.strip() or None
        if value is None and field in required:
            raise ValidationError(f'Field "{field}" cannot be empty')
        applied[field] = value
    if not applied:
        raise ValidationError("No fields to update")
    for field, value in applied.items():
        setattr(account, field, value)
    db.flush()
    return account


def update_profile(db: Session, seller: Seller, changes: dict[str, Any]) -> Seller:
    return apply_profile_changes(db, seller, changes, allowed=PROFILE_UPDATE_FIELDS, required=REQUIRED_PROFILE_FIELDS)


def iso(value: datetime | None) -> str | None:
    moment = as_utc(value)
    return moment.isoformat() if moment is not None else None


def seller_projection(seller: Seller, *, detailed: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": seller.seller_id,
        "name": seller.owner_name,
        "phone": seller.rest_phone,
        "restaurant": seller.restaurant_name,
        "addressId": seller.address_id,
        "menuId": seller.menu_id,
    }
    if detailed:
        payload.update(
            {
                "email": seller.email,
                "accountStatus": seller.account_status,
                "phoneVerified": bool(seller.phone_verified),
                "createdAt": iso(seller.created_at),
                "lastLogin": iso(seller.last_login),
            }
        )
    return payload


class SellerDirectory:
    """Seller accounts as seen by the sign-in flow and the session manager."""

    kind = ACCOUNT_KIND_SELLER
    event_prefix = ""
    not_found_detail = "Seller not found"

    def find_by_phone(self, db: Session, phone_number: str) -> Seller | None:
        return find_by_phone(db, phone_number)

    def get(self, db: Session, subject: str | None) -> Seller | None:
        return get_by_id(db, subject)

    def subject(self, seller: Seller) -> str:
        return seller.seller_id

    def audit_id(self, subject: str) -> str:
        return subject

    def signup_profile(self, signup_data: Any) -> tuple[str, str]:
        return require_signup_profile(signup_data)

    def create(self, db: Session, *, phone_number: str, profile: tuple[str, str], now: datetime) -> Seller:
        owner_name, restaurant_name = profile
        return create_seller(
            db, phone_number=phone_number, owner_name=owner_name, restaurant_name=restaurant_name, now=now
        )

    def record_login(self, seller: Seller, *, now: datetime) -> None:
        record_login(seller, now=now)

    def access_claims(self, seller: Seller) -> dict[str, Any]:
        return {
            "phone": seller.rest_phone,
            "name": seller.owner_name,
            "restaurant": seller.restaurant_name,
            "address_id": seller.address_id,
            "menu_id": seller.menu_id,
        }

    def phone_of(self, seller: Seller) -> str:
        return seller.rest_phone

    def session_owner(self, seller: Seller) -> dict[str, Any]:
        return {"seller_id": seller.seller_id}

    def session_clause(self, subject: str) -> ColumnElement[bool]:
        return AuthSession.seller_id == subject

    def projection(self, seller: Seller, *, detailed: bool = False) -> dict[str, Any]:
        return seller_projection(seller, detailed=detailed)

    def update_profile(self, db: Session, seller: Seller, changes: dict[str, Any]) -> Seller:
        return update_profile(db, seller, changes)
