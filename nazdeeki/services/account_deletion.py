from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nazdeeki.core.config import settings
from nazdeeki.core.errors import NotFoundError, TransactionError
from nazdeeki.models.address import Address
from nazdeeki.models.auth_session import AuthSession
from nazdeeki.models.engagement import Collection, Like, Rating
from nazdeeki.models.menu_item import MenuItem
from nazdeeki.models.order import Order, OrderLineItem
from nazdeeki.models.seller import Seller

logger = logging.getLogger("nazdeeki.accounts.deletion")

# Tables tied to a seller through a denormalized rest_id column (no DB-level FK).
OWNED_BY_REST_ID = (Collection, Like, MenuItem, OrderLineItem, Order, Rating)


def delete_seller_account(db: Session, seller_id: str, *, isolation_level: str | None = None) -> dict[str, int]:
    """Remove a seller and everything that only exists because of it.

    Runs as one transaction: FK children first, then the rest_id-keyed
    tables, then the seller row, then its address when no other seller still
    points at it. ``auth_logs`` rows are kept for audit. Any failure rolls the
    whole cascade back and surfaces as ``TransactionError``.
    """
    level = isolation_level if isolation_level is not None else settings.CASCADE_DELETE_ISOLATION_LEVEL
    if level and not db.in_transaction():
        db.connection(execution_options={"isolation_level": level})

    removed: dict[str, int] = {}
    try:
        seller_row = db.query(Seller.seller_id).filter(Seller.seller_id == seller_id).first()
        if seller_row is None:
            db.rollback()
            raise NotFoundError("Seller not found")

        removed[AuthSession.__tablename__] = (
            db.query(AuthSession).filter(AuthSession.seller_id == seller_id).delete(synchronize_session=False)
        )
        for model in OWNED_BY_REST_ID:
            removed[model.__tablename__] = (
                db.query(model).filter(model.rest_id == seller_id).delete(synchronize_session=False)
            )

        address_id = db.query(Seller.address_id).filter(Seller.seller_id == seller_id).scalar()
        removed[Seller.__tablename__] = (
            db.query(Seller).filter(Seller.seller_id == seller_id).delete(synchronize_session=False)
        )

        removed[Address.__tablename__] = 0
        if address_id is not None:
            still_referenced = int(
                db.query(func.count(Seller.seller_id)).filter(Seller.address_id == address_id).scalar() or 0
            )
            if still_referenced == 0:
                removed[Address.__tablename__] = (
                    db.query(Address).filter(Address.address_id == address_id).delete(synchronize_session=False)
                )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("seller deletion rolled back seller=%s", seller_id, exc_info=True)
        raise TransactionError() from exc

    logger.info("seller deleted seller=%s removed=%s", seller_id, removed)
    return removed
