from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from nazdeeki.core.deps import get_current_claims, require_database
from nazdeeki.core.errors import ForbiddenError
from nazdeeki.db.session import get_db
from nazdeeki.services.account_deletion import delete_seller_account

router = APIRouter(dependencies=[Depends(require_database)])
test_router = APIRouter()


@router.delete("/{seller_id}", status_code=204)
def delete_seller(seller_id: str, claims: dict = Depends(get_current_claims), db: Session = Depends(get_db)):
    if str(claims.get("sub")) != seller_id:
        raise ForbiddenError("Cannot delete another seller's account")
    delete_seller_account(db, seller_id)
    return Response(status_code=204)


@test_router.delete("/sellers/{seller_id}", status_code=204)
def delete_seller_without_auth(seller_id: str, db: Session = Depends(get_db)):
    delete_seller_account(db, seller_id)
    return Response(status_code=204)
