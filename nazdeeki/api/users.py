from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from nazdeeki.api.auth import _client
from nazdeeki.core.deps import get_bearer_token, get_current_user_claims
from nazdeeki.db.session import get_db
from nazdeeki.schemas.auth import LogoutIn, RefreshIn, SendOtpIn, UserProfileUpdateIn, UserVerifyOtpIn
from nazdeeki.services.auth_flow import AuthFlow
from nazdeeki.services.end_users import EndUserDirectory
from nazdeeki.services.sms_service import OtpProvider, get_otp_provider

router = APIRouter()


def get_user_auth_flow(db: Session = Depends(get_db), provider: OtpProvider = Depends(get_otp_provider)) -> AuthFlow:
    return AuthFlow(db, provider, directory=EndUserDirectory())


@router.post("/send-otp")
def send_otp(payload: SendOtpIn, request: Request, flow: AuthFlow = Depends(get_user_auth_flow)):
    return flow.send_otp(payload.phone_number, _client(request))


@router.post("/verify-otp")
def verify_otp(payload: UserVerifyOtpIn, request: Request, flow: AuthFlow = Depends(get_user_auth_flow)):
    return flow.verify_otp(payload.phone_number, payload.otp, payload.signup_data, _client(request))


@router.post("/refresh")
def refresh(payload: RefreshIn, flow: AuthFlow = Depends(get_user_auth_flow)):
    return flow.refresh(payload.refresh_token)


@router.post("/logout")
def logout(
    request: Request,
    payload: Optional[LogoutIn] = Body(default=None),
    access_token: Optional[str] = Depends(get_bearer_token),
    flow: AuthFlow = Depends(get_user_auth_flow),
):
    return flow.logout(
        refresh_token=payload.refresh_token if payload else None,
        access_token=access_token,
        client=_client(request),
    )


@router.get("/me")
def me(claims: dict = Depends(get_current_user_claims), flow: AuthFlow = Depends(get_user_auth_flow)):
    return flow.me(claims)


@router.put("/update-profile")
def update_profile(
    payload: UserProfileUpdateIn,
    claims: dict = Depends(get_current_user_claims),
    flow: AuthFlow = Depends(get_user_auth_flow),
):
    return flow.update_profile(claims, payload.model_dump(exclude_unset=True))
