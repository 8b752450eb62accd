from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from nazdeeki.core.deps import get_bearer_token, get_current_claims
from nazdeeki.core.http_hardening import client_ip, client_user_agent
from nazdeeki.db.session import get_db
from nazdeeki.schemas.auth import LogoutIn, ProfileUpdateIn, RefreshIn, SendOtpIn, VerifyOtpIn
from nazdeeki.services.auth_flow import AuthFlow, ClientContext
from nazdeeki.services.sms_service import OtpProvider, get_otp_provider

router = APIRouter()


def get_auth_flow(db: Session = Depends(get_db), provider: OtpProvider = Depends(get_otp_provider)) -> AuthFlow:
    return AuthFlow(db, provider)


def _client(request: Request) -> ClientContext:
    return ClientContext(ip=client_ip(request), user_agent=client_user_agent(request))


@router.post("/send-otp")
def send_otp(payload: SendOtpIn, request: Request, flow: AuthFlow = Depends(get_auth_flow)):
    return flow.send_otp(payload.phone_number, _client(request))


@router.post("/verify-otp")
def verify_otp(payload: VerifyOtpIn, request: Request, flow: AuthFlow = Depends(get_auth_flow)):
    return flow.verify_otp(payload.phone_number, payload.otp, payload.signup_data, _client(request))


@router.post("/refresh")
def refresh(payload: RefreshIn, flow: AuthFlow = Depends(get_auth_flow)):
    return flow.refresh(payload.refresh_token)


@router.post("/logout")
def logout(
    request: Request,
    payload: Optional[LogoutIn] = Body(default=None),
    access_token: Optional[str] = Depends(get_bearer_token),
    flow: AuthFlow = Depends(get_auth_flow),
):
    return flow.logout(
        refresh_token=payload.refresh_token if payload else None,
        access_token=access_token,
        client=_client(request),
    )


@router.get("/me")
def me(claims: dict = Depends(get_current_claims), flow: AuthFlow = Depends(get_auth_flow)):
    return flow.me(claims)


@router.put("/update-profile")
def update_profile(
    payload: ProfileUpdateIn,
    claims: dict = Depends(get_current_claims),
    flow: AuthFlow = Depends(get_auth_flow),
):
    return flow.update_profile(claims, payload.model_dump(exclude_unset=True))
