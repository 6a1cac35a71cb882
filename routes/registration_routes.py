"""
Registration endpoints gated by an email OTP.

POST /auth/register             — park the payload, send the first code (202)
POST /auth/register/verify      — check the code, create the user (201)
POST /auth/register/resend-otp  — send a new code for a pending registration

Denials, delivery failures and store outages are AppError subclasses and
reach the client through the global exception handlers.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_registration_service
from schemas.dto.requests.registration import (
    RegisterRequest,
    ResendOtpRequest,
    VerifyRegistrationRequest,
)
from schemas.dto.responses.common import MessageResponse
from services.registration_service import RegistrationService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=202, response_model=MessageResponse)
async def register(
    body: RegisterRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> MessageResponse:
    await service.start(body.email, body.name, body.model_dump(exclude_none=True))
    return MessageResponse(success=True, message="OTP sent to your email")


@router.post("/register/verify", status_code=201, response_model=MessageResponse)
async def verify_registration(
    body: VerifyRegistrationRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> MessageResponse:
    await service.complete(body.email, body.otp)
    return MessageResponse(success=True, message="Registration complete")


@router.post("/register/resend-otp", response_model=MessageResponse)
async def resend_registration_otp(
    body: ResendOtpRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> MessageResponse:
    await service.resend(body.email)
    return MessageResponse(success=True, message="A new OTP has been sent")
