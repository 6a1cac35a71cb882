"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. OTP components are cheap wrappers around the
shared Redis client, so a fresh one is built per request.
"""

from __future__ import annotations

from fastapi import Depends, Request

from config import AppSettings
from errors import ServiceUnavailableError
from infrastructure.cache.pending_registration import PendingRegistrationStore
from infrastructure.email.protocol import EmailSender
from infrastructure.users.protocol import UserStore
from services.otp.issuer import OtpIssuer
from services.otp.restrictions import RestrictionChecker
from services.otp.verifier import OtpVerifier
from services.registration_service import RegistrationService
from shared.logging import get_logger

log = get_logger(__name__)


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


async def get_redis(request: Request):
    """Return the async Redis client from app.state (may be None if not configured)."""
    return request.app.state.redis


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_restriction_checker(redis=Depends(get_redis)) -> RestrictionChecker:
    return RestrictionChecker(redis)


def get_otp_issuer(
    redis=Depends(get_redis),
    sender: EmailSender = Depends(get_email_sender),
    restrictions: RestrictionChecker = Depends(get_restriction_checker),
) -> OtpIssuer:
    return OtpIssuer(redis, sender, restrictions)


def get_otp_verifier(redis=Depends(get_redis)) -> OtpVerifier:
    return OtpVerifier(redis)


def get_pending_registrations(redis=Depends(get_redis)) -> PendingRegistrationStore:
    return PendingRegistrationStore(redis)


def get_user_store(request: Request) -> UserStore:
    """Return the permanent user store supplied to create_app()."""
    store = request.app.state.user_store
    if store is None:
        log.error("user_store_not_configured")
        raise ServiceUnavailableError()
    return store


def get_registration_service(
    users: UserStore = Depends(get_user_store),
    pending: PendingRegistrationStore = Depends(get_pending_registrations),
    issuer: OtpIssuer = Depends(get_otp_issuer),
    verifier: OtpVerifier = Depends(get_otp_verifier),
) -> RegistrationService:
    return RegistrationService(users, pending, issuer, verifier)
