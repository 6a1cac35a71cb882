"""
Registration flow gated by an email OTP.

start   : park the validated payload, send the first code
resend  : send a new code for a registration still in progress
complete: verify the code, take the parked payload, create the user

The permanent user record is re-checked immediately before it is created:
two concurrent signups for the same email may both reach that point, and the
pending payload is never treated as proof that the email is still free.
"""

from __future__ import annotations

from typing import Any, Optional

from errors import ConflictError, RegistrationExpiredError
from infrastructure.cache.pending_registration import PendingRegistrationStore
from infrastructure.users.protocol import UserStore
from services.otp.issuer import OtpIssuer
from services.otp.verifier import OtpVerifier
from shared.logging import get_logger, mask_email

log = get_logger(__name__)


class RegistrationService:
    def __init__(
        self,
        users: UserStore,
        pending: PendingRegistrationStore,
        issuer: OtpIssuer,
        verifier: OtpVerifier,
    ) -> None:
        self._users = users
        self._pending = pending
        self._issuer = issuer
        self._verifier = verifier

    async def start(
        self, email: str, name: Optional[str], payload: dict[str, Any]
    ) -> None:
        if await self._users.exists(email):
            raise ConflictError("User already exists", field="email")

        await self._pending.put(email, payload)
        await self._issuer.issue(email, name)
        log.info("registration_started", email=mask_email(email))

    async def resend(self, email: str) -> None:
        pending = await self._pending.get(email)
        if pending is None:
            raise RegistrationExpiredError()

        # The new code gets a full window; keep the payload alive as long
        if not await self._pending.refresh(email):
            raise RegistrationExpiredError()
        await self._issuer.issue(email, pending.payload.get("name"))
        log.info("registration_otp_resent", email=mask_email(email))

    async def complete(self, email: str, code: str) -> dict[str, Any]:
        """Verify *code* and create the user. Returns the stored payload."""
        await self._verifier.verify(email, code)

        pending = await self._pending.get(email)
        if pending is None:
            raise RegistrationExpiredError()
        await self._pending.remove(email)

        if await self._users.exists(email):
            log.warning("registration_conflict", email=mask_email(email))
            raise ConflictError("User already exists", field="email")

        await self._users.create(email, pending.payload)
        log.info("registration_completed", email=mask_email(email))
        return pending.payload
