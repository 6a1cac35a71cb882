"""OTP verification with failed-attempt lockout.

The failure counter is only ever changed through INCR inside a MULTI/EXEC
block, so concurrent wrong guesses are all counted. A correct code is
consumed with DEL and the delete count decides the winner: when two requests
race with the right code only the one that actually removed the record
succeeds.
"""

from __future__ import annotations

import secrets
from typing import Optional

import redis.asyncio as aioredis

from errors import (
    InvalidOtpError,
    InvalidOtpFormatError,
    OtpExpiredError,
    OtpLockedError,
    PolicyDenial,
)
from infrastructure.cache.redis_client import require_redis, store_errors
from services.otp.constants import (
    OTP_EXPIRY_SECONDS,
    OTP_LENGTH,
    OTP_MAX_ATTEMPTS,
    failure_key,
    otp_key,
)
from shared.logging import get_logger, mask_email
from shared.validators import validate_otp_format

log = get_logger(__name__)


class OtpVerifier:
    def __init__(self, redis_client: Optional[aioredis.Redis]) -> None:
        self._redis = redis_client

    async def verify(self, email: str, submitted_code: str) -> None:
        """Check *submitted_code* against the active code for *email*.

        Returns normally on success, after which neither the code nor the
        failure counter exists.

        Raises:
            InvalidOtpFormatError: not exactly OTP_LENGTH digits (no store access).
            OtpExpiredError: no active code.
            InvalidOtpError: wrong code, with attempts_remaining.
            OtpLockedError: too many failures; the code has been invalidated.
            ServiceUnavailableError: the store is missing or failing.
        """
        if not validate_otp_format(submitted_code, OTP_LENGTH):
            raise InvalidOtpFormatError(f"OTP must be exactly {OTP_LENGTH} digits.")

        r = require_redis(self._redis, "otp_verify")
        with store_errors("otp_verify", email):
            async with r.pipeline(transaction=False) as pipe:
                pipe.get(otp_key(email))
                pipe.get(failure_key(email))
                stored_code, failures = await pipe.execute()

            if stored_code is None:
                log.info(
                    "otp_verification_failed", email=mask_email(email), reason="expired"
                )
                raise OtpExpiredError()

            if failures is not None and int(failures) >= OTP_MAX_ATTEMPTS:
                await self._invalidate(r, email)
                log.warning(
                    "otp_verification_failed", email=mask_email(email), reason="locked"
                )
                raise OtpLockedError()

            if not secrets.compare_digest(submitted_code, stored_code):
                raise await self._record_failure(r, email)

            async with r.pipeline(transaction=True) as pipe:
                pipe.delete(otp_key(email))
                pipe.delete(failure_key(email))
                deleted, _ = await pipe.execute()

        if not deleted:
            # Consumed by a concurrent request between the read and the delete
            log.info(
                "otp_verification_failed", email=mask_email(email), reason="consumed"
            )
            raise OtpExpiredError()

        log.info("otp_verified", email=mask_email(email))

    async def _record_failure(
        self, r: aioredis.Redis, email: str
    ) -> PolicyDenial:
        key = failure_key(email)
        async with r.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, OTP_EXPIRY_SECONDS, nx=True)
            new_count, _ = await pipe.execute()

        if new_count >= OTP_MAX_ATTEMPTS:
            await self._invalidate(r, email)
            log.warning("otp_locked", email=mask_email(email), attempts=new_count)
            return OtpLockedError()

        remaining = OTP_MAX_ATTEMPTS - new_count
        log.info(
            "otp_verification_failed",
            email=mask_email(email),
            reason="invalid_code",
            attempts_remaining=remaining,
        )
        return InvalidOtpError(attempts_remaining=remaining)

    async def _invalidate(self, r: aioredis.Redis, email: str) -> None:
        """Drop the code and its failure counter; a new issuance is required."""
        await r.delete(otp_key(email), failure_key(email))
