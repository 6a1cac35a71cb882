"""OTP issuance.

Two phases, strictly ordered:

1. Deliver. The code is generated and handed to the email sender. No store
   state is touched, so a delivery failure leaves the email free to retry
   immediately.
2. Commit. One MULTI/EXEC transaction writes the code, sets the cooldown
   marker, increments the daily counter (EXPIRE NX only stamps the TTL on
   the increment that created it) and drops any failure counter left by an
   earlier code, so every new code starts with the full attempt budget.

A failed commit after a successful delivery is logged, not raised: the user
holds a valid-looking code that simply was not recorded, and every key
involved expires on its own.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from errors import DeliveryError, DeliveryUnavailableError, ValidationError
from infrastructure.cache.redis_client import require_redis
from infrastructure.email.protocol import EmailSender
from services.otp.constants import (
    DAILY_WINDOW_SECONDS,
    DEFAULT_OTP_TEMPLATE,
    OTP_COOLDOWN_SECONDS,
    OTP_EMAIL_SUBJECT,
    OTP_EXPIRY_SECONDS,
    OTP_LENGTH,
    cooldown_key,
    daily_count_key,
    failure_key,
    otp_key,
)
from services.otp.restrictions import RestrictionChecker
from shared.generators import generate_otp_code
from shared.logging import get_logger, mask_email
from shared.validators import validate_template_name

log = get_logger(__name__)


class OtpIssuer:
    def __init__(
        self,
        redis_client: Optional[aioredis.Redis],
        sender: EmailSender,
        restrictions: Optional[RestrictionChecker] = None,
    ) -> None:
        self._redis = redis_client
        self._sender = sender
        self._restrictions = restrictions or RestrictionChecker(redis_client)

    async def issue(
        self,
        email: str,
        display_name: Optional[str],
        template_name: str = DEFAULT_OTP_TEMPLATE,
    ) -> None:
        """Send a fresh code to *email* and record it.

        Raises:
            RateLimitError: cooldown active or daily limit reached.
            DeliveryError: the sender failed; nothing was committed.
            ServiceUnavailableError: the store could not be read.
        """
        if not validate_template_name(template_name):
            raise ValidationError("Invalid template name", field="template")

        await self._restrictions.ensure_allowed(email)

        code = generate_otp_code(OTP_LENGTH)
        await self._deliver(email, display_name, template_name, code)
        await self._commit(email, code)

        log.info("otp_issued", email=mask_email(email))

    async def _deliver(
        self,
        email: str,
        display_name: Optional[str],
        template_name: str,
        code: str,
    ) -> None:
        template_data = {
            "name": display_name,
            "otp": code,
            "expires_in_minutes": OTP_EXPIRY_SECONDS // 60,
        }
        try:
            await self._sender.send(
                email, OTP_EMAIL_SUBJECT, template_name, template_data
            )
        except DeliveryUnavailableError:
            log.error(
                "otp_delivery_failed", email=mask_email(email), reason="unavailable"
            )
            raise
        except DeliveryError:
            log.error(
                "otp_delivery_failed", email=mask_email(email), reason="rejected"
            )
            raise

    async def _commit(self, email: str, code: str) -> None:
        r = require_redis(self._redis, "otp_commit")
        daily_key = daily_count_key(email)
        try:
            async with r.pipeline(transaction=True) as pipe:
                pipe.set(otp_key(email), code, ex=OTP_EXPIRY_SECONDS)
                pipe.set(cooldown_key(email), "1", ex=OTP_COOLDOWN_SECONDS)
                pipe.incr(daily_key)
                pipe.expire(daily_key, DAILY_WINDOW_SECONDS, nx=True)
                pipe.delete(failure_key(email))
                results = await pipe.execute()
        except RedisError as e:
            # Delivered but unrecorded: degraded state heals as keys expire.
            log.error(
                "otp_commit_failed",
                email=mask_email(email),
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        log.debug("otp_committed", email=mask_email(email), daily_count=results[2])
