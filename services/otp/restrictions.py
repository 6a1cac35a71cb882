"""Issuance restrictions: per-email cooldown and rolling daily quota.

Read-only. A missing or failing store raises ServiceUnavailableError so
callers never mistake an outage for a rate limit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import redis.asyncio as aioredis

from errors import DenialKind, RateLimitError
from infrastructure.cache.redis_client import require_redis, store_errors
from services.otp.constants import (
    OTP_COOLDOWN_SECONDS,
    OTP_DAILY_LIMIT,
    cooldown_key,
    daily_count_key,
)
from shared.logging import get_logger, mask_email

log = get_logger(__name__)

_DENIAL_MESSAGES = {
    DenialKind.COOLDOWN: "Please wait before requesting another OTP.",
    DenialKind.DAILY_LIMIT: "You have reached the maximum OTP requests for today.",
}


@dataclass(frozen=True)
class RestrictionResult:
    allowed: bool
    reason: Optional[DenialKind] = None
    retry_after_seconds: Optional[int] = None

    def to_error(self) -> RateLimitError:
        if self.allowed or self.reason is None:
            raise ValueError("an allowed result has no error")
        return RateLimitError(
            _DENIAL_MESSAGES[self.reason],
            kind=self.reason,
            retry_after_seconds=self.retry_after_seconds,
        )


ALLOWED = RestrictionResult(allowed=True)


class RestrictionChecker:
    def __init__(self, redis_client: Optional[aioredis.Redis]) -> None:
        self._redis = redis_client

    async def check(self, email: str) -> RestrictionResult:
        r = require_redis(self._redis, "otp_restriction_check")
        with store_errors("otp_restriction_check", email):
            async with r.pipeline(transaction=False) as pipe:
                pipe.ttl(cooldown_key(email))
                pipe.get(daily_count_key(email))
                cooldown_ttl, daily_count = await pipe.execute()

        # -2: no marker. -1: marker without expiry, still blocks.
        if cooldown_ttl > 0 or cooldown_ttl == -1:
            retry_after = cooldown_ttl if cooldown_ttl > 0 else OTP_COOLDOWN_SECONDS
            log.info(
                "otp_request_denied",
                email=mask_email(email),
                reason=DenialKind.COOLDOWN.value,
                retry_after_seconds=retry_after,
            )
            return RestrictionResult(
                allowed=False,
                reason=DenialKind.COOLDOWN,
                retry_after_seconds=retry_after,
            )

        if daily_count is not None and int(daily_count) >= OTP_DAILY_LIMIT:
            log.warning(
                "otp_request_denied",
                email=mask_email(email),
                reason=DenialKind.DAILY_LIMIT.value,
                count=int(daily_count),
            )
            return RestrictionResult(allowed=False, reason=DenialKind.DAILY_LIMIT)

        return ALLOWED

    async def ensure_allowed(self, email: str) -> None:
        """Raise RateLimitError unless a new code may be issued for *email*."""
        result = await self.check(email)
        if not result.allowed:
            raise result.to_error()
