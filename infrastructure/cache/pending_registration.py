"""Pending-registration store.

Holds an already-validated signup payload for the length of the OTP window.
Entries are JSON (not pickle) so they stay debuggable, and they expire on
their own; nothing here is authoritative once a permanent user exists.
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import redis.asyncio as aioredis

from infrastructure.cache.redis_client import require_redis, store_errors
from services.otp.constants import OTP_EXPIRY_SECONDS, pending_registration_key
from shared.logging import get_logger, mask_email

log = get_logger(__name__)


@dataclass
class PendingRegistration:
    email: str
    payload: dict[str, Any]
    created_at: str  # ISO 8601, UTC


class PendingRegistrationStore:
    def __init__(
        self,
        redis_client: Optional[aioredis.Redis],
        ttl_seconds: int = OTP_EXPIRY_SECONDS,
    ) -> None:
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds

    async def put(self, email: str, payload: dict[str, Any]) -> None:
        """Store *payload*, replacing any earlier pending registration."""
        r = require_redis(self._redis, "pending_registration_put")
        entry = PendingRegistration(
            email=email,
            payload=payload,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with store_errors("pending_registration_put", email):
            await r.setex(
                pending_registration_key(email),
                self.ttl_seconds,
                json.dumps(asdict(entry)),
            )
        log.info("pending_registration_stored", email=mask_email(email))

    async def get(self, email: str) -> Optional[PendingRegistration]:
        """Return the pending registration, or None when it expired or never existed."""
        r = require_redis(self._redis, "pending_registration_get")
        with store_errors("pending_registration_get", email):
            raw = await r.get(pending_registration_key(email))
        if raw is None:
            return None
        return PendingRegistration(**json.loads(raw))

    async def remove(self, email: str) -> None:
        r = require_redis(self._redis, "pending_registration_remove")
        with store_errors("pending_registration_remove", email):
            await r.delete(pending_registration_key(email))

    async def refresh(self, email: str) -> bool:
        """Re-extend the TTL without touching the payload.

        Returns False when there was nothing left to refresh.
        """
        r = require_redis(self._redis, "pending_registration_refresh")
        with store_errors("pending_registration_refresh", email):
            refreshed = await r.expire(pending_registration_key(email), self.ttl_seconds)
        return bool(refreshed)
