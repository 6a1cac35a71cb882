"""Unit tests for OtpIssuer."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from errors import (
    DeliveryError,
    DeliveryUnavailableError,
    DenialKind,
    InvalidOtpError,
    RateLimitError,
    ServiceUnavailableError,
    ValidationError,
)
from services.otp.constants import (
    DAILY_WINDOW_SECONDS,
    DEFAULT_OTP_TEMPLATE,
    OTP_COOLDOWN_SECONDS,
    OTP_DAILY_LIMIT,
    OTP_EMAIL_SUBJECT,
    OTP_EXPIRY_SECONDS,
    OTP_LENGTH,
    OTP_MAX_ATTEMPTS,
    cooldown_key,
    daily_count_key,
    failure_key,
    otp_key,
)
from services.otp.issuer import OtpIssuer
from services.otp.verifier import OtpVerifier

EMAIL = "a@x.com"


def _sent_code(sender: AsyncMock, call: int = -1) -> str:
    _, _, _, template_data = sender.send.call_args_list[call].args
    return template_data["otp"]


async def _elapse_cooldown(redis_client, email: str = EMAIL) -> None:
    await redis_client.delete(cooldown_key(email))


class TestIssue:
    async def test_first_issue_writes_record_cooldown_and_counter(
        self, redis_client, sender
    ):
        await OtpIssuer(redis_client, sender).issue(EMAIL, "Alice")

        code = await redis_client.get(otp_key(EMAIL))
        assert code == _sent_code(sender)
        assert len(code) == OTP_LENGTH and code.isdigit()
        assert await redis_client.exists(cooldown_key(EMAIL)) == 1
        assert await redis_client.get(daily_count_key(EMAIL)) == "1"

    async def test_ttls(self, redis_client, sender):
        await OtpIssuer(redis_client, sender).issue(EMAIL, "Alice")

        assert 0 < await redis_client.ttl(otp_key(EMAIL)) <= OTP_EXPIRY_SECONDS
        assert 0 < await redis_client.ttl(cooldown_key(EMAIL)) <= OTP_COOLDOWN_SECONDS
        assert (
            DAILY_WINDOW_SECONDS - 5
            < await redis_client.ttl(daily_count_key(EMAIL))
            <= DAILY_WINDOW_SECONDS
        )

    async def test_sender_receives_subject_template_and_data(
        self, redis_client, sender
    ):
        await OtpIssuer(redis_client, sender).issue(EMAIL, "Alice")

        email, subject, template, data = sender.send.call_args.args
        assert email == EMAIL
        assert subject == OTP_EMAIL_SUBJECT
        assert template == DEFAULT_OTP_TEMPLATE
        assert data["name"] == "Alice"
        assert data["expires_in_minutes"] == OTP_EXPIRY_SECONDS // 60

    async def test_custom_template_name(self, redis_client, sender):
        await OtpIssuer(redis_client, sender).issue(EMAIL, None, "seller_otp-v2")
        assert sender.send.call_args.args[2] == "seller_otp-v2"

    @pytest.mark.parametrize("template", ["../secrets", "otp template", ""])
    async def test_rejects_unsafe_template_name(self, redis_client, sender, template):
        with pytest.raises(ValidationError):
            await OtpIssuer(redis_client, sender).issue(EMAIL, None, template)
        sender.send.assert_not_awaited()

    async def test_uses_generated_code(self, redis_client, sender, mocker):
        mocker.patch("services.otp.issuer.generate_otp_code", return_value="482913")
        await OtpIssuer(redis_client, sender).issue(EMAIL, "Alice")
        assert await redis_client.get(otp_key(EMAIL)) == "482913"
        assert _sent_code(sender) == "482913"

    async def test_reissue_replaces_code(self, redis_client, sender):
        issuer = OtpIssuer(redis_client, sender)
        await issuer.issue(EMAIL, None)
        await _elapse_cooldown(redis_client)
        await issuer.issue(EMAIL, None)

        assert await redis_client.get(otp_key(EMAIL)) == _sent_code(sender, -1)
        assert await redis_client.keys(f"{otp_key(EMAIL)}*") == [otp_key(EMAIL)]
        assert await redis_client.get(daily_count_key(EMAIL)) == "2"

    async def test_reissue_starts_with_full_attempt_budget(self, redis_client, sender):
        issuer = OtpIssuer(redis_client, sender)
        verifier = OtpVerifier(redis_client)
        await issuer.issue(EMAIL, None)
        for _ in range(2):
            with pytest.raises(InvalidOtpError):
                await verifier.verify(EMAIL, "000000")

        # old code expires, cooldown has passed
        await redis_client.delete(otp_key(EMAIL))
        await _elapse_cooldown(redis_client)
        await issuer.issue(EMAIL, None)

        assert await redis_client.exists(failure_key(EMAIL)) == 0
        with pytest.raises(InvalidOtpError) as exc_info:
            await verifier.verify(EMAIL, "000000")
        assert exc_info.value.attempts_remaining == OTP_MAX_ATTEMPTS - 1

    async def test_reissue_clears_counter_recreated_after_lockout(
        self, redis_client, sender
    ):
        issuer = OtpIssuer(redis_client, sender)
        await issuer.issue(EMAIL, None)
        # a wrong guess racing the lockout increments after the DEL
        await redis_client.delete(otp_key(EMAIL))
        await redis_client.set(failure_key(EMAIL), OTP_MAX_ATTEMPTS + 1, ex=300)
        await _elapse_cooldown(redis_client)

        await issuer.issue(EMAIL, None)

        assert await redis_client.exists(failure_key(EMAIL)) == 0
        await OtpVerifier(redis_client).verify(EMAIL, _sent_code(sender))


class TestRateLimits:
    async def test_second_issue_within_cooldown_is_rejected(
        self, redis_client, sender
    ):
        issuer = OtpIssuer(redis_client, sender)
        await issuer.issue(EMAIL, None)

        with pytest.raises(RateLimitError) as exc_info:
            await issuer.issue(EMAIL, None)

        assert exc_info.value.kind == DenialKind.COOLDOWN
        assert exc_info.value.retry_after_seconds > 0
        assert await redis_client.get(daily_count_key(EMAIL)) == "1"
        assert sender.send.await_count == 1

    async def test_daily_limit_blocks_the_next_issue(self, redis_client, sender):
        issuer = OtpIssuer(redis_client, sender)
        for _ in range(OTP_DAILY_LIMIT):
            await issuer.issue(EMAIL, None)
            await _elapse_cooldown(redis_client)

        with pytest.raises(RateLimitError) as exc_info:
            await issuer.issue(EMAIL, None)

        assert exc_info.value.kind == DenialKind.DAILY_LIMIT
        assert exc_info.value.retry_after_seconds is None
        assert await redis_client.get(daily_count_key(EMAIL)) == str(OTP_DAILY_LIMIT)
        assert sender.send.await_count == OTP_DAILY_LIMIT

    async def test_daily_ttl_is_not_refreshed_by_later_issues(
        self, redis_client, sender
    ):
        issuer = OtpIssuer(redis_client, sender)
        await issuer.issue(EMAIL, None)
        await redis_client.expire(daily_count_key(EMAIL), 100)
        await _elapse_cooldown(redis_client)

        await issuer.issue(EMAIL, None)

        assert await redis_client.get(daily_count_key(EMAIL)) == "2"
        assert 0 < await redis_client.ttl(daily_count_key(EMAIL)) <= 100


class TestDeliveryFailures:
    @pytest.mark.parametrize(
        "error",
        [DeliveryError("rejected"), DeliveryUnavailableError("timeout")],
        ids=["rejected", "unavailable"],
    )
    async def test_failure_commits_nothing(self, redis_client, sender, error):
        sender.send.side_effect = error
        with pytest.raises(type(error)):
            await OtpIssuer(redis_client, sender).issue(EMAIL, None)

        assert await redis_client.keys("*") == []

    async def test_retry_is_allowed_immediately_after_failure(
        self, redis_client, sender
    ):
        sender.send.side_effect = [DeliveryError("rejected"), None]
        issuer = OtpIssuer(redis_client, sender)

        with pytest.raises(DeliveryError):
            await issuer.issue(EMAIL, None)
        await issuer.issue(EMAIL, None)

        assert await redis_client.get(daily_count_key(EMAIL)) == "1"
        assert await redis_client.get(otp_key(EMAIL)) == _sent_code(sender)

    async def test_unexpected_sender_error_propagates(self, redis_client, sender):
        sender.send.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            await OtpIssuer(redis_client, sender).issue(EMAIL, None)
        assert await redis_client.keys("*") == []


class TestStoreFailures:
    async def test_unconfigured_store_is_unavailable(self, sender):
        with pytest.raises(ServiceUnavailableError):
            await OtpIssuer(None, sender).issue(EMAIL, None)
        sender.send.assert_not_awaited()

    async def test_restriction_read_failure_is_unavailable(
        self, redis_client, sender, mocker
    ):
        mocker.patch.object(
            redis_client, "pipeline", side_effect=RedisConnectionError("down")
        )
        with pytest.raises(ServiceUnavailableError):
            await OtpIssuer(redis_client, sender).issue(EMAIL, None)
        sender.send.assert_not_awaited()

    async def test_commit_failure_after_delivery_is_not_raised(
        self, redis_client, sender, mocker
    ):
        restrictions = AsyncMock()
        restrictions.ensure_allowed.return_value = None
        mocker.patch.object(
            redis_client, "pipeline", side_effect=RedisConnectionError("down")
        )

        await OtpIssuer(redis_client, sender, restrictions).issue(EMAIL, None)

        sender.send.assert_awaited_once()
        assert await redis_client.get(otp_key(EMAIL)) is None
