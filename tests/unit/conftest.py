"""
Unit test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during unit tests. Tests control config exclusively through monkeypatch.setenv().

Store-backed tests run against fakeredis, an in-memory Redis that honours
TTLs, MULTI/EXEC and EXPIRE NX.
"""

from unittest.mock import AsyncMock

import fakeredis
import pytest


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(
        server=fakeredis.FakeServer(), decode_responses=True
    )
    yield client
    await client.aclose()


@pytest.fixture
def sender():
    """An EmailSender whose send() succeeds unless a test sets side_effect."""
    s = AsyncMock()
    s.send.return_value = None
    return s
