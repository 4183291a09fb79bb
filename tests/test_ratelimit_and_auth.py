"""Unit tests for the rate limiter and bearer-token auth."""

from datetime import timedelta

import pytest

from backend.app.core.auth.jwt_auth import create_access_token, decode_access_token
from backend.app.core.errors import AuthenticationFailure
from backend.app.core.ratelimit import RateLimiter


@pytest.mark.asyncio
class TestRateLimiter:
    async def test_allows_until_quota(self, history):
        limiter = RateLimiter(history, limit=2, window_seconds=60)

        assert await limiter.hit("caller") is True
        assert await limiter.hit("caller") is True
        assert await limiter.hit("caller") is False

    async def test_identifiers_are_independent(self, history):
        limiter = RateLimiter(history, limit=1, window_seconds=60)

        assert await limiter.hit("a") is True
        assert await limiter.hit("b") is True
        assert await limiter.hit("a") is False

    async def test_window_expiry_is_set(self, history):
        limiter = RateLimiter(history, limit=5, window_seconds=30)
        await limiter.hit("caller")
        assert list(history.ttls.values()) == [30]

    async def test_counter_and_expiry_share_one_transaction(self, history):
        limiter = RateLimiter(history, limit=5, window_seconds=3600)

        await limiter.hit("caller")
        await limiter.hit("caller")

        assert history.executed_transactions == [True, True]
        assert list(history.counters.values()) == [2]
        assert list(history.ttls.values()) == [3600]


class TestJwt:
    def test_roundtrip_identity(self, settings):
        token = create_access_token(settings, "user-9", name="Grace")
        user = decode_access_token(settings, token)
        assert user.id == "user-9"
        assert user.name == "Grace"

    def test_expired_token_rejected(self, settings):
        token = create_access_token(settings, "user-9", expires_delta=timedelta(seconds=-5))
        with pytest.raises(AuthenticationFailure):
            decode_access_token(settings, token)

    def test_wrong_secret_rejected(self, settings):
        import dataclasses

        other = dataclasses.replace(settings, jwt_secret="other-secret")
        token = create_access_token(other, "user-9")
        with pytest.raises(AuthenticationFailure):
            decode_access_token(settings, token)


class TestLoggingSetup:
    def test_debug_flag_overrides_level(self):
        import logging

        from backend.app.observability.logging import setup_logging

        logger = logging.getLogger("companion")
        previous = logger.level
        try:
            setup_logging("WARNING", debug=True)
            assert logger.level == logging.DEBUG
            setup_logging("WARNING")
            assert logger.level == logging.WARNING
        finally:
            logger.setLevel(previous)
