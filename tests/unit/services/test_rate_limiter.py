from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from stoneguard.app.services.rate_limiter import LimitState, RateLimiter, RateLimitPolicy
from stoneguard.domain.entities import IdentifierType, RateLimitTracking

POLICY = RateLimitPolicy("quote_approval", window_seconds=3600, max_requests=5, captcha_threshold=3)


def _tracking(clock, **overrides):
    values = {
        "identifier": "buyer-1",
        "identifier_type": IdentifierType.user,
        "endpoint": POLICY.endpoint,
        "window_start": clock.now,
        "last_request": clock.now,
    }
    values.update(overrides)
    return RateLimitTracking(**values)


@pytest.fixture
def rate_limits(mock_uow):
    repo = MagicMock()
    repo.ensure = AsyncMock()
    repo.get = AsyncMock(return_value=None)
    repo.register_request = AsyncMock()
    repo.block = AsyncMock()
    repo.require_captcha = AsyncMock()
    repo.record_captcha_failure = AsyncMock()
    repo.reset_after_captcha = AsyncMock()
    repo.has_excessive_captcha_failures = AsyncMock(return_value=False)
    mock_uow.rate_limits = repo
    return repo


@pytest.mark.asyncio
async def test_under_threshold_is_unthrottled(rate_limits, uow_factory, clock):
    rate_limits.register_request.return_value = _tracking(clock, request_count=2)
    limiter = RateLimiter(uow_factory, clock=clock)

    decision = await limiter.check("buyer-1", IdentifierType.user, POLICY)

    assert decision.allowed
    assert decision.state == LimitState.unthrottled
    assert not decision.requires_captcha
    window_cutoff, idle_cutoff = rate_limits.register_request.call_args[0][4:6]
    assert window_cutoff == clock.now - timedelta(seconds=3600)
    assert idle_cutoff == clock.now - timedelta(seconds=3600)


@pytest.mark.asyncio
async def test_user_over_captcha_threshold_escalates(rate_limits, uow_factory, clock):
    rate_limits.register_request.return_value = _tracking(clock, request_count=4)
    limiter = RateLimiter(uow_factory, clock=clock)

    decision = await limiter.check("buyer-1", IdentifierType.user, POLICY)

    assert decision.allowed
    assert decision.state == LimitState.captcha_required
    assert decision.requires_captcha
    rate_limits.require_captcha.assert_called_once_with(
        "buyer-1", IdentifierType.user, POLICY.endpoint
    )


@pytest.mark.asyncio
async def test_ip_rows_never_escalate_to_captcha(rate_limits, uow_factory, clock):
    rate_limits.register_request.return_value = _tracking(
        clock, identifier="203.0.113.7", identifier_type=IdentifierType.ip, request_count=4
    )
    limiter = RateLimiter(uow_factory, clock=clock)

    decision = await limiter.check("203.0.113.7", IdentifierType.ip, POLICY)

    assert decision.state == LimitState.unthrottled
    rate_limits.require_captcha.assert_not_called()


@pytest.mark.asyncio
async def test_captcha_flag_survives_until_solved(rate_limits, uow_factory, clock):
    rate_limits.register_request.return_value = _tracking(
        clock, request_count=1, captcha_required=True
    )
    limiter = RateLimiter(uow_factory, clock=clock)

    decision = await limiter.check("buyer-1", IdentifierType.user, POLICY)

    assert decision.requires_captcha
    rate_limits.require_captcha.assert_not_called()


@pytest.mark.asyncio
async def test_over_max_blocks_for_window(rate_limits, uow_factory, clock):
    rate_limits.register_request.return_value = _tracking(clock, request_count=6)
    limiter = RateLimiter(uow_factory, clock=clock)

    decision = await limiter.check("buyer-1", IdentifierType.user, POLICY)

    assert not decision.allowed
    assert decision.state == LimitState.blocked
    assert decision.retry_after_seconds == 3600
    rate_limits.block.assert_called_once_with(
        "buyer-1", IdentifierType.user, POLICY.endpoint, clock.now + timedelta(seconds=3600)
    )


@pytest.mark.asyncio
async def test_active_block_denies_without_counting(rate_limits, uow_factory, clock):
    rate_limits.get.return_value = _tracking(
        clock, request_count=6, blocked_until=clock.now + timedelta(seconds=90, milliseconds=200)
    )
    limiter = RateLimiter(uow_factory, clock=clock)

    decision = await limiter.check("buyer-1", IdentifierType.user, POLICY)

    assert not decision.allowed
    assert decision.retry_after_seconds == 91
    rate_limits.register_request.assert_not_called()


@pytest.mark.asyncio
async def test_clear_captcha_resets_row(rate_limits, uow_factory, clock, mock_uow):
    limiter = RateLimiter(uow_factory, clock=clock)

    await limiter.clear_captcha("buyer-1", IdentifierType.user, POLICY)

    rate_limits.reset_after_captcha.assert_called_once_with(
        "buyer-1", IdentifierType.user, POLICY.endpoint, clock.now
    )
    mock_uow.commit.assert_called_once()


@pytest.mark.asyncio
async def test_excessive_failures_look_back_over_idle_ttl(rate_limits, uow_factory, clock):
    rate_limits.has_excessive_captcha_failures.return_value = True
    limiter = RateLimiter(uow_factory, idle_ttl_seconds=600, clock=clock)

    assert await limiter.has_excessive_captcha_failures("203.0.113.7", IdentifierType.ip, 5)
    rate_limits.has_excessive_captcha_failures.assert_called_once_with(
        "203.0.113.7", IdentifierType.ip, 5, clock.now - timedelta(seconds=600)
    )


@pytest.mark.asyncio
async def test_long_windows_outlive_the_idle_ttl(rate_limits, uow_factory, clock):
    daily = RateLimitPolicy("payment_submission", window_seconds=86400, max_requests=10)
    rate_limits.register_request.return_value = _tracking(clock, request_count=1)
    limiter = RateLimiter(uow_factory, idle_ttl_seconds=3600, clock=clock)

    await limiter.check("buyer-1", IdentifierType.user, daily)

    idle_cutoff = rate_limits.register_request.call_args[0][5]
    assert idle_cutoff == clock.now - timedelta(seconds=86400)
