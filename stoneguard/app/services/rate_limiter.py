"""
Rate Limit Tracker

One parametrized limiter for every guarded purpose (quotation approval,
payment submission, ...). Each (identifier, identifier_type, endpoint) row
moves through UNTHROTTLED -> CAPTCHA_REQUIRED -> BLOCKED:

- CAPTCHA_REQUIRED once a user row's request_count exceeds the policy's
  captcha_threshold inside the window (IP rows never escalate to CAPTCHA so
  subjects sharing a NAT are not penalized for each other)
- BLOCKED once request_count exceeds max_requests; blocked_until = now + window
- A verified CAPTCHA solve resets the row to UNTHROTTLED
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from stoneguard.app.services.unit_of_work import UnitOfWorkFactory
from stoneguard.domain.base import utcnow
from stoneguard.domain.entities import IdentifierType


class LimitState(str, Enum):
    unthrottled = "UNTHROTTLED"
    captcha_required = "CAPTCHA_REQUIRED"
    blocked = "BLOCKED"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Limits applied to one identifier type on one endpoint"""

    endpoint: str
    window_seconds: int
    max_requests: int
    captcha_threshold: Optional[int] = None


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    state: LimitState
    requires_captcha: bool = False
    retry_after_seconds: int = 0
    request_count: int = 0


class RateLimiter:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        idle_ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.uow_factory = uow_factory
        self.idle_ttl_seconds = idle_ttl_seconds
        self.clock = clock

    async def check(
        self, identifier: str, identifier_type: IdentifierType, policy: RateLimitPolicy
    ) -> RateLimitDecision:
        """Count one request for the identifier and decide its state."""
        now = self.clock()
        window = timedelta(seconds=policy.window_seconds)
        uow = self.uow_factory()
        async with uow:
            repo = uow.rate_limits
            await repo.ensure(identifier, identifier_type, policy.endpoint, now)

            tracking = await repo.get(identifier, identifier_type, policy.endpoint)
            if tracking is not None and tracking.blocked_until and tracking.blocked_until > now:
                await uow.commit()
                return RateLimitDecision(
                    allowed=False,
                    state=LimitState.blocked,
                    retry_after_seconds=max(
                        0, math.ceil((tracking.blocked_until - now).total_seconds())
                    ),
                    request_count=tracking.request_count,
                )

            # A row never expires while its window could still be counting
            idle_seconds = max(self.idle_ttl_seconds, policy.window_seconds)
            tracking = await repo.register_request(
                identifier,
                identifier_type,
                policy.endpoint,
                now,
                now - window,
                now - timedelta(seconds=idle_seconds),
            )
            count = tracking.request_count if tracking is not None else 1

            if count > policy.max_requests:
                await repo.block(identifier, identifier_type, policy.endpoint, now + window)
                await uow.commit()
                return RateLimitDecision(
                    allowed=False,
                    state=LimitState.blocked,
                    retry_after_seconds=policy.window_seconds,
                    request_count=count,
                )

            requires_captcha = bool(tracking is not None and tracking.captcha_required)
            if (
                not requires_captcha
                and policy.captcha_threshold is not None
                and identifier_type == IdentifierType.user
                and count > policy.captcha_threshold
            ):
                await repo.require_captcha(identifier, identifier_type, policy.endpoint)
                requires_captcha = True

            await uow.commit()
            return RateLimitDecision(
                allowed=True,
                state=LimitState.captcha_required if requires_captcha else LimitState.unthrottled,
                requires_captcha=requires_captcha,
                request_count=count,
            )

    async def record_captcha_failure(
        self, identifier: str, identifier_type: IdentifierType, policy: RateLimitPolicy
    ) -> None:
        uow = self.uow_factory()
        async with uow:
            await uow.rate_limits.record_captcha_failure(
                identifier, identifier_type, policy.endpoint
            )
            await uow.commit()

    async def clear_captcha(
        self, identifier: str, identifier_type: IdentifierType, policy: RateLimitPolicy
    ) -> None:
        """Reset the window after a verified CAPTCHA solve."""
        uow = self.uow_factory()
        async with uow:
            await uow.rate_limits.reset_after_captcha(
                identifier, identifier_type, policy.endpoint, self.clock()
            )
            await uow.commit()

    async def has_excessive_captcha_failures(
        self, identifier: str, identifier_type: IdentifierType, min_attempts: int
    ) -> bool:
        """True while a row with min_attempts failed solves is still live (cool-down)."""
        active_since = self.clock() - timedelta(seconds=self.idle_ttl_seconds)
        uow = self.uow_factory()
        async with uow:
            return await uow.rate_limits.has_excessive_captcha_failures(
                identifier, identifier_type, min_attempts, active_since
            )
