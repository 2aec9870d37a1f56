"""
Per-process security state.

Holds the in-memory limiters and the WAF matcher. One context is built per
application instance (and per test app), never shared through module globals.
"""

from dataclasses import dataclass

from stoneguard.app.services.concurrency import ConcurrencyLimiter, RequestQueue
from stoneguard.app.services.waf import WafFilter


@dataclass
class SecurityContext:
    approval_throttle: ConcurrencyLimiter
    payment_throttle: ConcurrencyLimiter
    analytics_queue: RequestQueue
    waf: WafFilter

    @classmethod
    def from_config(cls, config) -> "SecurityContext":
        return cls(
            approval_throttle=ConcurrencyLimiter(
                config.APPROVAL_MAX_CONCURRENT, config.APPROVAL_RETRY_AFTER_SECONDS
            ),
            payment_throttle=ConcurrencyLimiter(
                config.PAYMENT_MAX_CONCURRENT, config.PAYMENT_RETRY_AFTER_SECONDS
            ),
            analytics_queue=RequestQueue(
                config.ANALYTICS_MAX_CONCURRENT, config.ANALYTICS_QUEUE_TIMEOUT_SECONDS
            ),
            waf=WafFilter(),
        )
