from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from stoneguard.domain.entities import IdentifierType, RateLimitTracking


class IRateLimitRepository(ABC):
    """
    RateLimitTracking repository interface - application layer

    Every mutation is a single atomic statement so interleaved requests
    cannot lose increments.
    """

    @abstractmethod
    async def ensure(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str, now: datetime
    ) -> None:
        """Create the tracking row if it does not exist yet (upsert, no overwrite)"""
        pass

    @abstractmethod
    async def get(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str
    ) -> Optional[RateLimitTracking]:
        """Get the tracking row"""
        pass

    @abstractmethod
    async def register_request(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        endpoint: str,
        now: datetime,
        window_cutoff: datetime,
        idle_cutoff: datetime,
    ) -> Optional[RateLimitTracking]:
        """
        Count one request.

        Restarts the window (count=1) when window_start < window_cutoff or an
        elapsed block is present, otherwise increments request_count.
        A row idle since before idle_cutoff is expired: its CAPTCHA flag and
        failed attempts are cleared as well.
        Returns the row as it is after the update.
        """
        pass

    @abstractmethod
    async def block(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        endpoint: str,
        blocked_until: datetime,
    ) -> None:
        """Block the identifier until the given time"""
        pass

    @abstractmethod
    async def require_captcha(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str
    ) -> None:
        """Flag the row as requiring a CAPTCHA solve"""
        pass

    @abstractmethod
    async def record_captcha_failure(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str
    ) -> None:
        """Atomically increment captcha_attempts"""
        pass

    @abstractmethod
    async def reset_after_captcha(
        self, identifier: str, identifier_type: IdentifierType, endpoint: str, now: datetime
    ) -> None:
        """Clear counters and the CAPTCHA requirement after a verified solve"""
        pass

    @abstractmethod
    async def has_excessive_captcha_failures(
        self,
        identifier: str,
        identifier_type: IdentifierType,
        min_attempts: int,
        active_since: datetime,
    ) -> bool:
        """True when any live row for the identifier has at least min_attempts failures"""
        pass
