"""
RateLimitTracking Entity

Per (identifier, identifier_type, endpoint) request counter.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Column, DateTime, Field, Index, SQLModel, UniqueConstraint

from stoneguard.domain.base import utcnow

from .enums import IdentifierType


class RateLimitTracking(SQLModel, table=True):
    """
    RateLimitTracking entity - fixed-window counter with escalation flags.

    Business Rules:
    - Exactly one row per (identifier, identifier_type, endpoint); upserted
    - request_count restarts when window_start falls out of the window
    - blocked_until must elapse before request_count restarts
    - Rows idle for longer than the configured TTL are treated as expired
    - All counter changes are single-statement atomic updates
    """

    __tablename__ = "rate_limit_tracking"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    identifier: str = Field(max_length=128)
    identifier_type: IdentifierType
    endpoint: str = Field(max_length=255)

    request_count: int = Field(default=0)
    captcha_attempts: int = Field(default=0)
    captcha_required: bool = Field(default=False)

    window_start: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    last_request: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    blocked_until: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))

    __table_args__ = (
        UniqueConstraint(
            "identifier", "identifier_type", "endpoint", name="uq_rate_limit_identity"
        ),
        Index("idx_rate_limit_last_request", "last_request"),
    )
