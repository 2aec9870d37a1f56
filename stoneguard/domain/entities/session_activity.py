"""
SessionActivity Entity

Last-seen network and device facts per subject, used for anomaly detection.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import JSON, Column, DateTime, Field, SQLModel


class SessionActivity(SQLModel, table=True):
    """
    SessionActivity entity - one row per authenticated subject.

    Business Rules:
    - Created on the first tracked action of a subject, updated on every one after
    - known_ips entries: {"ip", "first_seen", "last_seen", "count"} (ISO timestamps)
    - known_ips ages out entries unseen for the retention period and is capped
    - Never deleted by this service
    """

    __tablename__ = "session_activity"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    subject_id: UUID = Field(unique=True, index=True)

    last_ip_address: str = Field(default="", max_length=64)
    last_user_agent: str = Field(default="", max_length=200)
    last_activity: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    device_fingerprint: Optional[str] = Field(default=None, max_length=255)

    known_ips: list = Field(default_factory=list, sa_column=Column(JSON))
