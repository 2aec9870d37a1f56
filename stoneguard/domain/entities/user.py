"""
User Entity

Credential store consulted by re-authentication. Account management lives
outside this service.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Column, DateTime, Field, SQLModel

from stoneguard.domain.base import utcnow


class User(SQLModel, table=True):
    """
    User entity - a buyer, sales rep or admin.

    Business Rules:
    - Password stored as bcrypt hash
    - role holds the raw stored role string (admin, customer, employee);
      it is normalized to a canonical Role before any authorization decision
    """

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=60)
    role: str = Field(default="customer", max_length=32)
    company_name: Optional[str] = Field(default=None, max_length=255)

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
