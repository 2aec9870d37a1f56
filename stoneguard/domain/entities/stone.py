"""
Stone Entity

Catalog item whose stock is decremented when an order is confirmed.
"""

from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class Stone(SQLModel, table=True):
    __tablename__ = "stones"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255)
    price_unit: str = Field(default="sqft", max_length=32)
    stock_quantity: int = Field(default=0, ge=0)
