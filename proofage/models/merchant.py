"""Merchant data model.

A merchant is an API consumer. Its external_ref is the public identifier
used as the assertion audience.
"""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from proofage.utils.datetime import utcnow


class Merchant(SQLModel, table=True):
    """Merchant - owner of API keys and proof requests."""

    __tablename__ = "merchants"

    id: str = Field(primary_key=True)
    external_ref: str = Field(unique=True, index=True)
    name: str

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())
