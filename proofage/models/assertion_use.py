"""Assertion use data model (replay ledger).

One row per successfully verified assertion token. The primary key on
token_jti is what makes verification at-most-once: inserting a second
row for the same token fails at the storage layer.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from proofage.utils.datetime import utcnow


class AssertionUse(SQLModel, table=True):
    """Consumed assertion token. Never mutated."""

    __tablename__ = "assertion_uses"

    token_jti: str = Field(primary_key=True)
    nonce: str
    subject_ref: Optional[str] = Field(default=None)
    merchant_id: str = Field(foreign_key="merchants.id", index=True)
    proof_request_id: Optional[str] = Field(default=None, index=True)

    # Retained at least until this instant; prunable afterwards
    expires_at: Optional[datetime] = Field(default=None, index=True, sa_type=DateTime())
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())
