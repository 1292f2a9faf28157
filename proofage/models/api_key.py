"""API Key data model.

Stores hashed API keys for merchant authentication.
Plaintext keys are never stored, only SHA-256 hashes.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from proofage.utils.datetime import utcnow


class ApiKey(SQLModel, table=True):
    """API Key belonging to exactly one merchant.

    Keys are never deleted. Revocation sets revoked_at and is one-way.
    """

    __tablename__ = "api_keys"

    id: str = Field(primary_key=True)
    merchant_id: str = Field(foreign_key="merchants.id", index=True)
    key_hash: str = Field(unique=True, index=True)  # SHA-256 hex digest
    preview: str  # e.g. "pkr_1a2b...9f0e"
    label: str = Field(default="manual")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())
    last_used_at: Optional[datetime] = Field(default=None, sa_type=DateTime())
    revoked_at: Optional[datetime] = Field(default=None, index=True, sa_type=DateTime())

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None
