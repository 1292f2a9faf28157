"""Proof request data model.

One age-verification attempt. Status moves from PENDING to a terminal
state exactly once (unless the overwrite callback policy is configured).
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from proofage.utils.datetime import utcnow


class ProofStatus(str, Enum):
    """Proof request lifecycle status."""

    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ProofStatus.PENDING


class ProofRequest(SQLModel, table=True):
    """Proof request owned by a merchant."""

    __tablename__ = "proof_requests"

    id: str = Field(primary_key=True)  # UUID4, shared with the verifier
    merchant_id: str = Field(foreign_key="merchants.id", index=True)

    # Immutable after creation
    subject_ref: str
    min_age: int

    status: ProofStatus = Field(default=ProofStatus.PENDING)
    verifier_ref: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime())

    @property
    def age_assertion(self) -> str | None:
        """Claim label for a passed proof, e.g. "age_over_18"."""
        if self.status is ProofStatus.PASSED:
            return f"age_over_{self.min_age}"
        return None
