"""Unit tests for table definitions."""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import DateTime

from proofage.models import ApiKey, AssertionUse, Merchant, ProofRequest, ProofStatus
from proofage.services.ledger import ReplayLedger

TIMESTAMP_COLUMNS = [
    (Merchant, "created_at"),
    (Merchant, "updated_at"),
    (ApiKey, "created_at"),
    (ApiKey, "last_used_at"),
    (ApiKey, "revoked_at"),
    (ProofRequest, "created_at"),
    (ProofRequest, "updated_at"),
    (AssertionUse, "created_at"),
    (AssertionUse, "expires_at"),
]


@pytest.mark.parametrize(("model", "column"), TIMESTAMP_COLUMNS)
def test_timestamps_are_naive_datetime_columns(model, column):
    """Timestamps are stored as naive UTC."""
    column_type = model.__table__.c[column].type

    assert type(column_type) is DateTime
    assert column_type.timezone is False


async def test_naive_timestamps_round_trip(db_session, merchant: Merchant):
    expires_at = datetime(2030, 1, 1, 12, 30, 15)
    ledger = ReplayLedger(db_session)
    proof = ProofRequest(
        id="3f0c2b9e-1b7a-4a55-9d86-0f6f5d0a8c11",
        merchant_id=merchant.id,
        subject_ref="user_123",
        min_age=18,
        status=ProofStatus.PENDING,
    )
    db_session.add(proof)
    await db_session.commit()
    await ledger.claim(
        token_jti="jti_round_trip",
        nonce="nonce_abcdefgh",
        merchant_id=merchant.id,
        proof_request_id=proof.id,
        expires_at=expires_at,
    )

    stored = await ledger.get("jti_round_trip")
    await db_session.refresh(proof)

    assert stored.expires_at == expires_at
    assert stored.expires_at.tzinfo is None
    assert proof.created_at.tzinfo is None
