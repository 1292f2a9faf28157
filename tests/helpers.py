"""Test helpers shared across test modules."""

from __future__ import annotations

import uuid

from proofage.models.merchant import Merchant
from proofage.models.proof_request import ProofRequest, ProofStatus
from proofage.services.api_key import ApiKeyService, MerchantContext

SIGNING_KEY = "test_signing_key_0123456789abcdef0123456789"
VERIFIER_SECRET = "test_verifier_secret_0123456789"


def make_context(merchant: Merchant, api_key_id: str = "ak_test") -> MerchantContext:
    """Build the identity a request authenticated as merchant would carry."""
    return MerchantContext(
        merchant_id=merchant.id,
        merchant_external_ref=merchant.external_ref,
        api_key_id=api_key_id,
        key_hash=ApiKeyService.hash_key(f"pkr_{api_key_id}"),
    )


def make_proof(
    merchant: Merchant,
    *,
    status: ProofStatus = ProofStatus.PASSED,
    min_age: int = 18,
    subject_ref: str = "user_123",
    verifier_ref: str | None = "ver_abc",
) -> ProofRequest:
    """Build an unsaved proof request (the issuer never touches storage)."""
    return ProofRequest(
        id=str(uuid.uuid4()),
        merchant_id=merchant.id,
        subject_ref=subject_ref,
        min_age=min_age,
        status=status,
        verifier_ref=verifier_ref,
    )
