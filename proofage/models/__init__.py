"""SQLModel data models."""

from proofage.models.api_key import ApiKey
from proofage.models.assertion_use import AssertionUse
from proofage.models.merchant import Merchant
from proofage.models.proof_request import ProofRequest, ProofStatus

__all__ = [
    "ApiKey",
    "AssertionUse",
    "Merchant",
    "ProofRequest",
    "ProofStatus",
]
