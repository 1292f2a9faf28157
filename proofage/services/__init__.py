"""Service layer."""

from proofage.services.api_key import ApiKeyService, MerchantContext
from proofage.services.assertion import AssertionIssuer, AssertionVerifier
from proofage.services.ledger import ReplayLedger

__all__ = [
    "ApiKeyService",
    "AssertionIssuer",
    "AssertionVerifier",
    "MerchantContext",
    "ReplayLedger",
]
