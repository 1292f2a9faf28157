"""Unit tests for AssertionIssuer."""

from __future__ import annotations

from datetime import datetime

import jwt
import pytest

from proofage.config import AssertionConfig
from proofage.errors import NotFoundError, ProofNotPassedError, ValidationError
from proofage.models.merchant import Merchant
from proofage.models.proof_request import ProofStatus
from proofage.services.api_key import MerchantContext
from proofage.services.assertion import AssertionIssuer
from tests.helpers import SIGNING_KEY, make_proof


@pytest.fixture
def issuer() -> AssertionIssuer:
    return AssertionIssuer(SIGNING_KEY)


def _decode(token: str, audience: str = "merchant_demo") -> dict:
    return jwt.decode(
        token,
        SIGNING_KEY,
        algorithms=["HS256"],
        audience=audience,
        issuer="proofage-rail",
    )


class TestIssue:
    def test_claims(self, issuer: AssertionIssuer, merchant: Merchant, merchant_ctx):
        proof = make_proof(merchant, min_age=18, subject_ref="user_123")

        issued = issuer.issue(merchant_ctx, proof, "nonce_1700000000")
        payload = _decode(issued.token)

        assert payload["age_over"] == 18
        assert payload["nonce"] == "nonce_1700000000"
        assert payload["proof_request_id"] == proof.id
        assert payload["verifier_ref"] == "ver_abc"
        assert payload["sub"] == "user_123"
        assert payload["aud"] == "merchant_demo"
        assert payload["iss"] == "proofage-rail"
        assert payload["jti"] == issued.jti
        assert payload["exp"] - payload["iat"] == 600

    def test_response_fields(self, issuer: AssertionIssuer, merchant: Merchant, merchant_ctx):
        issued = issuer.issue(merchant_ctx, make_proof(merchant, min_age=21), "nonce_abcdefgh")

        assert issued.token_type == "Bearer"
        assert issued.expires_in_seconds == 600
        assert issued.nonce == "nonce_abcdefgh"
        assert issued.claim == "age_over_21"

    def test_header(self, issuer: AssertionIssuer, merchant: Merchant, merchant_ctx):
        issued = issuer.issue(merchant_ctx, make_proof(merchant), "nonce_abcdefgh")

        header = jwt.get_unverified_header(issued.token)
        assert header == {"alg": "HS256", "typ": "JWT"}

    def test_generates_nonce_when_omitted(
        self, issuer: AssertionIssuer, merchant: Merchant, merchant_ctx
    ):
        issued = issuer.issue(merchant_ctx, make_proof(merchant))

        assert len(issued.nonce) == 36
        assert _decode(issued.token)["nonce"] == issued.nonce

    def test_each_issue_has_unique_jti(
        self, issuer: AssertionIssuer, merchant: Merchant, merchant_ctx
    ):
        proof = make_proof(merchant)
        first = issuer.issue(merchant_ctx, proof, "nonce_abcdefgh")
        second = issuer.issue(merchant_ctx, proof, "nonce_abcdefgh")

        assert first.jti != second.jti
        assert first.token != second.token

    def test_verifier_ref_omitted_when_unset(
        self, issuer: AssertionIssuer, merchant: Merchant, merchant_ctx
    ):
        issued = issuer.issue(merchant_ctx, make_proof(merchant, verifier_ref=None))

        assert "verifier_ref" not in _decode(issued.token)

    def test_issued_at_has_whole_seconds(
        self, issuer: AssertionIssuer, merchant: Merchant, merchant_ctx
    ):
        now = datetime(2024, 1, 2, 3, 4, 5, 678901)

        issued = issuer.issue(merchant_ctx, make_proof(merchant), now=now)

        assert issued.issued_at == datetime(2024, 1, 2, 3, 4, 5)
        assert issued.expires_at == datetime(2024, 1, 2, 3, 14, 5)

    def test_custom_ttl_and_issuer(self, merchant: Merchant, merchant_ctx):
        issuer = AssertionIssuer(SIGNING_KEY, AssertionConfig(issuer="rail-test", ttl_seconds=60))

        issued = issuer.issue(merchant_ctx, make_proof(merchant))
        payload = jwt.decode(
            issued.token,
            SIGNING_KEY,
            algorithms=["HS256"],
            audience="merchant_demo",
            issuer="rail-test",
        )

        assert issued.expires_in_seconds == 60
        assert payload["exp"] - payload["iat"] == 60


class TestIssueRejections:
    @pytest.mark.parametrize("status", [ProofStatus.PENDING, ProofStatus.FAILED])
    def test_not_passed(
        self, issuer: AssertionIssuer, merchant: Merchant, merchant_ctx, status: ProofStatus
    ):
        with pytest.raises(ProofNotPassedError) as exc_info:
            issuer.issue(merchant_ctx, make_proof(merchant, status=status))
        assert exc_info.value.details == {"status": status.value}

    def test_other_merchants_proof(
        self, issuer: AssertionIssuer, merchant: Merchant, other_merchant_ctx: MerchantContext
    ):
        with pytest.raises(NotFoundError):
            issuer.issue(other_merchant_ctx, make_proof(merchant))

    @pytest.mark.parametrize("nonce", ["short", "n" * 201])
    def test_nonce_length(
        self, issuer: AssertionIssuer, merchant: Merchant, merchant_ctx, nonce: str
    ):
        with pytest.raises(ValidationError):
            issuer.issue(merchant_ctx, make_proof(merchant), nonce)
