"""Relying-party endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import Field

from proofage.api.dependencies import AssertionVerifierDep, AuthDep
from proofage.api.schemas import CamelModel
from proofage.utils.datetime import isoformat

router = APIRouter()


class VerifyAssertionRequest(CamelModel):
    assertion: str = Field(min_length=20)
    required_min_age: int | None = None
    expected_nonce: str = Field(min_length=8, max_length=200)
    expected_subject_ref: str | None = Field(default=None, min_length=3)


class VerifyAssertionResponse(CamelModel):
    valid: bool
    meets_min_age: bool
    required_min_age: int
    asserted_age_over: int
    nonce: str
    subject_ref: str | None
    proof_request_id: str | None
    verifier_ref: str | None
    issuer: str | None
    audience: str | list[str] | None
    issued_at: str | None
    expires_at: str | None


@router.post("/verify-assertion", response_model=VerifyAssertionResponse)
async def verify_assertion(
    request: VerifyAssertionRequest,
    merchant: AuthDep,
    verifier: AssertionVerifierDep,
) -> VerifyAssertionResponse:
    """Verify an assertion and consume it.

    Each assertion verifies at most once; repeats return 409 ASSERTION_REPLAYED.
    """
    result = await verifier.verify(
        merchant,
        request.assertion,
        required_min_age=request.required_min_age,
        expected_nonce=request.expected_nonce,
        expected_subject_ref=request.expected_subject_ref,
    )
    return VerifyAssertionResponse(
        valid=result.valid,
        meets_min_age=result.meets_min_age,
        required_min_age=result.required_min_age,
        asserted_age_over=result.asserted_age_over,
        nonce=result.nonce,
        subject_ref=result.subject_ref,
        proof_request_id=result.proof_request_id,
        verifier_ref=result.verifier_ref,
        issuer=result.issuer,
        audience=result.audience,
        issued_at=isoformat(result.issued_at),
        expires_at=isoformat(result.expires_at),
    )
