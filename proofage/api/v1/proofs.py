"""Proof request endpoints.

Merchant-facing: create, status, assertion.
Verifier-facing: callback (authenticated by the shared verifier secret).
"""

from __future__ import annotations

import uuid
from typing import Literal

from fastapi import APIRouter, Query
from pydantic import Field

from proofage.api.dependencies import (
    AssertionIssuerDep,
    AuthDep,
    ProofManagerDep,
    SettingsDep,
    VerifierAuthDep,
)
from proofage.api.schemas import CamelModel, body_error
from proofage.errors import InvalidCallbackError
from proofage.utils.datetime import isoformat

router = APIRouter()


# Request/Response Models


class CreateProofRequest(CamelModel):
    subject_ref: str = Field(min_length=3)
    # None = proof.default_min_age
    min_age: int | None = None


class CreateProofResponse(CamelModel):
    proof_request_id: str
    merchant_id: str  # the merchant's external reference
    status: str
    verify_url: str


class CallbackRequest(CamelModel):
    proof_request_id: uuid.UUID
    result: Literal["passed", "failed"]
    verifier_ref: str = Field(min_length=1)


class CallbackResponse(CamelModel):
    ok: bool = True
    already_applied: bool = False


class ProofStatusResponse(CamelModel):
    proof_request_id: str
    status: str
    min_age: int
    age_assertion: str | None
    updated_at: str


class AssertionResponse(CamelModel):
    token_type: str
    assertion: str
    expires_in_seconds: int
    nonce: str
    claim: str


# Endpoints


@router.post("/request", response_model=CreateProofResponse, status_code=201)
async def create_proof_request(
    request: CreateProofRequest,
    merchant: AuthDep,
    proofs: ProofManagerDep,
    settings: SettingsDep,
) -> CreateProofResponse:
    """Start an age verification attempt for a subject."""
    proof = await proofs.create(merchant.merchant_id, request.subject_ref, request.min_age)
    return CreateProofResponse(
        proof_request_id=proof.id,
        merchant_id=merchant.merchant_external_ref,
        status=proof.status.value,
        verify_url=f"{settings.proof.verify_url_base.rstrip('/')}/{proof.id}",
    )


@router.post("/callback", response_model=CallbackResponse, dependencies=[VerifierAuthDep])
@body_error(InvalidCallbackError)
async def proof_callback(
    request: CallbackRequest,
    proofs: ProofManagerDep,
) -> CallbackResponse:
    """Record the verifier's result for a proof request."""
    outcome = await proofs.apply_callback(
        str(request.proof_request_id),
        request.result,
        request.verifier_ref,
    )
    return CallbackResponse(already_applied=outcome.already_applied)


@router.get("/status/{proof_request_id}", response_model=ProofStatusResponse)
async def get_proof_status(
    proof_request_id: uuid.UUID,
    merchant: AuthDep,
    proofs: ProofManagerDep,
) -> ProofStatusResponse:
    """Current status of one of the merchant's proof requests."""
    proof = await proofs.get(merchant.merchant_id, str(proof_request_id))
    return ProofStatusResponse(
        proof_request_id=proof.id,
        status=proof.status.value,
        min_age=proof.min_age,
        age_assertion=proof.age_assertion,
        updated_at=isoformat(proof.updated_at),
    )


@router.get("/assertion/{proof_request_id}", response_model=AssertionResponse)
async def get_proof_assertion(
    proof_request_id: uuid.UUID,
    merchant: AuthDep,
    proofs: ProofManagerDep,
    issuer: AssertionIssuerDep,
    nonce: str | None = Query(None, min_length=8, max_length=200),
) -> AssertionResponse:
    """Mint a single-use age assertion for a passed proof."""
    proof = await proofs.get(merchant.merchant_id, str(proof_request_id))
    issued = issuer.issue(merchant, proof, nonce)
    return AssertionResponse(
        token_type=issued.token_type,
        assertion=issued.token,
        expires_in_seconds=issued.expires_in_seconds,
        nonce=issued.nonce,
        claim=issued.claim,
    )
