"""Merchant API key endpoints (self-service)."""

from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import Field

from proofage.api.dependencies import ApiKeyServiceDep, AuthDep
from proofage.api.schemas import CamelModel
from proofage.models.api_key import ApiKey
from proofage.utils.datetime import isoformat

router = APIRouter()


# Request/Response Models


class CreateApiKeyRequest(CamelModel):
    label: str = Field(default="manual", min_length=2, max_length=64)


class CreateApiKeyResponse(CamelModel):
    """Contains the plaintext key; shown only once."""

    api_key_id: str
    label: str
    preview: str
    created_at: str
    api_key: str
    warning: str = "Save apiKey now. It is shown only once."


class ApiKeyResponse(CamelModel):
    api_key_id: str
    label: str
    preview: str
    created_at: str
    last_used_at: str | None = None
    revoked_at: str | None = None


class ApiKeyListResponse(CamelModel):
    items: list[ApiKeyResponse]


class RevokeApiKeyResponse(CamelModel):
    ok: bool = True
    api_key_id: str
    revoked_at: str | None
    already_revoked: bool = False


def _api_key_to_response(api_key: ApiKey) -> ApiKeyResponse:
    return ApiKeyResponse(
        api_key_id=api_key.id,
        label=api_key.label,
        preview=api_key.preview,
        created_at=isoformat(api_key.created_at),
        last_used_at=isoformat(api_key.last_used_at),
        revoked_at=isoformat(api_key.revoked_at),
    )


# Endpoints


@router.post("/api-keys", response_model=CreateApiKeyResponse, status_code=201)
async def create_api_key(
    merchant: AuthDep,
    api_keys: ApiKeyServiceDep,
    request: CreateApiKeyRequest | None = None,
) -> CreateApiKeyResponse:
    """Issue a new API key for the calling merchant."""
    label = request.label if request else "manual"
    plaintext, record = await api_keys.issue_key(merchant.merchant_id, label)
    return CreateApiKeyResponse(
        api_key_id=record.id,
        label=record.label,
        preview=record.preview,
        created_at=isoformat(record.created_at),
        api_key=plaintext,
    )


@router.get("/api-keys", response_model=ApiKeyListResponse)
async def list_api_keys(
    merchant: AuthDep,
    api_keys: ApiKeyServiceDep,
    include_revoked: bool = Query(False, alias="includeRevoked"),
) -> ApiKeyListResponse:
    """List the calling merchant's keys, newest first."""
    keys = await api_keys.list_keys(merchant.merchant_id, include_revoked=include_revoked)
    return ApiKeyListResponse(items=[_api_key_to_response(k) for k in keys])


@router.post("/api-keys/{api_key_id}/revoke", response_model=RevokeApiKeyResponse)
async def revoke_api_key(
    api_key_id: str,
    merchant: AuthDep,
    api_keys: ApiKeyServiceDep,
) -> RevokeApiKeyResponse:
    """Revoke one of the calling merchant's keys.

    Idempotent. The key used to make this call cannot revoke itself (409).
    """
    outcome = await api_keys.revoke_key(
        merchant.merchant_id,
        api_key_id,
        current_key_hash=merchant.key_hash,
    )
    return RevokeApiKeyResponse(
        api_key_id=outcome.api_key.id,
        revoked_at=isoformat(outcome.api_key.revoked_at),
        already_revoked=outcome.already_revoked,
    )
