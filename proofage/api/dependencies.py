"""FastAPI dependencies for the ProofAge API.

Provides dependency injection for:
- Settings and database sessions
- Services and managers
- Merchant API-key authentication
- Verifier callback authentication
"""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from proofage.config import Settings, get_settings
from proofage.db.session import get_session_dependency
from proofage.errors import InvalidVerifierSecretError, MissingVerifierSecretError
from proofage.managers.proof import ProofRequestManager
from proofage.services.api_key import ApiKeyService, MerchantContext
from proofage.services.assertion import AssertionIssuer, AssertionVerifier
from proofage.services.ledger import ReplayLedger

SettingsDep = Annotated[Settings, Depends(get_settings)]
SessionDep = Annotated[AsyncSession, Depends(get_session_dependency)]


def read_api_key(request: Request) -> str | None:
    """Extract the merchant credential.

    Accepts ``X-API-Key: <key>`` or ``Authorization: Bearer <key>``.
    """
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return api_key

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return None


async def get_api_key_service(session: SessionDep) -> ApiKeyService:
    return ApiKeyService(db_session=session)


async def get_proof_manager(session: SessionDep, settings: SettingsDep) -> ProofRequestManager:
    return ProofRequestManager(db_session=session, config=settings.proof)


def get_assertion_issuer(settings: SettingsDep) -> AssertionIssuer:
    return AssertionIssuer(
        signing_key=settings.security.jwt_signing_key,
        config=settings.assertion,
    )


async def get_assertion_verifier(session: SessionDep, settings: SettingsDep) -> AssertionVerifier:
    return AssertionVerifier(
        signing_key=settings.security.jwt_signing_key,
        ledger=ReplayLedger(db_session=session),
        config=settings.assertion,
        proof_config=settings.proof,
    )


ApiKeyServiceDep = Annotated[ApiKeyService, Depends(get_api_key_service)]


async def authenticate(request: Request, api_keys: ApiKeyServiceDep) -> MerchantContext:
    """Authenticate the calling merchant.

    Raises:
        MissingApiKeyError: No credential supplied
        InvalidApiKeyError: Credential unknown or revoked
    """
    return await api_keys.authenticate(read_api_key(request))


def verify_callback_secret(request: Request, settings: SettingsDep) -> None:
    """Authenticate the verifier callback channel.

    The shared secret is compared in constant time.

    Raises:
        MissingVerifierSecretError: Header absent
        InvalidVerifierSecretError: Header present but wrong
    """
    provided = request.headers.get("X-Verifier-Secret")
    if not provided:
        raise MissingVerifierSecretError()

    expected = settings.security.verifier_callback_secret
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        raise InvalidVerifierSecretError()


# Type aliases for cleaner dependency injection
AuthDep = Annotated[MerchantContext, Depends(authenticate)]
VerifierAuthDep = Depends(verify_callback_secret)
ProofManagerDep = Annotated[ProofRequestManager, Depends(get_proof_manager)]
AssertionIssuerDep = Annotated[AssertionIssuer, Depends(get_assertion_issuer)]
AssertionVerifierDep = Annotated[AssertionVerifier, Depends(get_assertion_verifier)]
