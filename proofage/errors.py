"""ProofAge error types.

Error codes are stable strings for programmatic handling. Every rejected
operation is rendered as::

    {"error": {"code": ..., "message": ..., "details": ..., "request_id": ...}}
"""

from __future__ import annotations

from typing import Any


class ProofAgeError(Exception):
    """Base error for all ProofAge exceptions."""

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"
    status_code: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        """Serialize to the error envelope."""
        body: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }
        if request_id:
            body["request_id"] = request_id
        return {"error": body}


# ---- Authentication (401) ----


class UnauthorizedError(ProofAgeError):
    """Authentication failed (401)."""

    code = "UNAUTHORIZED"
    message = "Authentication required"
    status_code = 401


class MissingApiKeyError(UnauthorizedError):
    code = "MISSING_API_KEY"
    message = "x-api-key header is required"


class InvalidApiKeyError(UnauthorizedError):
    code = "INVALID_API_KEY"
    message = "API key is invalid or revoked"


class MissingVerifierSecretError(UnauthorizedError):
    code = "MISSING_VERIFIER_SECRET"
    message = "x-verifier-secret header is required"


class InvalidVerifierSecretError(UnauthorizedError):
    code = "INVALID_VERIFIER_SECRET"
    message = "verifier secret is invalid"


class InvalidAssertionError(UnauthorizedError):
    """Signature, issuer, audience or expiry check failed."""

    code = "INVALID_ASSERTION"
    message = "Assertion is invalid, expired, or not issued for this merchant"


# ---- Validation (400) ----


class ValidationError(ProofAgeError):
    """Request validation error (400)."""

    code = "INVALID_REQUEST"
    message = "Request body is invalid"
    status_code = 400


class InvalidCallbackError(ValidationError):
    code = "INVALID_CALLBACK"
    message = "Callback body is invalid"


class InvalidAssertionClaimsError(ValidationError):
    code = "INVALID_ASSERTION_CLAIMS"
    message = "Assertion payload is invalid"


# ---- Not found (404) ----


class NotFoundError(ProofAgeError):
    """Resource not found or not visible to the caller (404)."""

    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = 404


# ---- State conflicts (409) ----


class ConflictError(ProofAgeError):
    """State conflict (409)."""

    code = "CONFLICT"
    message = "Conflict"
    status_code = 409


class CannotRevokeCurrentKeyError(ConflictError):
    code = "CANNOT_REVOKE_CURRENT_KEY"
    message = "Use another active key to revoke this key"


class ProofNotPassedError(ConflictError):
    code = "PROOF_NOT_PASSED"
    message = "Age assertion is available only for passed proofs"


class ProofAlreadyFinalizedError(ConflictError):
    code = "PROOF_ALREADY_FINALIZED"
    message = "Proof request already has a different final result"


class NonceMismatchError(ConflictError):
    code = "NONCE_MISMATCH"
    message = "Assertion nonce does not match expectedNonce"


class SubjectMismatchError(ConflictError):
    code = "SUBJECT_MISMATCH"
    message = "Assertion subject does not match expectedSubjectRef"


class AssertionReplayedError(ConflictError):
    code = "ASSERTION_REPLAYED"
    message = "Assertion has already been consumed or nonce was already used"


# ---- Infrastructure (5xx) ----


class StorageTimeoutError(ProofAgeError):
    """A storage round-trip exceeded its deadline (503).

    Reads may be retried. A timed-out ledger claim cannot tell "not applied"
    from "applied, response lost", so it must not be retried blindly.
    """

    code = "STORAGE_TIMEOUT"
    message = "Storage did not respond in time"
    status_code = 503
    retryable = True
