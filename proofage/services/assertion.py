"""Age assertion issuance and verification.

An assertion is an HS256 JWT that says "subject is over T" and nothing
more. It is bound to one merchant (aud), one relying-party challenge
(nonce) and one use (jti, enforced by the replay ledger).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import jwt
import structlog
from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from proofage.config import AssertionConfig, ProofConfig
from proofage.errors import (
    InvalidAssertionClaimsError,
    InvalidAssertionError,
    NonceMismatchError,
    NotFoundError,
    ProofNotPassedError,
    SubjectMismatchError,
    ValidationError,
)
from proofage.models.proof_request import ProofRequest, ProofStatus
from proofage.services.api_key import MerchantContext
from proofage.services.ledger import ReplayLedger
from proofage.utils.datetime import from_epoch, to_epoch, utcnow

logger = structlog.get_logger()

_ALGORITHM = "HS256"
_MIN_JTI_LENGTH = 8


@dataclass(frozen=True)
class IssuedAssertion:
    """A freshly minted assertion token."""

    token: str
    expires_in_seconds: int
    nonce: str
    claim: str
    jti: str
    issued_at: datetime
    expires_at: datetime
    token_type: str = "Bearer"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a successful verification.

    meets_min_age=False is a normal answer, not an error.
    """

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
    issued_at: datetime | None
    expires_at: datetime | None


class AssertionClaims(BaseModel):
    """Expected shape of the private assertion claims."""

    model_config = ConfigDict(extra="ignore")

    age_over: StrictInt
    nonce: StrictStr
    proof_request_id: uuid.UUID | None = None
    verifier_ref: StrictStr | None = None


class AssertionIssuer:
    """Mints signed, audience-bound, time-limited age assertions.

    Nothing is persisted at issuance: the same proof can be asserted many
    times with different nonces, each independently single-use.
    """

    def __init__(self, signing_key: str, config: AssertionConfig | None = None) -> None:
        self._signing_key = signing_key
        self._config = config or AssertionConfig()
        self._log = logger.bind(service="assertion_issuer")

    def issue(
        self,
        merchant: MerchantContext,
        proof: ProofRequest,
        nonce: str | None = None,
        *,
        now: datetime | None = None,
    ) -> IssuedAssertion:
        """Issue an assertion for a passed proof.

        Args:
            merchant: Requesting merchant (becomes the audience)
            proof: Proof request; must be owned by merchant and passed
            nonce: Relying-party challenge; generated when omitted
            now: Issue time override (naive UTC)

        Raises:
            NotFoundError: Proof belongs to another merchant
            ProofNotPassedError: Proof is not in the passed state
            ValidationError: Nonce length outside the allowed range
        """
        if proof.merchant_id != merchant.merchant_id:
            raise NotFoundError("proofRequestId not found")

        if proof.status != ProofStatus.PASSED:
            raise ProofNotPassedError(details={"status": ProofStatus(proof.status).value})

        if nonce is None:
            nonce = str(uuid.uuid4())
        elif not (self._config.min_nonce_length <= len(nonce) <= self._config.max_nonce_length):
            raise ValidationError(
                details={
                    "nonce": (
                        f"must be {self._config.min_nonce_length}-"
                        f"{self._config.max_nonce_length} characters"
                    )
                }
            )

        issued_at = (now or utcnow()).replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=self._config.ttl_seconds)
        jti = str(uuid.uuid4())

        payload: dict[str, Any] = {
            "age_over": proof.min_age,
            "nonce": nonce,
            "proof_request_id": proof.id,
            "iss": self._config.issuer,
            "aud": merchant.merchant_external_ref,
            "sub": proof.subject_ref,
            "jti": jti,
            "iat": to_epoch(issued_at),
            "exp": to_epoch(expires_at),
        }
        if proof.verifier_ref is not None:
            payload["verifier_ref"] = proof.verifier_ref

        token = jwt.encode(
            payload,
            self._signing_key,
            algorithm=_ALGORITHM,
            headers={"typ": "JWT"},
        )

        self._log.info(
            "assertion.issued",
            proof_request_id=proof.id,
            merchant_id=merchant.merchant_id,
            jti=jti,
            age_over=proof.min_age,
        )
        return IssuedAssertion(
            token=token,
            expires_in_seconds=self._config.ttl_seconds,
            nonce=nonce,
            claim=f"age_over_{proof.min_age}",
            jti=jti,
            issued_at=issued_at,
            expires_at=expires_at,
        )


class AssertionVerifier:
    """Verifies assertions at a relying party and consumes them once."""

    def __init__(
        self,
        signing_key: str,
        ledger: ReplayLedger,
        config: AssertionConfig | None = None,
        proof_config: ProofConfig | None = None,
    ) -> None:
        self._signing_key = signing_key
        self._ledger = ledger
        self._config = config or AssertionConfig()
        self._proof_config = proof_config or ProofConfig()
        self._log = logger.bind(service="assertion_verifier")

    async def verify(
        self,
        merchant: MerchantContext,
        token: str,
        required_min_age: int | None,
        expected_nonce: str,
        expected_subject_ref: str | None = None,
    ) -> VerificationResult:
        """Verify an assertion and record it in the replay ledger.

        Checks run in order and stop at the first failure:
        signature/issuer/audience/expiry, claim shape, nonce, subject,
        token identifier, ledger claim.

        required_min_age defaults to proof.default_min_age and must lie in the
        configured age band.

        Raises:
            ValidationError: required_min_age outside the age band
            InvalidAssertionError: Cryptographic or registered-claim failure
            InvalidAssertionClaimsError: Private claims or jti malformed
            NonceMismatchError: Nonce differs from expected_nonce
            SubjectMismatchError: Subject differs from expected_subject_ref
            AssertionReplayedError: Token already consumed
        """
        required_min_age = self._required_min_age(required_min_age)
        log = self._log.bind(merchant_id=merchant.merchant_id)

        # 1. Signature, issuer, audience, expiry
        try:
            payload = jwt.decode(
                token,
                self._signing_key,
                algorithms=[_ALGORITHM],
                issuer=self._config.issuer,
                audience=merchant.merchant_external_ref,
                options={"require": ["exp", "iat", "iss", "aud"]},
            )
        except jwt.InvalidTokenError as e:
            log.info("assertion.verify.invalid", reason=type(e).__name__)
            raise InvalidAssertionError() from e

        # 2. Claim shape
        try:
            claims = AssertionClaims.model_validate(payload)
        except PydanticValidationError as e:
            log.info("assertion.verify.bad_claims")
            raise InvalidAssertionClaimsError(
                details={
                    "errors": e.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                }
            ) from e
        shape_problems = self._claim_band_problems(claims)
        if shape_problems:
            log.info("assertion.verify.bad_claims")
            raise InvalidAssertionClaimsError(details=shape_problems)

        # 3. Nonce binding
        if claims.nonce != expected_nonce:
            log.info("assertion.verify.nonce_mismatch")
            raise NonceMismatchError()

        # 4. Subject binding
        subject_ref = payload.get("sub")
        if expected_subject_ref is not None and subject_ref != expected_subject_ref:
            log.info("assertion.verify.subject_mismatch")
            raise SubjectMismatchError()

        # 5. Token identifier
        token_jti = payload.get("jti")
        if not isinstance(token_jti, str) or len(token_jti) < _MIN_JTI_LENGTH:
            raise InvalidAssertionClaimsError("Assertion jti claim is required")

        proof_request_id = str(claims.proof_request_id) if claims.proof_request_id else None
        expires_at = from_epoch(payload["exp"])

        # 6. Single use
        await self._ledger.claim(
            token_jti=token_jti,
            nonce=claims.nonce,
            merchant_id=merchant.merchant_id,
            subject_ref=subject_ref if isinstance(subject_ref, str) else None,
            proof_request_id=proof_request_id,
            expires_at=expires_at,
        )

        # 7. Result
        meets_min_age = claims.age_over >= required_min_age
        log.info(
            "assertion.verify.accepted",
            jti=token_jti,
            meets_min_age=meets_min_age,
            required_min_age=required_min_age,
        )
        return VerificationResult(
            valid=True,
            meets_min_age=meets_min_age,
            required_min_age=required_min_age,
            asserted_age_over=claims.age_over,
            nonce=claims.nonce,
            subject_ref=subject_ref,
            proof_request_id=proof_request_id,
            verifier_ref=claims.verifier_ref,
            issuer=payload.get("iss"),
            audience=payload.get("aud"),
            issued_at=from_epoch(payload["iat"]),
            expires_at=expires_at,
        )

    def _required_min_age(self, required_min_age: int | None) -> int:
        if required_min_age is None:
            return self._proof_config.default_min_age
        floor, ceiling = self._proof_config.min_age_floor, self._proof_config.min_age_ceiling
        if isinstance(required_min_age, bool) or not floor <= required_min_age <= ceiling:
            raise ValidationError(
                details={"requiredMinAge": f"must be an integer between {floor} and {ceiling}"}
            )
        return required_min_age

    def _claim_band_problems(self, claims: AssertionClaims) -> dict[str, str]:
        problems: dict[str, str] = {}
        floor, ceiling = self._proof_config.min_age_floor, self._proof_config.min_age_ceiling
        if not floor <= claims.age_over <= ceiling:
            problems["age_over"] = f"must be between {floor} and {ceiling}"
        if not (
            self._config.min_nonce_length <= len(claims.nonce) <= self._config.max_nonce_length
        ):
            problems["nonce"] = (
                f"must be {self._config.min_nonce_length}-"
                f"{self._config.max_nonce_length} characters"
            )
        return problems
