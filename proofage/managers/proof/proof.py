"""ProofRequestManager - proof request lifecycle.

pending → passed | failed. The verifier callback is the only writer
after creation, and every write is a single-row UPDATE.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from proofage.config import ProofConfig
from proofage.db.session import bounded
from proofage.errors import (
    InvalidCallbackError,
    NotFoundError,
    ProofAlreadyFinalizedError,
    ValidationError,
)
from proofage.models.proof_request import ProofRequest, ProofStatus
from proofage.utils.datetime import utcnow

logger = structlog.get_logger()


@dataclass(frozen=True)
class CallbackOutcome:
    """Result of applying a verifier callback."""

    proof_request: ProofRequest
    already_applied: bool = False


class ProofRequestManager:
    """Manages proof request lifecycle."""

    def __init__(self, db_session: AsyncSession, config: ProofConfig | None = None) -> None:
        self._db = db_session
        self._config = config or ProofConfig()
        self._log = logger.bind(manager="proof")

    async def create(
        self,
        merchant_id: str,
        subject_ref: str,
        min_age: int | None = None,
    ) -> ProofRequest:
        """Create a pending proof request.

        Args:
            merchant_id: Owning merchant
            subject_ref: Opaque subject identifier (never raw PII)
            min_age: Threshold; defaults to proof.default_min_age

        Raises:
            ValidationError: Empty subject or threshold outside the allowed band
        """
        if min_age is None:
            min_age = self._config.default_min_age

        problems: dict[str, str] = {}
        if not isinstance(subject_ref, str) or not subject_ref.strip():
            problems["subjectRef"] = "must be a non-empty string"
        if (
            isinstance(min_age, bool)
            or not isinstance(min_age, int)
            or not self._config.min_age_floor <= min_age <= self._config.min_age_ceiling
        ):
            problems["minAge"] = (
                f"must be an integer between {self._config.min_age_floor} "
                f"and {self._config.min_age_ceiling}"
            )
        if problems:
            raise ValidationError(details=problems)

        proof = ProofRequest(
            id=str(uuid.uuid4()),
            merchant_id=merchant_id,
            subject_ref=subject_ref,
            min_age=min_age,
            status=ProofStatus.PENDING,
        )
        self._db.add(proof)
        await bounded(self._db.commit(), operation="proof.create")
        await self._db.refresh(proof)

        self._log.info(
            "proof.created",
            proof_request_id=proof.id,
            merchant_id=merchant_id,
            min_age=min_age,
        )
        return proof

    async def get(self, merchant_id: str, proof_request_id: str) -> ProofRequest:
        """Get a proof request owned by the merchant.

        Raises:
            NotFoundError: Unknown id, or owned by another merchant
        """
        result = await bounded(
            self._db.execute(
                select(ProofRequest).where(
                    ProofRequest.id == proof_request_id,
                    ProofRequest.merchant_id == merchant_id,
                )
            ),
            operation="proof.get",
        )
        proof = result.scalars().first()
        if proof is None:
            raise NotFoundError("proofRequestId not found")
        return proof

    async def get_by_id(self, proof_request_id: str) -> ProofRequest | None:
        """Get proof request by ID (internal use, no owner check)."""
        result = await bounded(
            self._db.execute(select(ProofRequest).where(ProofRequest.id == proof_request_id)),
            operation="proof.get",
        )
        return result.scalars().first()

    async def apply_callback(
        self,
        proof_request_id: str,
        result: ProofStatus | str,
        verifier_ref: str,
    ) -> CallbackOutcome:
        """Apply a verifier result.

        Looked up by id alone: verifiers have no merchant scope.

        Raises:
            InvalidCallbackError: Result is not terminal or verifier_ref is empty
            NotFoundError: Unknown proof request
            ProofAlreadyFinalizedError: Contradictory result for a terminal
                request under the reject policy
        """
        try:
            status = ProofStatus(result)
        except ValueError:
            status = None
        if status is None or not status.is_terminal:
            raise InvalidCallbackError(details={"result": "must be 'passed' or 'failed'"})
        if not verifier_ref:
            raise InvalidCallbackError(details={"verifierRef": "must be a non-empty string"})

        log = self._log.bind(proof_request_id=proof_request_id, result=status.value)

        stmt = (
            update(ProofRequest)
            .where(ProofRequest.id == proof_request_id)
            .values(status=status, verifier_ref=verifier_ref, updated_at=utcnow())
        )
        if self._config.callback_policy == "reject":
            stmt = stmt.where(ProofRequest.status == ProofStatus.PENDING)

        update_result = await bounded(self._db.execute(stmt), operation="proof.callback")
        await bounded(self._db.commit(), operation="proof.callback")

        proof = await self.get_by_id(proof_request_id)
        if proof is None:
            raise NotFoundError("proofRequestId not found")
        await self._db.refresh(proof)

        if update_result.rowcount == 1:
            log.info("proof.callback.applied", policy=self._config.callback_policy)
            return CallbackOutcome(proof_request=proof)

        # Reject policy and the request was already terminal
        if proof.status == status and proof.verifier_ref == verifier_ref:
            log.info("proof.callback.duplicate")
            return CallbackOutcome(proof_request=proof, already_applied=True)

        log.warning(
            "proof.callback.rejected",
            current_status=proof.status.value,
            reason="already_finalized",
        )
        raise ProofAlreadyFinalizedError(
            details={"status": proof.status.value},
        )
