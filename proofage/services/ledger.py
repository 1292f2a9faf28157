"""Replay ledger.

The ledger is a set with one atomic operation: insert-if-absent keyed by
the token identifier. A uniqueness violation from the storage layer is the
replay signal. There is no read-before-write: a check-then-insert
would race under concurrent verification.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from sqlalchemy import delete, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from proofage.db.session import bounded
from proofage.errors import AssertionReplayedError, StorageTimeoutError
from proofage.models.assertion_use import AssertionUse
from proofage.utils.datetime import utcnow

logger = structlog.get_logger()


class ReplayLedger:
    """Durable record of consumed assertion tokens."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session
        self._log = logger.bind(service="replay_ledger")

    async def claim(
        self,
        *,
        token_jti: str,
        nonce: str,
        merchant_id: str,
        subject_ref: str | None = None,
        proof_request_id: str | None = None,
        expires_at: datetime | None = None,
    ) -> AssertionUse:
        """Atomically record a token as consumed.

        The insert and commit are all-or-nothing; on any failure the session
        is rolled back before the error propagates.

        Raises:
            AssertionReplayedError: A row for token_jti already exists
            StorageTimeoutError: The insert did not complete in time
        """
        entry = AssertionUse(
            token_jti=token_jti,
            nonce=nonce,
            subject_ref=subject_ref,
            merchant_id=merchant_id,
            proof_request_id=proof_request_id,
            expires_at=expires_at,
            created_at=utcnow(),
        )

        try:
            await bounded(
                self._db.execute(insert(AssertionUse).values(**entry.model_dump())),
                operation="ledger.claim",
            )
            await bounded(self._db.commit(), operation="ledger.claim")
        except IntegrityError as e:
            await self._db.rollback()
            self._log.warning(
                "ledger.claim.replayed",
                token_jti=token_jti,
                merchant_id=merchant_id,
            )
            raise AssertionReplayedError() from e
        except StorageTimeoutError:
            await self._db.rollback()
            raise

        self._log.info(
            "ledger.claim.recorded",
            token_jti=token_jti,
            merchant_id=merchant_id,
            proof_request_id=proof_request_id,
        )
        return entry

    async def get(self, token_jti: str) -> AssertionUse | None:
        """Look up a ledger entry (audit/testing; not used for replay checks)."""
        result = await self._db.execute(
            select(AssertionUse).where(AssertionUse.token_jti == token_jti)
        )
        return result.scalars().first()

    async def prune_expired(
        self,
        *,
        now: datetime | None = None,
        grace_seconds: int = 0,
    ) -> int:
        """Delete entries whose token expired more than grace_seconds ago.

        Entries without an expiry are kept.

        Returns:
            Number of rows removed
        """
        cutoff = (now or utcnow()) - timedelta(seconds=grace_seconds)
        result = await bounded(
            self._db.execute(
                delete(AssertionUse).where(
                    AssertionUse.expires_at.is_not(None),
                    AssertionUse.expires_at < cutoff,
                )
            ),
            operation="ledger.prune",
        )
        await bounded(self._db.commit(), operation="ledger.prune")

        removed = result.rowcount or 0
        if removed:
            self._log.info("ledger.pruned", removed=removed, cutoff=cutoff.isoformat())
        return removed
