"""GC tasks."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from proofage.config import LedgerConfig
from proofage.services.gc.base import GCResult, GCTask
from proofage.services.ledger import ReplayLedger


class ExpiredAssertionUseGC(GCTask):
    """Remove replay-ledger rows whose token can no longer verify.

    A row is only removable once its token's exp has passed, because an
    unexpired token without a ledger row would verify again.
    """

    def __init__(self, config: LedgerConfig) -> None:
        self._config = config

    @property
    def name(self) -> str:
        return "expired_assertion_use"

    async def run(self, db_session: AsyncSession) -> GCResult:
        ledger = ReplayLedger(db_session)
        removed = await ledger.prune_expired(grace_seconds=self._config.retention_grace_seconds)
        return GCResult(task_name=self.name, cleaned_count=removed)
