"""GC task base classes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession


@dataclass
class GCResult:
    """Outcome of one GC task run."""

    task_name: str = ""
    cleaned_count: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class GCTask(ABC):
    """A cleanup job that runs inside one database session."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def run(self, db_session: AsyncSession) -> GCResult:
        """Run the task. Failures should be recorded in GCResult.errors."""
        ...
