"""Repository ports for user tracking data.

Implementations:
- calorieai.infrastructure.persistence.in_memory (tests, local dev)
- calorieai.infrastructure.persistence.supabase_store (production)
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Protocol

from calorieai.domain.tracking.entities import (
    AnalysisLogEntry,
    FoodLogEntry,
    ScanQuota,
    UserContext,
    WaterLogEntry,
)


class IUserDirectory(Protocol):
    """Resolves bearer tokens to users."""

    async def resolve(self, token: str) -> Optional[UserContext]:
        """
        Return the user owning ``token``.

        Returns:
            UserContext, or None if the token is unknown or expired
        """
        ...


class IQuotaRepository(Protocol):
    """
    Per-user plan and daily scan counter.

    A scan is reserved before the provider call and released if it fails,
    so concurrent scans of one user can never exceed the daily limit.

    Example usage (application layer):
        >>> quota = await repository.reserve("user123", 3, utc_today())
        >>> if quota is None:
        ...     raise QuotaExceededError("Daily limit reached", limit=3)
    """

    async def get(self, user_id: str) -> ScanQuota:
        """Current quota; users without a row get a fresh free-plan quota."""
        ...

    async def save(self, quota: ScanQuota) -> None:
        ...

    async def reserve(self, user_id: str, limit: int, day: date) -> Optional[ScanQuota]:
        """
        Count one scan on ``day`` if the user has one left.

        The check and the increment are atomic.

        Returns:
            The updated quota, or None if the limit was already reached
        """
        ...

    async def release(self, user_id: str, day: date) -> None:
        """Give back one scan reserved on ``day``."""
        ...


class IAnalysisLogRepository(Protocol):
    async def add(self, entry: AnalysisLogEntry) -> None:
        ...


class IFoodLogRepository(Protocol):
    """Food diary storage."""

    async def add(self, entry: FoodLogEntry) -> FoodLogEntry:
        """Persist an entry and return the stored version."""
        ...

    async def recent(self, user_id: str, limit: int = 10) -> List[FoodLogEntry]:
        """Newest entries first."""
        ...

    async def between(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> List[FoodLogEntry]:
        """Entries with ``start <= created_at < end``."""
        ...


class IWaterLogRepository(Protocol):
    async def add(self, entry: WaterLogEntry) -> WaterLogEntry:
        ...

    async def between(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> List[WaterLogEntry]:
        """Entries with ``start <= created_at < end``."""
        ...
