"""In-memory repositories.

Dictionary-backed implementations of the tracking ports for tests and
local development. Data is lost on restart.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Dict, List, Mapping, Optional

from calorieai.domain.tracking.entities import (
    AnalysisLogEntry,
    FoodLogEntry,
    ScanQuota,
    UserContext,
    WaterLogEntry,
)


class InMemoryUserDirectory:
    """
    Static token table.

    Example:
        >>> users = InMemoryUserDirectory({"token-1": UserContext(user_id="u1")})
        >>> (await users.resolve("token-1")).user_id
        'u1'
    """

    def __init__(self, tokens: Optional[Mapping[str, UserContext]] = None) -> None:
        self._tokens: Dict[str, UserContext] = dict(tokens or {})

    def register(self, token: str, user: UserContext) -> None:
        self._tokens[token] = user

    async def resolve(self, token: str) -> Optional[UserContext]:
        return self._tokens.get(token)


class InMemoryQuotaRepository:
    def __init__(self) -> None:
        self._storage: Dict[str, ScanQuota] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str) -> ScanQuota:
        async with self._lock:
            return self._storage.get(user_id) or ScanQuota(user_id=user_id)

    async def save(self, quota: ScanQuota) -> None:
        async with self._lock:
            self._storage[quota.user_id] = quota

    async def reserve(self, user_id: str, limit: int, day: date) -> Optional[ScanQuota]:
        async with self._lock:
            current = self._storage.get(user_id) or ScanQuota(user_id=user_id)
            if not current.has_remaining(limit, day):
                return None
            updated = current.register_scan(day)
            self._storage[user_id] = updated
            return updated

    async def release(self, user_id: str, day: date) -> None:
        async with self._lock:
            current = self._storage.get(user_id)
            if current is not None:
                self._storage[user_id] = current.release_scan(day)


class InMemoryAnalysisLogRepository:
    def __init__(self) -> None:
        self.entries: List[AnalysisLogEntry] = []

    async def add(self, entry: AnalysisLogEntry) -> None:
        self.entries.append(entry)

    def for_user(self, user_id: str) -> List[AnalysisLogEntry]:
        return [e for e in self.entries if e.user_id == user_id]


class InMemoryFoodLogRepository:
    def __init__(self) -> None:
        self._storage: Dict[str, FoodLogEntry] = {}

    async def add(self, entry: FoodLogEntry) -> FoodLogEntry:
        self._storage[entry.id] = entry
        return entry

    async def recent(self, user_id: str, limit: int = 10) -> List[FoodLogEntry]:
        entries = [e for e in self._storage.values() if e.user_id == user_id]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    async def between(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> List[FoodLogEntry]:
        return [
            e
            for e in self._storage.values()
            if e.user_id == user_id and start <= e.created_at < end
        ]


class InMemoryWaterLogRepository:
    def __init__(self) -> None:
        self.entries: List[WaterLogEntry] = []

    async def add(self, entry: WaterLogEntry) -> WaterLogEntry:
        self.entries.append(entry)
        return entry

    async def between(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> List[WaterLogEntry]:
        return [e for e in self.entries if e.user_id == user_id and start <= e.created_at < end]
