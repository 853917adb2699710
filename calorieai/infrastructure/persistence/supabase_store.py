"""
Supabase repositories.

Tables:
- subscriptions (user_id, plan_type, daily_scan_count, daily_scan_date)
- ai_analysis_logs (usage and cost per analysis)
- food_logs (food diary)
- water_logs (water intake)

supabase-py is synchronous; every query runs in the default executor so
the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

import structlog
from supabase import Client, create_client

from calorieai.domain.tracking.entities import (
    AnalysisLogEntry,
    FoodLogEntry,
    Plan,
    ScanQuota,
    UserContext,
    WaterLogEntry,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def create_supabase_client(url: Optional[str], key: Optional[str]) -> Client:
    """
    Build a service-role client.

    Raises:
        RuntimeError: If URL or key is not configured
    """
    if not url or not key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    return create_client(url, key)


async def _run(fn: Callable[[], T]) -> T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, fn)


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _iso_or_none(day: Optional[date]) -> Optional[str]:
    return day.isoformat() if day else None


class SupabaseUserDirectory:
    """Resolves access tokens with Supabase Auth."""

    def __init__(self, client: Client) -> None:
        self._client = client

    async def resolve(self, token: str) -> Optional[UserContext]:
        try:
            response = await _run(lambda: self._client.auth.get_user(token))
        except Exception as exc:
            # gotrue raises for expired or forged tokens
            logger.info("auth.token_rejected", error=type(exc).__name__)
            return None
        user = getattr(response, "user", None)
        if user is None:
            return None
        metadata = getattr(user, "user_metadata", None) or {}
        return UserContext(
            user_id=str(user.id),
            email=getattr(user, "email", None),
            language=str(metadata.get("language") or "tr"),
        )


class SupabaseQuotaRepository:
    """
    ``subscriptions`` rows.

    ``reserve`` and ``release`` are compare-and-set: the update only matches
    while the row still holds the counter that was read, and is retried
    with a fresh read when another request got there first.
    """

    TABLE = "subscriptions"
    COLUMNS = "user_id, plan_type, daily_scan_count, daily_scan_date"
    MAX_SWAP_ATTEMPTS = 5

    def __init__(self, client: Client) -> None:
        self._client = client

    async def get(self, user_id: str) -> ScanQuota:
        return self._to_quota(user_id, await self._fetch_row(user_id))

    async def save(self, quota: ScanQuota) -> None:
        row = self._to_row(quota)
        await _run(
            lambda: self._client.table(self.TABLE).upsert(row, on_conflict="user_id").execute()
        )

    async def reserve(self, user_id: str, limit: int, day: date) -> Optional[ScanQuota]:
        for attempt in range(1, self.MAX_SWAP_ATTEMPTS + 1):
            row = await self._fetch_row(user_id)
            current = self._to_quota(user_id, row)
            if not current.has_remaining(limit, day):
                return None
            updated = current.register_scan(day)
            if await self._swap(row, updated):
                return updated
            logger.info("quota.reserve_conflict", user_id=user_id, attempt=attempt)
        raise RuntimeError(f"Scan quota of {user_id} kept changing, reservation abandoned")

    async def release(self, user_id: str, day: date) -> None:
        for attempt in range(1, self.MAX_SWAP_ATTEMPTS + 1):
            row = await self._fetch_row(user_id)
            if row is None:
                return
            current = self._to_quota(user_id, row)
            updated = current.release_scan(day)
            if updated == current or await self._swap(row, updated):
                return
            logger.info("quota.release_conflict", user_id=user_id, attempt=attempt)
        logger.warning("quota.release_abandoned", user_id=user_id)

    async def _fetch_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        response = await _run(
            lambda: self._client.table(self.TABLE)
            .select(self.COLUMNS)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0] if rows else None

    async def _swap(self, row: Optional[Dict[str, Any]], quota: ScanQuota) -> bool:
        """Write ``quota`` only if the stored counter still matches ``row``."""
        if row is None:
            values = self._to_row(quota)
            response = await _run(
                lambda: self._client.table(self.TABLE)
                .upsert(values, on_conflict="user_id", ignore_duplicates=True)
                .execute()
            )
            return bool(response.data)

        stored: Dict[str, Any] = row

        def conditional_update() -> Any:
            query = (
                self._client.table(self.TABLE)
                .update(
                    {
                        "daily_scan_count": quota.daily_scan_count,
                        "daily_scan_date": _iso_or_none(quota.daily_scan_date),
                    }
                )
                .eq("user_id", quota.user_id)
            )
            for column in ("daily_scan_count", "daily_scan_date"):
                if stored.get(column) is None:
                    query = query.is_(column, "null")
                else:
                    query = query.eq(column, stored[column])
            return query.execute()

        response = await _run(conditional_update)
        return bool(response.data)

    @staticmethod
    def _to_quota(user_id: str, row: Optional[Dict[str, Any]]) -> ScanQuota:
        if row is None:
            return ScanQuota(user_id=user_id)
        plan = Plan.PREMIUM if row.get("plan_type") == Plan.PREMIUM.value else Plan.FREE
        return ScanQuota(
            user_id=user_id,
            plan=plan,
            daily_scan_count=int(row.get("daily_scan_count") or 0),
            daily_scan_date=_parse_date(row.get("daily_scan_date")),
        )

    @staticmethod
    def _to_row(quota: ScanQuota) -> Dict[str, Any]:
        return {
            "user_id": quota.user_id,
            "plan_type": quota.plan.value,
            "daily_scan_count": quota.daily_scan_count,
            "daily_scan_date": _iso_or_none(quota.daily_scan_date),
        }


class SupabaseAnalysisLogRepository:
    TABLE = "ai_analysis_logs"

    def __init__(self, client: Client) -> None:
        self._client = client

    async def add(self, entry: AnalysisLogEntry) -> None:
        row = entry.model_dump(mode="json")
        row["model_used"] = row.pop("model")
        await _run(lambda: self._client.table(self.TABLE).insert(row).execute())


class SupabaseFoodLogRepository:
    TABLE = "food_logs"

    def __init__(self, client: Client) -> None:
        self._client = client

    async def add(self, entry: FoodLogEntry) -> FoodLogEntry:
        row = entry.model_dump(mode="json")
        response = await _run(lambda: self._client.table(self.TABLE).insert(row).execute())
        rows = response.data or []
        if not rows:
            # RLS may allow INSERT but deny SELECT; keep the local copy
            return entry
        return FoodLogEntry.model_validate(rows[0])

    async def recent(self, user_id: str, limit: int = 10) -> List[FoodLogEntry]:
        response = await _run(
            lambda: self._client.table(self.TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [FoodLogEntry.model_validate(r) for r in response.data or []]

    async def between(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> List[FoodLogEntry]:
        response = await _run(
            lambda: self._client.table(self.TABLE)
            .select("*")
            .eq("user_id", user_id)
            .gte("created_at", start.isoformat())
            .lt("created_at", end.isoformat())
            .execute()
        )
        return [FoodLogEntry.model_validate(r) for r in response.data or []]


class SupabaseWaterLogRepository:
    TABLE = "water_logs"

    def __init__(self, client: Client) -> None:
        self._client = client

    async def add(self, entry: WaterLogEntry) -> WaterLogEntry:
        row = entry.model_dump(mode="json")
        response = await _run(lambda: self._client.table(self.TABLE).insert(row).execute())
        rows = response.data or []
        return WaterLogEntry.model_validate(rows[0]) if rows else entry

    async def between(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> List[WaterLogEntry]:
        response = await _run(
            lambda: self._client.table(self.TABLE)
            .select("*")
            .eq("user_id", user_id)
            .gte("created_at", start.isoformat())
            .lt("created_at", end.isoformat())
            .execute()
        )
        return [WaterLogEntry.model_validate(r) for r in response.data or []]
