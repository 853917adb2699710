"""Diary views and water tracking.

All days are UTC calendar days, like the scan quota.
"""

from __future__ import annotations

from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Tuple

import structlog

from calorieai.domain.tracking.entities import (
    STREAK_HORIZON_DAYS,
    UserContext,
    WaterIntake,
    WaterLogEntry,
    WeeklyStats,
    logging_streak,
    monday_of,
    utc_date,
    utc_today,
)
from calorieai.domain.tracking.ports import IFoodLogRepository, IWaterLogRepository

logger = structlog.get_logger(__name__)


def day_bounds(first: date, days: int = 1) -> Tuple[datetime, datetime]:
    """Half-open UTC interval covering ``days`` calendar days from ``first``."""
    start = datetime.combine(first, dt_time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=days)


class DiaryService:
    """
    Streak, weekly summary and water intake behind the ``/food-logs`` and
    ``/water-logs`` endpoints.

    Example:
        >>> diary = DiaryService(food_logs, water_logs)
        >>> await diary.log_water(user, 250)
        >>> (await diary.today_water(user)).total_ml
        250
    """

    def __init__(self, food_logs: IFoodLogRepository, water_logs: IWaterLogRepository) -> None:
        self._food_logs = food_logs
        self._water_logs = water_logs

    async def streak(self, user: UserContext) -> int:
        today = utc_today()
        first = today - timedelta(days=STREAK_HORIZON_DAYS - 1)
        entries = await self._food_logs.between(
            user.user_id, *day_bounds(first, STREAK_HORIZON_DAYS)
        )
        return logging_streak((utc_date(e.created_at) for e in entries), today)

    async def weekly_stats(self, user: UserContext) -> WeeklyStats:
        monday = monday_of(utc_today())
        entries = await self._food_logs.between(user.user_id, *day_bounds(monday, 7))
        return WeeklyStats.from_entries(monday, entries, streak=await self.streak(user))

    async def log_water(self, user: UserContext, amount_ml: int) -> WaterLogEntry:
        stored = await self._water_logs.add(
            WaterLogEntry(user_id=user.user_id, amount_ml=amount_ml)
        )
        logger.info("water_log.saved", user_id=user.user_id, amount_ml=amount_ml)
        return stored

    async def today_water(self, user: UserContext) -> WaterIntake:
        today = utc_today()
        entries = await self._water_logs.between(user.user_id, *day_bounds(today))
        return WaterIntake.from_entries(today, entries)
