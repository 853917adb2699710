"""Analyze-food use case and food diary operations.

Server-side flow of one scan:
1. reserve one scan of the free-plan daily quota
2. run the analysis client
3. write the usage/cost log (success and failure)
4. release the reservation if the analysis failed
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

import structlog

from calorieai.application.diary import day_bounds
from calorieai.domain.analysis.entities import AnalysisRequest, AnalysisResult, MealContext
from calorieai.domain.errors import AnalysisError, QuotaExceededError
from calorieai.domain.tracking.entities import (
    AnalysisLogEntry,
    DailyTotals,
    FoodLogEntry,
    UserContext,
    utc_today,
)
from calorieai.domain.tracking.ports import (
    IAnalysisLogRepository,
    IFoodLogRepository,
    IQuotaRepository,
)
from calorieai.infrastructure.ai.client import AnalysisClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ScanOutcome:
    """
    Successful scan.

    Attributes:
        result: Validated analysis
        remaining_scans: Free scans left today, None on premium
    """

    result: AnalysisResult
    remaining_scans: Optional[int]


class AnalyzeFoodService:
    """
    Application service behind ``POST /analyze-food`` and ``/food-logs``.

    Example:
        >>> service = AnalyzeFoodService(client, quotas, analysis_logs, food_logs)
        >>> outcome = await service.analyze(user, AnalysisRequest(image=b64))
        >>> outcome.remaining_scans
        2
    """

    def __init__(
        self,
        client: AnalysisClient,
        quotas: IQuotaRepository,
        analysis_logs: IAnalysisLogRepository,
        food_logs: IFoodLogRepository,
        *,
        daily_scan_limit: int = 3,
        cost_per_token_usd: float = 0.00001,
    ) -> None:
        self._client = client
        self._quotas = quotas
        self._analysis_logs = analysis_logs
        self._food_logs = food_logs
        self._daily_scan_limit = daily_scan_limit
        self._cost_per_token_usd = cost_per_token_usd

    async def analyze(self, user: UserContext, request: AnalysisRequest) -> ScanOutcome:
        """
        Run one scan for ``user``.

        The scan is reserved against the quota before the provider call, so
        concurrent requests cannot overrun the limit, and released again if
        the analysis fails.

        Raises:
            QuotaExceededError: Free plan limit already reached today
            AnalysisError: Any classified client failure (logged, not counted)
        """
        today = utc_today()
        reserved = await self._quotas.reserve(user.user_id, self._daily_scan_limit, today)
        if reserved is None:
            logger.info(
                "scan.quota_exceeded",
                user_id=user.user_id,
                limit=self._daily_scan_limit,
            )
            raise QuotaExceededError(
                f"Daily limit of {self._daily_scan_limit} free scans reached",
                limit=self._daily_scan_limit,
            )

        started = time.perf_counter()
        try:
            result = await self._client.analyze(request)
        except AnalysisError as exc:
            await self._release_scan(user, today)
            await self._write_log(
                AnalysisLogEntry.from_error(
                    user.user_id,
                    exc,
                    provider=self._client.provider_name,
                    model=self._client.model,
                    latency_ms=int((time.perf_counter() - started) * 1000),
                )
            )
            raise
        except asyncio.CancelledError:
            await self._release_scan(user, today)
            raise

        await self._write_log(
            AnalysisLogEntry.from_result(
                user.user_id, result, cost_per_token_usd=self._cost_per_token_usd
            )
        )

        remaining = reserved.remaining(self._daily_scan_limit, today)
        logger.info(
            "scan.completed",
            user_id=user.user_id,
            items=len(result.items),
            uncertain_items=len(result.uncertain_items()),
            calories=result.totals.calories,
            remaining_scans=remaining,
        )
        return ScanOutcome(result=result, remaining_scans=remaining)

    async def save_food_log(
        self,
        user: UserContext,
        result: AnalysisResult,
        *,
        meal_type: MealContext = MealContext.SNACK,
        image_url: Optional[str] = None,
    ) -> FoodLogEntry:
        entry = FoodLogEntry.from_result(
            user.user_id, result, meal_type=meal_type, image_url=image_url
        )
        stored = await self._food_logs.add(entry)
        logger.info(
            "food_log.saved",
            user_id=user.user_id,
            food_log_id=stored.id,
            calories=stored.calories,
        )
        return stored

    async def recent_food_logs(self, user: UserContext, limit: int = 10) -> List[FoodLogEntry]:
        return await self._food_logs.recent(user.user_id, limit=limit)

    async def today_totals(self, user: UserContext) -> DailyTotals:
        """Diary totals for the current UTC day."""
        today = utc_today()
        entries = await self._food_logs.between(user.user_id, *day_bounds(today))
        return DailyTotals.from_entries(today, entries)

    async def _write_log(self, entry: AnalysisLogEntry) -> None:
        # usage logging never fails a scan
        try:
            await self._analysis_logs.add(entry)
        except Exception:
            logger.warning(
                "analysis_log.write_failed",
                user_id=entry.user_id,
                status=entry.status,
                exc_info=True,
            )

    async def _release_scan(self, user: UserContext, day: date) -> None:
        try:
            await self._quotas.release(user.user_id, day)
        except Exception:
            logger.warning("scan.release_failed", user_id=user.user_id, exc_info=True)
