"""
Tracking models around an analysis: who asked, how many scans they have
left today, what the call cost, and what ended up in their food diary.

Also the diary views built on top of it (weekly stats, logging streak) and
water intake.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from calorieai.domain.analysis.entities import AnalysisResult, MealContext
from calorieai.domain.errors import AnalysisError

# Longest streak reported; older days are not loaded.
STREAK_HORIZON_DAYS = 90

# Upper bound of one water log entry.
MAX_WATER_ML = 5000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def utc_date(moment: datetime) -> date:
    """UTC calendar day of ``moment`` (naive values are taken as UTC)."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


class Plan(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class UserContext(BaseModel):
    """Authenticated caller, resolved from a bearer token."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    language: str = "tr"


class ScanQuota(BaseModel):
    """
    Daily scan counter of one user (``subscriptions`` row).

    The counter belongs to ``daily_scan_date`` (UTC); on any other day the
    user has zero scans so far.

    Example:
        >>> quota = ScanQuota(user_id="u1", daily_scan_count=3,
        ...                   daily_scan_date=date(2024, 5, 1))
        >>> quota.has_remaining(3, date(2024, 5, 1))
        False
        >>> quota.has_remaining(3, date(2024, 5, 2))
        True
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    plan: Plan = Plan.FREE
    daily_scan_count: int = Field(0, ge=0)
    daily_scan_date: Optional[date] = None

    def scans_on(self, day: date) -> int:
        return self.daily_scan_count if self.daily_scan_date == day else 0

    def has_remaining(self, limit: int, day: date) -> bool:
        if self.plan is Plan.PREMIUM:
            return True
        return self.scans_on(day) < limit

    def remaining(self, limit: int, day: date) -> Optional[int]:
        """Scans left today, None when unlimited."""
        if self.plan is Plan.PREMIUM:
            return None
        return max(0, limit - self.scans_on(day))

    def register_scan(self, day: date) -> ScanQuota:
        return self.model_copy(
            update={"daily_scan_count": self.scans_on(day) + 1, "daily_scan_date": day}
        )

    def release_scan(self, day: date) -> ScanQuota:
        """Undo one ``register_scan(day)``; no-op once the day has rolled over."""
        if self.scans_on(day) == 0:
            return self
        return self.model_copy(update={"daily_scan_count": self.daily_scan_count - 1})


class AnalysisLogEntry(BaseModel):
    """Usage/cost record of one analysis call (``ai_analysis_logs`` row)."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    provider: str
    model: str
    status: str  # "completed" or an ErrorKind value
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    latency_ms: int = 0
    attempts: int = 0
    detected_foods: List[Dict[str, Any]] = Field(default_factory=list)
    confidence_avg: Optional[float] = None
    estimated_cost_usd: float = 0.0
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_result(
        cls,
        user_id: str,
        result: AnalysisResult,
        *,
        cost_per_token_usd: float,
    ) -> AnalysisLogEntry:
        usage = result.usage
        total = usage.total_tokens if usage else 0
        return cls(
            user_id=user_id,
            provider=result.provider,
            model=result.model,
            status="completed",
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            total_tokens=total,
            latency_ms=result.processing_time_ms,
            attempts=result.attempts,
            detected_foods=[item.model_dump() for item in result.items],
            confidence_avg=round(result.average_confidence(), 4),
            estimated_cost_usd=round(total * cost_per_token_usd, 6),
        )

    @classmethod
    def from_error(
        cls,
        user_id: str,
        error: AnalysisError,
        *,
        provider: str,
        model: str,
        latency_ms: int,
    ) -> AnalysisLogEntry:
        return cls(
            user_id=user_id,
            provider=provider,
            model=model,
            status=error.kind.value,
            latency_ms=latency_ms,
            attempts=error.attempt or 0,
            error_message=error.message[:500],
        )


class FoodLogEntry(BaseModel):
    """
    Food diary row (``food_logs``).

    ``food_name`` joins the item names in the user's language;
    ``ai_details`` keeps the full analysis for later display.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    food_name: str = Field(..., min_length=1)
    calories: float = Field(..., ge=0)
    protein: float = Field(..., ge=0)
    carbs: float = Field(..., ge=0)
    fat: float = Field(..., ge=0)
    fiber: float = Field(0.0, ge=0)
    meal_type: MealContext = MealContext.SNACK
    image_url: Optional[str] = None
    ai_details: Optional[Dict[str, Any]] = None
    serving_info: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @classmethod
    def from_result(
        cls,
        user_id: str,
        result: AnalysisResult,
        *,
        meal_type: MealContext = MealContext.SNACK,
        image_url: Optional[str] = None,
    ) -> FoodLogEntry:
        """
        Map an analysis result to a diary row.

        Example:
            >>> entry = FoodLogEntry.from_result("u1", result, meal_type=MealContext.LUNCH)
            >>> entry.food_name
            'Mercimek çorbası, Ekmek'
        """
        totals = result.totals
        return cls(
            user_id=user_id,
            food_name=", ".join(result.food_names()),
            calories=totals.calories,
            protein=totals.protein,
            carbs=totals.carbs,
            fat=totals.fat,
            fiber=totals.fiber,
            meal_type=meal_type,
            image_url=image_url,
            ai_details=result.model_dump(mode="json"),
            serving_info=f"{round(result.total_grams())} g",
        )


class DailyTotals(BaseModel):
    """Sum of a user's diary entries for one day."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    day: date
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    count: int = 0

    @classmethod
    def from_entries(cls, day: date, entries: List[FoodLogEntry]) -> DailyTotals:
        return cls(
            day=day,
            calories=round(sum(e.calories for e in entries), 2),
            protein=round(sum(e.protein for e in entries), 2),
            carbs=round(sum(e.carbs for e in entries), 2),
            fat=round(sum(e.fat for e in entries), 2),
            fiber=round(sum(e.fiber for e in entries), 2),
            count=len(entries),
        )


class WaterLogEntry(BaseModel):
    """Water intake row (``water_logs``)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    amount_ml: int = Field(..., gt=0, le=MAX_WATER_ML)
    type: str = "plain_water"
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, v: Any) -> Any:
        return str(v) if v is not None else v


class WaterIntake(BaseModel):
    """Water drunk on one day."""

    model_config = ConfigDict(frozen=True)

    day: date
    total_ml: int = 0
    count: int = 0

    @classmethod
    def from_entries(cls, day: date, entries: List[WaterLogEntry]) -> WaterIntake:
        return cls(day=day, total_ml=sum(e.amount_ml for e in entries), count=len(entries))


def logging_streak(days: Iterable[date], today: date, *, horizon: int = STREAK_HORIZON_DAYS) -> int:
    """
    Number of consecutive days with at least one diary entry, ending today.

    Today without an entry does not break the streak (the day is not over
    yet); the count then starts from yesterday.

    Example:
        >>> logging_streak([date(2024, 5, 1), date(2024, 5, 2)], date(2024, 5, 3))
        2
    """
    logged = set(days)
    streak = 0
    for offset in range(horizon):
        day = today - timedelta(days=offset)
        if day in logged:
            streak += 1
        elif offset > 0:
            break
    return streak


def monday_of(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


class WeeklyStats(BaseModel):
    """
    Diary summary of the current week (Monday first).

    ``daily_calories[0]`` is Monday; ``average_calories`` only counts days
    with at least one entry; ``total_scans`` counts entries saved from a
    photo analysis.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    week_start: date
    daily_calories: List[float] = Field(..., min_length=7, max_length=7)
    total_meals: int = 0
    average_calories: int = 0
    total_scans: int = 0
    streak: int = 0

    @classmethod
    def from_entries(
        cls,
        monday: date,
        entries: List[FoodLogEntry],
        *,
        streak: int,
    ) -> WeeklyStats:
        daily = [0.0] * 7
        for entry in entries:
            index = (utc_date(entry.created_at) - monday).days
            if 0 <= index < 7:
                daily[index] += entry.calories
        daily = [round(c, 2) for c in daily]
        days_with_data = sum(1 for c in daily if c > 0)
        average = round(sum(daily) / days_with_data) if days_with_data else 0
        return cls(
            week_start=monday,
            daily_calories=daily,
            total_meals=len(entries),
            average_calories=average,
            total_scans=sum(1 for e in entries if e.ai_details),
            streak=streak,
        )
