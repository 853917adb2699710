from calorieai.domain.tracking.entities import (
    AnalysisLogEntry,
    DailyTotals,
    FoodLogEntry,
    Plan,
    ScanQuota,
    UserContext,
    WaterIntake,
    WaterLogEntry,
    WeeklyStats,
    logging_streak,
    monday_of,
    utc_now,
    utc_today,
)

__all__ = [
    "AnalysisLogEntry",
    "DailyTotals",
    "FoodLogEntry",
    "Plan",
    "ScanQuota",
    "UserContext",
    "WaterIntake",
    "WaterLogEntry",
    "WeeklyStats",
    "logging_streak",
    "monday_of",
    "utc_now",
    "utc_today",
]
