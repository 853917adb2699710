"""Food photo analysis domain: request/result models, prompt, extraction, normalization."""

from calorieai.domain.analysis.entities import (
    AnalysisLocale,
    AnalysisRequest,
    AnalysisResult,
    DetectedFoodItem,
    MealContext,
    NutritionTotals,
    TokenUsage,
)

__all__ = [
    "AnalysisLocale",
    "AnalysisRequest",
    "AnalysisResult",
    "DetectedFoodItem",
    "MealContext",
    "NutritionTotals",
    "TokenUsage",
]
