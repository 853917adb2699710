from calorieai.application.analyze_food import AnalyzeFoodService, ScanOutcome
from calorieai.application.diary import DiaryService
from calorieai.application.guidance import UserGuidance, guidance_for, guidance_message
from calorieai.application.recipes import RecipeService

__all__ = [
    "AnalyzeFoodService",
    "DiaryService",
    "RecipeService",
    "ScanOutcome",
    "UserGuidance",
    "guidance_for",
    "guidance_message",
]
