"""Request and response bodies of the HTTP API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from calorieai.domain.analysis.entities import AnalysisResult, MealContext
from calorieai.domain.recipes.entities import DEFAULT_RECIPE_COUNT, Recipe
from calorieai.domain.tracking.entities import MAX_WATER_ML


class AnalyzeFoodBody(BaseModel):
    """``POST /analyze-food`` body (same field names as the mobile app sends)."""

    image_base64: str = Field(..., min_length=1)
    meal_type: MealContext = MealContext.SNACK
    dietary_preferences: List[str] = Field(default_factory=list)
    health_focus: List[str] = Field(default_factory=list)
    user_language: Optional[str] = Field(None, min_length=2, max_length=5)

    @field_validator("meal_type", mode="before")
    @classmethod
    def lower_meal_type(cls, v: Any) -> Any:
        if v is None:
            return MealContext.SNACK
        return v.strip().lower() if isinstance(v, str) else v


class AnalyzeFoodResponse(BaseModel):
    success: bool = True
    result: AnalysisResult
    remaining_scans: Optional[int] = None
    # localized names of items the user should confirm
    uncertain_items: List[str] = Field(default_factory=list)


class SaveFoodLogBody(BaseModel):
    result: AnalysisResult
    meal_type: MealContext = MealContext.SNACK
    image_url: Optional[str] = None


class SuggestRecipesBody(BaseModel):
    """``POST /recipes/suggest`` body; ingredients, a photo, both or neither."""

    ingredients: List[str] = Field(default_factory=list)
    image_base64: Optional[str] = None
    meal_type: Optional[MealContext] = None
    dietary_preferences: List[str] = Field(default_factory=list)
    health_focus: List[str] = Field(default_factory=list)
    kitchen_preferences: List[str] = Field(default_factory=list)
    is_diabetic: bool = False
    count: int = Field(DEFAULT_RECIPE_COUNT, ge=1, le=5)
    user_language: Optional[str] = Field(None, min_length=2, max_length=5)

    @field_validator("meal_type", mode="before")
    @classmethod
    def lower_meal_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return v if v and v != "any" else None
        return v


class SuggestRecipesResponse(BaseModel):
    success: bool = True
    recipes: List[Recipe]
    ingredients_detected: List[str] = Field(default_factory=list)


class StreakBody(BaseModel):
    streak: int


class SaveWaterLogBody(BaseModel):
    amount_ml: int = Field(..., gt=0, le=MAX_WATER_ML)


class ErrorBody(BaseModel):
    error: str
    message: str
    kind: Optional[str] = None
    guidance: Optional[str] = None
    attempt: Optional[int] = None
    details: Optional[Any] = None
    upgrade_url: Optional[str] = None


class HealthBody(BaseModel):
    status: str
    version: str
    provider: str
    model: str
    credentials_configured: bool
    metrics: Dict[str, Any]
