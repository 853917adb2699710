"""
Domain models for recipe suggestions.

A RecipeRequest carries what the user has (ingredient names and/or a photo
of them) and who they are (diet, health focus, kitchen); RecipeSuggestions
is the validated answer.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from calorieai.domain.analysis.entities import (
    AnalysisLocale,
    MealContext,
    TokenUsage,
    ensure_base64,
    split_data_url,
)

DEFAULT_RECIPE_COUNT = 3


def _clean_texts(v: Any) -> Any:
    if v is None:
        return ()
    if isinstance(v, str):
        v = [v]
    if not isinstance(v, (list, tuple, set, frozenset)):
        return v
    cleaned: List[str] = []
    for entry in v:
        if isinstance(entry, dict):
            entry = " ".join(str(x) for x in entry.values() if x not in (None, ""))
        text = str(entry).strip() if isinstance(entry, (str, int, float)) else ""
        if text and text not in cleaned:
            cleaned.append(text)
    return tuple(cleaned)


class RecipeRequest(BaseModel):
    """
    Input of one recipe suggestion call.

    With neither ingredients nor a photo the model suggests popular healthy
    recipes for the meal.

    Example:
        >>> request = RecipeRequest(
        ...     ingredients=["nohut", "domates", " "],
        ...     meal_context="dinner",
        ...     is_diabetic=True,
        ... )
        >>> request.ingredients
        ('nohut', 'domates')
    """

    model_config = ConfigDict(frozen=True)

    ingredients: Tuple[str, ...] = ()
    image: Optional[str] = Field(None, description="Base64 photo of the ingredients")
    mime_type: str = "image/jpeg"
    meal_context: Optional[MealContext] = None
    dietary_preferences: FrozenSet[str] = frozenset()
    health_focus: FrozenSet[str] = frozenset()
    kitchen_preferences: FrozenSet[str] = frozenset()
    is_diabetic: bool = False
    count: int = Field(DEFAULT_RECIPE_COUNT, ge=1, le=5)
    locale: AnalysisLocale = Field(default_factory=AnalysisLocale)

    @model_validator(mode="before")
    @classmethod
    def unpack_data_url(cls, data: Any) -> Any:
        return split_data_url(data)

    @field_validator("image")
    @classmethod
    def must_be_base64(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return ensure_base64(v)

    @field_validator("ingredients", mode="before")
    @classmethod
    def clean_ingredients(cls, v: Any) -> Any:
        return _clean_texts(v)

    @field_validator("meal_context", mode="before")
    @classmethod
    def lower_meal(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return v if v and v != "any" else None
        return v

    @field_validator("dietary_preferences", "health_focus", "kitchen_preferences", mode="before")
    @classmethod
    def clean_tags(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        if isinstance(v, str):
            v = [v]
        return frozenset(t.strip() for t in v if isinstance(t, str) and t.strip())


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Recipe(BaseModel):
    """One suggested recipe; macros are per serving."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    ingredients: Tuple[str, ...] = Field(..., min_length=1)
    instructions: Tuple[str, ...] = Field(..., min_length=1)
    prep_time_min: int = Field(..., ge=0, le=24 * 60)
    calories: float = Field(..., ge=0)
    protein: float = Field(..., ge=0)
    carbs: float = Field(..., ge=0)
    fat: float = Field(..., ge=0)
    difficulty: Difficulty = Difficulty.MEDIUM
    suitability_score: Optional[int] = Field(None, ge=0, le=100)
    suitability_reason: Optional[str] = None

    @field_validator("title")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be empty or whitespace")
        return v.strip()

    @field_validator("ingredients", "instructions", mode="before")
    @classmethod
    def clean_lines(cls, v: Any) -> Any:
        return _clean_texts(v)

    @field_validator("prep_time_min", "suitability_score", mode="before")
    @classmethod
    def whole_number(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("must be a number, not a boolean")
        if isinstance(v, float) and math.isfinite(v):
            return round(v)
        return v

    @field_validator("difficulty", mode="before")
    @classmethod
    def lower_difficulty(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class RecipeSuggestions(BaseModel):
    model_config = ConfigDict(frozen=True)

    recipes: Tuple[Recipe, ...] = Field(..., min_length=1)
    ingredients_detected: Tuple[str, ...] = ()
    processing_time_ms: int = Field(0, ge=0)
    provider: str = ""
    model: str = ""
    attempts: int = Field(1, ge=1)
    usage: Optional[TokenUsage] = None

    @field_validator("ingredients_detected", mode="before")
    @classmethod
    def clean_detected(cls, v: Any) -> Any:
        return _clean_texts(v)
