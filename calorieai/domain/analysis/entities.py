"""
Domain models for food photo analysis.

AnalysisRequest is what the caller hands to the pipeline; AnalysisResult is
what comes back on success. Both are immutable.
"""

from __future__ import annotations

import base64
import binascii
from enum import Enum
from typing import Any, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NUTRIENT_FIELDS = ("calories", "protein", "carbs", "fat", "fiber")

# Slack allowed between stated totals and the item sum.
TOTALS_TOLERANCE = 0.01

# Minimum confidence of an item the app shows without asking the user.
RELIABLE_CONFIDENCE = 0.6


class MealContext(str, Enum):
    """Meal the photo belongs to (hint for portion estimation)."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class AnalysisLocale(BaseModel):
    """
    Languages used in the analysis output.

    primary: language of ``localized_name`` and of the insight text
    secondary: language of ``alternate_name``
    """

    model_config = ConfigDict(frozen=True)

    primary: str = Field("tr", min_length=2, max_length=5)
    secondary: str = Field("en", min_length=2, max_length=5)

    @field_validator("primary", "secondary")
    @classmethod
    def lower_code(cls, v: str) -> str:
        return v.strip().lower()


def split_data_url(data: Any) -> Any:
    """Move the mime type of a ``data:`` URL ``image`` into ``mime_type``."""
    if not isinstance(data, dict):
        return data
    image = data.get("image")
    if isinstance(image, str) and image.lstrip().startswith("data:") and "," in image:
        header, payload = image.strip().split(",", 1)
        data = dict(data)
        data["image"] = payload
        mime = header[len("data:") :].split(";", 1)[0].strip()
        if mime and "mime_type" not in data:
            data["mime_type"] = mime
    return data


def ensure_base64(v: str) -> str:
    compact = "".join(v.split())
    if not compact:
        raise ValueError("image must not be empty")
    try:
        base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"image is not valid base64: {exc}") from exc
    return compact


class AnalysisRequest(BaseModel):
    """
    Input of a single photo analysis.

    The image is base64 text; a ``data:<mime>;base64,`` prefix (as produced by
    web and mobile pickers) is stripped and its mime type kept.

    Example:
        >>> request = AnalysisRequest(
        ...     image="data:image/png;base64,iVBORw0KGgo=",
        ...     meal_context="lunch",
        ...     dietary_preferences={"vegan"},
        ... )
        >>> request.mime_type
        'image/png'
    """

    model_config = ConfigDict(frozen=True)

    image: str = Field(..., min_length=1, description="Base64 image payload")
    mime_type: str = Field("image/jpeg", description="Image content type")
    meal_context: MealContext = MealContext.SNACK
    dietary_preferences: FrozenSet[str] = frozenset()
    health_focus: FrozenSet[str] = frozenset()
    locale: AnalysisLocale = Field(default_factory=AnalysisLocale)

    @model_validator(mode="before")
    @classmethod
    def unpack_data_url(cls, data: Any) -> Any:
        return split_data_url(data)

    @field_validator("image")
    @classmethod
    def must_be_base64(cls, v: str) -> str:
        return ensure_base64(v)

    @field_validator("meal_context", mode="before")
    @classmethod
    def lower_meal(cls, v: Any) -> Any:
        if v is None:
            return MealContext.SNACK
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("dietary_preferences", "health_focus", mode="before")
    @classmethod
    def clean_tags(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        if isinstance(v, str):
            v = [v]
        return frozenset(t.strip() for t in v if isinstance(t, str) and t.strip())


class DetectedFoodItem(BaseModel):
    """
    Single food item detected in the photo.

    Example:
        >>> item = DetectedFoodItem(
        ...     localized_name="Mercimek çorbası",
        ...     alternate_name="Lentil soup",
        ...     estimated_grams=250,
        ...     confidence=0.9,
        ...     calories=180,
        ...     protein=11,
        ...     carbs=28,
        ...     fat=3,
        ...     fiber=6,
        ... )
        >>> item.is_reliable()
        True
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    localized_name: str = Field(..., min_length=1, max_length=200)
    alternate_name: str = Field(..., min_length=1, max_length=200)
    estimated_grams: float = Field(..., gt=0, description="Portion in grams")
    confidence: float = Field(..., ge=0.0, le=1.0)
    calories: float = Field(..., ge=0, description="Energy in kcal")
    protein: float = Field(..., ge=0, description="Protein in g")
    carbs: float = Field(..., ge=0, description="Carbohydrates in g")
    fat: float = Field(..., ge=0, description="Fat in g")
    fiber: float = Field(..., ge=0, description="Fiber in g")

    @field_validator("localized_name", "alternate_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be empty or whitespace")
        return v.strip()

    def is_reliable(self) -> bool:
        return self.confidence >= RELIABLE_CONFIDENCE


class NutritionTotals(BaseModel):
    """Aggregated energy and macros of a meal."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    calories: float = Field(0.0, ge=0)
    protein: float = Field(0.0, ge=0)
    carbs: float = Field(0.0, ge=0)
    fat: float = Field(0.0, ge=0)
    fiber: float = Field(0.0, ge=0)

    @classmethod
    def from_items(cls, items: Tuple[DetectedFoodItem, ...]) -> NutritionTotals:
        """Sum per-item values (rounded to 2 decimals to drop float noise)."""
        return cls(
            calories=round(sum(i.calories for i in items), 2),
            protein=round(sum(i.protein for i in items), 2),
            carbs=round(sum(i.carbs for i in items), 2),
            fat=round(sum(i.fat for i in items), 2),
            fiber=round(sum(i.fiber for i in items), 2),
        )


class TokenUsage(BaseModel):
    """Token accounting reported by the provider."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = Field(0, ge=0)
    completion_tokens: int = Field(0, ge=0)
    total_tokens: int = Field(0, ge=0)


class AnalysisResult(BaseModel):
    """
    Validated, normalized outcome of one analysis call.

    Invariants:
    - at least one item (zero detections is a failure, not an empty success)
    - totals are the sum of the items
    - every number is finite
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    items: Tuple[DetectedFoodItem, ...] = Field(..., min_length=1)
    totals: NutritionTotals
    health_score: Optional[int] = Field(None, ge=0, le=100)
    insight: Optional[str] = None
    processing_time_ms: int = Field(0, ge=0)
    provider: str = ""
    model: str = ""
    attempts: int = Field(1, ge=1)
    usage: Optional[TokenUsage] = None

    @model_validator(mode="after")
    def totals_match_items(self) -> AnalysisResult:
        expected = NutritionTotals.from_items(self.items)
        for field in NUTRIENT_FIELDS:
            stated = getattr(self.totals, field)
            summed = getattr(expected, field)
            if abs(stated - summed) > TOTALS_TOLERANCE:
                raise ValueError(f"totals.{field} is {stated} but the items sum to {summed}")
        return self

    def average_confidence(self) -> float:
        return sum(i.confidence for i in self.items) / len(self.items)

    def total_grams(self) -> float:
        return sum(i.estimated_grams for i in self.items)

    def food_names(self) -> list[str]:
        return [i.localized_name for i in self.items]

    def uncertain_items(self) -> Tuple[DetectedFoodItem, ...]:
        """Items below the reliability threshold (worth a user confirmation)."""
        return tuple(i for i in self.items if not i.is_reliable())
