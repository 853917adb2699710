"""Normalization of provider JSON into RecipeSuggestions.

Same contract as the food analysis normalizer: known key variants are
mapped onto the internal schema and anything else is an InvalidSchemaError.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError

from calorieai.domain.analysis.entities import TokenUsage
from calorieai.domain.errors import InvalidSchemaError
from calorieai.domain.recipes.entities import Recipe, RecipeSuggestions

RECIPE_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "title": ("title", "name", "recipe_name"),
    "description": ("description", "summary"),
    "ingredients": ("ingredients",),
    "instructions": ("instructions", "steps", "directions"),
    "prep_time_min": ("prep_time", "prep_time_min", "prepTime", "cook_time"),
    "calories": ("calories", "kcal"),
    "protein": ("protein", "protein_g"),
    "carbs": ("carbs", "carbohydrates", "carbs_g"),
    "fat": ("fat", "fat_g"),
    "difficulty": ("difficulty",),
    "suitability_score": ("suitability_score", "suitabilityScore", "match_score"),
    "suitability_reason": ("suitability_reason", "suitabilityReason", "reason"),
}

REQUIRED_RECIPE_FIELDS = (
    "title",
    "ingredients",
    "instructions",
    "prep_time_min",
    "calories",
    "protein",
    "carbs",
    "fat",
)


def _recipe(raw: Any, index: int) -> Recipe:
    if not isinstance(raw, dict):
        raise InvalidSchemaError(f"RECIPE_{index}_NOT_OBJECT")
    data: Dict[str, Any] = {}
    for field, keys in RECIPE_FIELD_ALIASES.items():
        for key in keys:
            if raw.get(key) is not None:
                data[field] = raw[key]
                break

    missing = [f for f in REQUIRED_RECIPE_FIELDS if f not in data]
    if missing:
        raise InvalidSchemaError(f"RECIPE_{index}_MISSING_FIELDS: {', '.join(missing)}")
    try:
        return Recipe.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidSchemaError(f"RECIPE_{index}_INVALID: {loc}: {first.get('msg')}") from exc


def normalize_recipes(
    payload: Mapping[str, Any],
    *,
    processing_time_ms: int = 0,
    provider: str = "",
    model: str = "",
    attempts: int = 1,
    usage: Optional[TokenUsage] = None,
) -> RecipeSuggestions:
    """
    Validate a parsed provider payload and map it to RecipeSuggestions.

    Raises:
        InvalidSchemaError: No recipes, or a recipe with a missing or
            invalid field
    """
    raw_recipes = payload.get("recipes")
    if raw_recipes is None:
        raise InvalidSchemaError("MISSING_RECIPES_ARRAY")
    if not isinstance(raw_recipes, list):
        raise InvalidSchemaError("RECIPES_NOT_LIST")
    if not raw_recipes:
        raise InvalidSchemaError("NO_RECIPES")

    recipes = tuple(_recipe(raw, index) for index, raw in enumerate(raw_recipes))
    try:
        return RecipeSuggestions(
            recipes=recipes,
            ingredients_detected=payload.get("ingredients_detected") or (),
            processing_time_ms=processing_time_ms,
            provider=provider,
            model=model,
            attempts=attempts,
            usage=usage,
        )
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidSchemaError(f"RESULT_INVALID: {loc}: {first.get('msg')}") from exc


__all__ = ["RECIPE_FIELD_ALIASES", "normalize_recipes"]
