"""Normalization of provider JSON into AnalysisResult.

Provider integrations disagree on field names ("foods" vs "items",
"name_tr" vs "localized_name", "weight_g" vs "estimated_grams", ...). The
alias table maps all of them onto the internal schema; anything that still
does not fit is an InvalidSchemaError, never a guessed value.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog
from pydantic import ValidationError

from calorieai.domain.analysis.entities import (
    AnalysisResult,
    DetectedFoodItem,
    NutritionTotals,
    TokenUsage,
)
from calorieai.domain.errors import InvalidSchemaError

logger = structlog.get_logger(__name__)

FLAT_DEFAULT_GRAMS = 100.0
FLAT_DEFAULT_CONFIDENCE = 1.0

# Canonical field -> accepted provider keys, in lookup order.
DEFAULT_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "items": ("foods", "items", "food_items", "detected_foods"),
    "localized_name": (
        "localized_name",
        "name_local",
        "name_tr",
        "display_name",
        "name",
        "food_name",
    ),
    "alternate_name": (
        "alternate_name",
        "name_alt",
        "name_en",
        "english_name",
        "label",
        "name",
        "food_name",
    ),
    "estimated_grams": (
        "estimated_grams",
        "grams",
        "weight_g",
        "quantity_g",
        "portion_grams",
        "serving_grams",
    ),
    "confidence": ("confidence", "confidence_score"),
    "calories": ("calories", "kcal", "energy_kcal", "estimated_calories"),
    "protein": ("protein", "protein_g", "actual_protein"),
    "carbs": ("carbs", "carbohydrates", "carbs_g", "carb_g", "actual_carbs"),
    "fat": ("fat", "fat_g", "fats", "actual_fat"),
    "fiber": ("fiber", "fibre", "fiber_g"),
    "health_score": ("health_score", "healthScore"),
    "insight": ("insight", "notes", "summary", "ai_notes"),
}

# Nested dicts some providers use for macros ({"nutrients": {"protein": ...}}).
NESTED_NUTRIENT_KEYS = ("nutrients", "macros", "nutrition")

REPORTED_TOTAL_ALIASES: Dict[str, Tuple[str, ...]] = {
    "calories": ("total_calories",),
    "protein": ("total_protein",),
    "carbs": ("total_carbs", "total_carbohydrates"),
    "fat": ("total_fat",),
    "fiber": ("total_fiber",),
}

ITEM_FIELDS = (
    "localized_name",
    "alternate_name",
    "estimated_grams",
    "confidence",
    "calories",
    "protein",
    "carbs",
    "fat",
    "fiber",
)

_MISSING = object()


def merge_aliases(
    overrides: Optional[Mapping[str, Tuple[str, ...]]] = None,
) -> Dict[str, Tuple[str, ...]]:
    """Put provider-specific keys in front of the default ones."""
    merged = dict(DEFAULT_FIELD_ALIASES)
    for canonical, keys in (overrides or {}).items():
        rest = tuple(k for k in merged.get(canonical, ()) if k not in keys)
        merged[canonical] = tuple(keys) + rest
    return merged


def _lookup(source: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = source.get(key)
        if value is not None:
            return value
    return _MISSING


def _flatten_item(raw: Mapping[str, Any]) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for nested_key in NESTED_NUTRIENT_KEYS:
        nested = raw.get(nested_key)
        if isinstance(nested, dict):
            flat.update(nested)
    flat.update(raw)
    return flat


def _looks_like_single_food(
    payload: Mapping[str, Any], aliases: Mapping[str, Tuple[str, ...]]
) -> bool:
    has_name = _lookup(payload, aliases["localized_name"]) is not _MISSING
    has_energy = _lookup(_flatten_item(payload), aliases["calories"]) is not _MISSING
    return has_name and has_energy


def _items_from_payload(
    payload: Mapping[str, Any], aliases: Mapping[str, Tuple[str, ...]]
) -> Tuple[List[Any], bool]:
    raw_items = _lookup(payload, aliases["items"])
    if raw_items is not _MISSING:
        if not isinstance(raw_items, list):
            raise InvalidSchemaError("ITEMS_NOT_LIST")
        return raw_items, False
    if _looks_like_single_food(payload, aliases):
        return [payload], True
    raise InvalidSchemaError("MISSING_ITEMS_ARRAY")


def _normalize_item(
    raw: Any,
    index: int,
    aliases: Mapping[str, Tuple[str, ...]],
    *,
    flat: bool,
) -> DetectedFoodItem:
    if not isinstance(raw, dict):
        raise InvalidSchemaError(f"ITEM_{index}_NOT_OBJECT")
    source = _flatten_item(raw)
    data: Dict[str, Any] = {}
    for field in ITEM_FIELDS:
        value = _lookup(source, aliases[field])
        if value is not _MISSING:
            data[field] = value
    if flat:
        data.setdefault("estimated_grams", FLAT_DEFAULT_GRAMS)
        data.setdefault("confidence", FLAT_DEFAULT_CONFIDENCE)

    missing = [f for f in ITEM_FIELDS if f not in data]
    if missing:
        raise InvalidSchemaError(f"ITEM_{index}_MISSING_FIELDS: {', '.join(missing)}")
    try:
        return DetectedFoodItem.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidSchemaError(f"ITEM_{index}_INVALID: {loc}: {first.get('msg')}") from exc


def _health_score(payload: Mapping[str, Any], aliases: Mapping[str, Tuple[str, ...]]) -> Any:
    value = _lookup(payload, aliases["health_score"])
    if value is _MISSING:
        return None
    if isinstance(value, bool):
        raise InvalidSchemaError("RESULT_INVALID: health_score: must be a number, not a boolean")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidSchemaError(f"RESULT_INVALID: health_score: not a finite number ({value})")
        return round(value)
    return value


def _insight(payload: Mapping[str, Any], aliases: Mapping[str, Tuple[str, ...]]) -> Optional[str]:
    value = _lookup(payload, aliases["insight"])
    if value is _MISSING or not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _warn_on_total_divergence(payload: Mapping[str, Any], totals: NutritionTotals) -> None:
    for field, keys in REPORTED_TOTAL_ALIASES.items():
        reported = _lookup(payload, keys)
        if not isinstance(reported, (int, float)) or isinstance(reported, bool):
            continue
        computed = getattr(totals, field)
        if abs(float(reported) - computed) > max(1.0, 0.01 * computed):
            logger.warning(
                "Provider totals diverge from item sum",
                field=field,
                reported=reported,
                computed=computed,
            )


def normalize_payload(
    payload: Mapping[str, Any],
    *,
    aliases: Optional[Mapping[str, Tuple[str, ...]]] = None,
    processing_time_ms: int = 0,
    provider: str = "",
    model: str = "",
    attempts: int = 1,
    usage: Optional[TokenUsage] = None,
) -> AnalysisResult:
    """
    Validate a parsed provider payload and map it to AnalysisResult.

    Totals are always recomputed from the items; provider-reported totals
    are only compared and logged when they disagree.

    Raises:
        InvalidSchemaError: No items, missing/invalid item field, or
            out-of-range health score

    Example:
        >>> result = normalize_payload({
        ...     "name": "Elma", "calories": 95, "protein": 0.5,
        ...     "carbs": 25, "fat": 0.3, "fiber": 4.4,
        ... })
        >>> result.items[0].estimated_grams
        100.0
    """
    table = aliases if aliases is not None else DEFAULT_FIELD_ALIASES
    raw_items, flat = _items_from_payload(payload, table)
    if not raw_items:
        raise InvalidSchemaError("NO_FOOD_ITEMS")

    items = tuple(
        _normalize_item(raw, index, table, flat=flat) for index, raw in enumerate(raw_items)
    )
    totals = NutritionTotals.from_items(items)
    _warn_on_total_divergence(payload, totals)

    try:
        return AnalysisResult(
            items=items,
            totals=totals,
            health_score=_health_score(payload, table),
            insight=_insight(payload, table),
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


__all__ = [
    "DEFAULT_FIELD_ALIASES",
    "FLAT_DEFAULT_CONFIDENCE",
    "FLAT_DEFAULT_GRAMS",
    "merge_aliases",
    "normalize_payload",
]
