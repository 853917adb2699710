"""Unit tests for recipe request/suggestion models, prompt and normalization."""

from typing import Any, Dict

import pytest
from pydantic import ValidationError

from calorieai.domain.analysis.entities import AnalysisLocale, MealContext
from calorieai.domain.errors import InvalidSchemaError
from calorieai.domain.recipes.entities import Difficulty, Recipe, RecipeRequest
from calorieai.domain.recipes.normalizer import normalize_recipes
from calorieai.domain.recipes.prompt import build_recipe_prompt


@pytest.fixture
def pilaf() -> Dict[str, Any]:
    return {
        "title": "Nohutlu pilav",
        "description": "Tereyağlı pirinç pilavı.",
        "ingredients": ["1 su bardağı pirinç", {"name": "nohut", "amount": "1 kase"}],
        "instructions": ["Pirinci yıka.", "Nohutla pişir."],
        "prep_time": 35.4,
        "calories": 410,
        "protein": 12,
        "carbs": 70,
        "fat": 9,
        "difficulty": "Medium",
        "suitability_score": 64.6,
        "suitability_reason": "Lif içeriği yüksek.",
    }


class TestRecipeRequest:
    def test_defaults(self) -> None:
        request = RecipeRequest()

        assert request.ingredients == ()
        assert request.image is None
        assert request.meal_context is None
        assert request.count == 3

    def test_ingredients_are_cleaned(self) -> None:
        request = RecipeRequest(ingredients=[" nohut ", "", "nohut", "pirinç"])

        assert request.ingredients == ("nohut", "pirinç")

    @pytest.mark.parametrize("meal", ["any", "", None])
    def test_any_meal(self, meal: Any) -> None:
        assert RecipeRequest(meal_context=meal).meal_context is None

    def test_meal_is_case_insensitive(self) -> None:
        assert RecipeRequest(meal_context="Dinner").meal_context is MealContext.DINNER

    def test_photo_data_url(self, pixel_png: str) -> None:
        request = RecipeRequest(image=f"data:image/png;base64,{pixel_png}")

        assert request.image == pixel_png
        assert request.mime_type == "image/png"

    def test_invalid_photo(self) -> None:
        with pytest.raises(ValidationError):
            RecipeRequest(image="not base64!!")

    def test_count_bounds(self) -> None:
        with pytest.raises(ValidationError):
            RecipeRequest(count=9)


class TestRecipePrompt:
    def test_user_profile_reaches_the_prompt(self) -> None:
        request = RecipeRequest(
            ingredients=["nohut"],
            meal_context="lunch",
            is_diabetic=True,
            dietary_preferences={"vegetarian"},
            kitchen_preferences={"airfryer"},
            locale=AnalysisLocale(primary="en", secondary="tr"),
        )

        prompt = build_recipe_prompt(request)

        assert "Meal type: lunch." in prompt.user
        assert "User ingredients: nohut." in prompt.user
        assert "diabetic" in prompt.user
        assert "Dietary preferences: vegetarian." in prompt.user
        assert "Kitchen preferences: airfryer." in prompt.user
        assert "in English" in prompt.system

    def test_empty_request_asks_for_popular_recipes(self) -> None:
        prompt = build_recipe_prompt(RecipeRequest(count=2))

        assert "Meal type: any." in prompt.user
        assert "popular healthy recipes" in prompt.user
        assert "Suggest 2 diverse recipes" in prompt.system
        assert "in Turkish" in prompt.system


class TestNormalizeRecipes:
    def test_valid_payload(self, pilaf: Dict[str, Any]) -> None:
        suggestions = normalize_recipes(
            {"recipes": [pilaf], "ingredients_detected": ["nohut", " "]},
            provider="gemini",
            attempts=2,
        )

        recipe = suggestions.recipes[0]
        assert recipe.prep_time_min == 35
        assert recipe.suitability_score == 65
        assert recipe.difficulty is Difficulty.MEDIUM
        assert recipe.ingredients == ("1 su bardağı pirinç", "nohut 1 kase")
        assert suggestions.ingredients_detected == ("nohut",)
        assert suggestions.attempts == 2

    def test_key_variants(self, pilaf: Dict[str, Any]) -> None:
        pilaf["name"] = pilaf.pop("title")
        pilaf["steps"] = pilaf.pop("instructions")

        recipe = normalize_recipes({"recipes": [pilaf]}).recipes[0]

        assert recipe.title == "Nohutlu pilav"
        assert len(recipe.instructions) == 2

    @pytest.mark.parametrize(
        "payload,code",
        [
            ({}, "MISSING_RECIPES_ARRAY"),
            ({"recipes": {}}, "RECIPES_NOT_LIST"),
            ({"recipes": []}, "NO_RECIPES"),
            ({"recipes": ["menemen"]}, "RECIPE_0_NOT_OBJECT"),
        ],
    )
    def test_shape_violations(self, payload: Dict[str, Any], code: str) -> None:
        with pytest.raises(InvalidSchemaError, match=code):
            normalize_recipes(payload)

    def test_missing_fields(self, pilaf: Dict[str, Any]) -> None:
        del pilaf["calories"]
        del pilaf["ingredients"]

        with pytest.raises(InvalidSchemaError, match="RECIPE_0_MISSING_FIELDS: ingredients, calories"):
            normalize_recipes({"recipes": [pilaf]})

    @pytest.mark.parametrize(
        "field,value",
        [
            ("difficulty", "impossible"),
            ("calories", float("inf")),
            ("suitability_score", float("nan")),
            ("suitability_score", True),
            ("prep_time", -5),
            ("instructions", []),
        ],
    )
    def test_invalid_values(self, pilaf: Dict[str, Any], field: str, value: Any) -> None:
        pilaf[field] = value

        with pytest.raises(InvalidSchemaError, match="RECIPE_0_INVALID"):
            normalize_recipes({"recipes": [pilaf]})


def test_recipe_is_frozen(pilaf: Dict[str, Any]) -> None:
    recipe = normalize_recipes({"recipes": [pilaf]}).recipes[0]

    with pytest.raises(ValidationError):
        recipe.title = "Bulgur pilavı"  # type: ignore[misc]
    assert isinstance(recipe, Recipe)
