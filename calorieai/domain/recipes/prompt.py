"""Prompt construction for recipe suggestions."""

from __future__ import annotations

from typing import List

from calorieai.domain.analysis.prompt import PromptBundle, language_name
from calorieai.domain.recipes.entities import RecipeRequest

# Bump when the output schema or the rules change.
RECIPE_PROMPT_VERSION = 1


def generate_recipe_system_prompt(*, count: int, primary: str = "tr") -> str:
    primary_lang = language_name(primary)
    return (
        f"You are a creative chef AI. Suggest {count} diverse recipes based on the"
        " user's input."
        " MUST: return ONLY a valid UTF-8 JSON object with exactly this schema:"
        ' {"recipes":[{"title":"<name>","description":"<one sentence>",'
        '"ingredients":["<ingredient with amount>"],"instructions":["<step>"],'
        '"prep_time":<minutes>,"calories":<kcal per serving>,"protein":<g>,'
        '"carbs":<g>,"fat":<g>,"difficulty":"Easy|Medium|Hard",'
        '"suitability_score":<integer 0-100>,"suitability_reason":"<text>"}],'
        '"ingredients_detected":["<ingredient seen in the photo>"]}.'
        " DO_NOT: wrap the JSON in markdown or code fences, add explanations,"
        " comments or any text before or after the JSON object."
        " RULES:"
        " 1. numbers are plain numbers, no units"
        " 2. suitability_score rates how well the recipe fits the user (100 = perfect)"
        f" 3. title, description, ingredients, instructions and suitability_reason in {primary_lang}"
        " 4. ingredients_detected is empty when there is no photo"
    )


def generate_recipe_user_prompt(request: RecipeRequest) -> str:
    meal = request.meal_context.value if request.meal_context else "any"
    lines: List[str] = [f"Meal type: {meal}."]
    if request.ingredients:
        lines.append(f"User ingredients: {', '.join(request.ingredients)}.")
    elif request.image is None:
        lines.append("No ingredients given: suggest popular healthy recipes.")
    if request.image is not None:
        lines.append("Use the ingredients visible in the photo as well.")
    if request.is_diabetic:
        lines.append("User is diabetic: suggest low-carb recipes.")
    for label, tags in (
        ("Dietary preferences", request.dietary_preferences),
        ("Health focus", request.health_focus),
        ("Kitchen preferences", request.kitchen_preferences),
    ):
        if tags:
            lines.append(f"{label}: {', '.join(sorted(tags, key=str.lower))}.")
    lines.append("Answer with the JSON object only.")
    return " ".join(lines)


def build_recipe_prompt(request: RecipeRequest) -> PromptBundle:
    return PromptBundle(
        system=generate_recipe_system_prompt(count=request.count, primary=request.locale.primary),
        user=generate_recipe_user_prompt(request),
        version=RECIPE_PROMPT_VERSION,
    )
