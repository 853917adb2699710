"""Recipe suggestion domain: request/suggestion models, prompt, normalization."""

from calorieai.domain.recipes.entities import (
    Difficulty,
    Recipe,
    RecipeRequest,
    RecipeSuggestions,
)

__all__ = [
    "Difficulty",
    "Recipe",
    "RecipeRequest",
    "RecipeSuggestions",
]
