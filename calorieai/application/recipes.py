"""Recipe suggestion use case."""

from __future__ import annotations

import structlog

from calorieai.domain.recipes.entities import RecipeRequest, RecipeSuggestions
from calorieai.domain.tracking.entities import UserContext
from calorieai.infrastructure.ai.client import AnalysisClient

logger = structlog.get_logger(__name__)


class RecipeService:
    """
    Suggests recipes for a signed-in user.

    Suggestions do not count against the daily scan quota.
    """

    def __init__(self, client: AnalysisClient) -> None:
        self._client = client

    async def suggest(self, user: UserContext, request: RecipeRequest) -> RecipeSuggestions:
        suggestions = await self._client.suggest_recipes(request)
        logger.info(
            "recipes.suggested",
            user_id=user.user_id,
            recipes=len(suggestions.recipes),
            with_photo=request.image is not None,
            ingredients=len(request.ingredients),
        )
        return suggestions
