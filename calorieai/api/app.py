"""
FastAPI application.

Endpoints:
- GET  /health            liveness, provider info, metrics snapshot
- POST /analyze-food      analyze one photo (bearer auth, daily quota)
- POST /food-logs         save an analysis to the food diary
- GET  /food-logs         recent diary entries
- GET  /food-logs/today   today's diary totals
- GET  /food-logs/streak  consecutive days with diary entries
- GET  /food-logs/weekly  this week's calories per day
- POST /water-logs        log a glass of water
- GET  /water-logs/today  today's water intake
- POST /recipes/suggest   AI recipe suggestions from ingredients or a photo

Run with ``calorieai-api`` (uvicorn).
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import structlog
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from calorieai import __version__
from calorieai.api.auth import current_user
from calorieai.api.schemas import (
    AnalyzeFoodBody,
    AnalyzeFoodResponse,
    ErrorBody,
    HealthBody,
    SaveFoodLogBody,
    SaveWaterLogBody,
    StreakBody,
    SuggestRecipesBody,
    SuggestRecipesResponse,
)
from calorieai.application.analyze_food import AnalyzeFoodService
from calorieai.application.diary import DiaryService
from calorieai.application.guidance import UserGuidance, guidance_for, guidance_message
from calorieai.application.recipes import RecipeService
from calorieai.config import AnalysisSettings
from calorieai.domain.analysis.entities import AnalysisLocale, AnalysisRequest
from calorieai.domain.errors import AnalysisError, ErrorKind
from calorieai.domain.recipes.entities import RecipeRequest, RecipeSuggestions
from calorieai.domain.tracking.entities import (
    DailyTotals,
    FoodLogEntry,
    UserContext,
    WaterIntake,
    WaterLogEntry,
    WeeklyStats,
)
from calorieai.infrastructure.ai.client import AnalysisClient
from calorieai.infrastructure.persistence.factory import TrackingStores, create_tracking_stores
from calorieai.logging_config import configure_logging
from calorieai.metrics import analysis as analysis_metrics

logger = structlog.get_logger(__name__)

UPGRADE_URL = "calorieai://paywall"

STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.QUOTA_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.NETWORK_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.TRUNCATED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.REJECTED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.MALFORMED_RESPONSE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_SCHEMA: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.MISSING_CREDENTIALS: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Output problems the user can act on by retrying or retaking the photo.
_ANALYSIS_FAILED_KINDS = {
    ErrorKind.TRUNCATED,
    ErrorKind.REJECTED,
    ErrorKind.MALFORMED_RESPONSE,
    ErrorKind.INVALID_SCHEMA,
}


def error_response(exc: AnalysisError, language: str = "tr") -> JSONResponse:
    """Translate a classified failure into an HTTP response."""
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    guidance = guidance_for(exc)

    if exc.kind is ErrorKind.QUOTA_EXCEEDED:
        body = ErrorBody(
            error="daily_limit_reached",
            message=guidance_message(UserGuidance.UPGRADE_PLAN, language),
            kind=exc.kind.value,
            guidance=guidance.value,
            upgrade_url=UPGRADE_URL,
        )
    elif exc.kind is ErrorKind.UNAUTHORIZED:
        body = ErrorBody(error="unauthorized", message=exc.message, kind=exc.kind.value)
    else:
        body = ErrorBody(
            error="analysis_failed" if exc.kind in _ANALYSIS_FAILED_KINDS else exc.kind.value,
            message=guidance_message(guidance, language),
            kind=exc.kind.value,
            guidance=guidance.value,
            attempt=exc.attempt,
            details=exc.message,
        )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _validation_details(exc: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg")}
        for err in exc.errors()
    ]


def _invalid_request(message: str, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorBody(
            error="invalid_request",
            message=message,
            details=_validation_details(exc),
        ).model_dump(exclude_none=True),
    )


def locale_for(settings: AnalysisSettings, language: Optional[str]) -> AnalysisLocale:
    """Primary = requested language; secondary = the other configured one."""
    primary = (language or settings.primary_language).lower()
    for candidate in (settings.secondary_language, settings.primary_language, "en", "tr"):
        if candidate.lower() != primary:
            return AnalysisLocale(primary=primary, secondary=candidate)
    return AnalysisLocale(primary=primary, secondary=primary)


def create_app(
    settings: Optional[AnalysisSettings] = None,
    *,
    stores: Optional[TrackingStores] = None,
    client: Optional[AnalysisClient] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Defaults to ``AnalysisSettings.from_env()`` after loading .env
        stores: Repositories (Supabase or in-memory from settings by default)
        client: Analysis client override (tests inject one with a mock transport)
    """
    if settings is None:
        load_dotenv()
        settings = AnalysisSettings.from_env()
    stores = stores or create_tracking_stores(settings)
    client = client or AnalysisClient(settings)

    app = FastAPI(title="CalorieAI Analysis API", version=__version__)
    app.state.settings = settings
    app.state.stores = stores
    app.state.service = AnalyzeFoodService(
        client,
        stores.quotas,
        stores.analysis_logs,
        stores.food_logs,
        daily_scan_limit=settings.free_daily_scan_limit,
        cost_per_token_usd=settings.cost_per_token_usd,
    )
    app.state.diary = DiaryService(stores.food_logs, stores.water_logs)
    app.state.recipes = RecipeService(client)

    @app.exception_handler(AnalysisError)
    async def handle_analysis_error(request: Request, exc: AnalysisError) -> JSONResponse:
        language = getattr(request.state, "language", settings.primary_language)
        if exc.kind not in (ErrorKind.UNAUTHORIZED, ErrorKind.QUOTA_EXCEEDED):
            logger.warning(
                "api.analysis_error",
                path=request.url.path,
                kind=exc.kind.value,
                status=exc.status,
                attempt=exc.attempt,
            )
        return error_response(exc, language)

    @app.get("/health", response_model=HealthBody)
    async def health() -> HealthBody:
        return HealthBody(
            status="ok",
            version=__version__,
            provider=settings.provider,
            model=settings.model,
            credentials_configured=bool(settings.api_key),
            metrics=dict(analysis_metrics.snapshot()),
        )

    @app.post(
        "/analyze-food",
        response_model=AnalyzeFoodResponse,
        responses={401: {"model": ErrorBody}, 429: {"model": ErrorBody}},
    )
    async def analyze_food(
        body: AnalyzeFoodBody,
        user: UserContext = Depends(current_user),
    ) -> Any:
        try:
            request = AnalysisRequest(
                image=body.image_base64,
                meal_context=body.meal_type,
                dietary_preferences=body.dietary_preferences,
                health_focus=body.health_focus,
                locale=locale_for(settings, body.user_language or user.language),
            )
        except ValidationError as exc:
            return _invalid_request("Invalid analysis request", exc)

        outcome = await app.state.service.analyze(user, request)
        return AnalyzeFoodResponse(
            result=outcome.result,
            remaining_scans=outcome.remaining_scans,
            uncertain_items=[i.localized_name for i in outcome.result.uncertain_items()],
        )

    @app.post(
        "/recipes/suggest",
        response_model=SuggestRecipesResponse,
        responses={401: {"model": ErrorBody}},
    )
    async def suggest_recipes(
        body: SuggestRecipesBody,
        user: UserContext = Depends(current_user),
    ) -> Any:
        try:
            request = RecipeRequest(
                ingredients=body.ingredients,
                image=body.image_base64,
                meal_context=body.meal_type,
                dietary_preferences=body.dietary_preferences,
                health_focus=body.health_focus,
                kitchen_preferences=body.kitchen_preferences,
                is_diabetic=body.is_diabetic,
                count=body.count,
                locale=locale_for(settings, body.user_language or user.language),
            )
        except ValidationError as exc:
            return _invalid_request("Invalid recipe request", exc)

        suggestions: RecipeSuggestions = await app.state.recipes.suggest(user, request)
        return SuggestRecipesResponse(
            recipes=list(suggestions.recipes),
            ingredients_detected=list(suggestions.ingredients_detected),
        )

    @app.post("/food-logs", response_model=FoodLogEntry, status_code=status.HTTP_201_CREATED)
    async def save_food_log(
        body: SaveFoodLogBody,
        user: UserContext = Depends(current_user),
    ) -> FoodLogEntry:
        entry: FoodLogEntry = await app.state.service.save_food_log(
            user, body.result, meal_type=body.meal_type, image_url=body.image_url
        )
        return entry

    @app.get("/food-logs", response_model=List[FoodLogEntry])
    async def recent_food_logs(
        limit: int = Query(10, ge=1, le=100),
        user: UserContext = Depends(current_user),
    ) -> List[FoodLogEntry]:
        entries: List[FoodLogEntry] = await app.state.service.recent_food_logs(user, limit=limit)
        return entries

    @app.get("/food-logs/today", response_model=DailyTotals)
    async def today_totals(user: UserContext = Depends(current_user)) -> DailyTotals:
        totals: DailyTotals = await app.state.service.today_totals(user)
        return totals

    @app.get("/food-logs/streak", response_model=StreakBody)
    async def streak(user: UserContext = Depends(current_user)) -> StreakBody:
        return StreakBody(streak=await app.state.diary.streak(user))

    @app.get("/food-logs/weekly", response_model=WeeklyStats)
    async def weekly_stats(user: UserContext = Depends(current_user)) -> WeeklyStats:
        stats: WeeklyStats = await app.state.diary.weekly_stats(user)
        return stats

    @app.post("/water-logs", response_model=WaterLogEntry, status_code=status.HTTP_201_CREATED)
    async def log_water(
        body: SaveWaterLogBody,
        user: UserContext = Depends(current_user),
    ) -> WaterLogEntry:
        entry: WaterLogEntry = await app.state.diary.log_water(user, body.amount_ml)
        return entry

    @app.get("/water-logs/today", response_model=WaterIntake)
    async def today_water(user: UserContext = Depends(current_user)) -> WaterIntake:
        intake: WaterIntake = await app.state.diary.today_water(user)
        return intake

    logger.info(
        "api.ready",
        provider=settings.provider,
        model=settings.model,
        credentials_configured=bool(settings.api_key),
    )
    return app


def main() -> None:
    import uvicorn

    load_dotenv()
    settings = AnalysisSettings.from_env()
    configure_logging(settings.log_level, settings.log_format)
    uvicorn.run(
        create_app(settings),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
