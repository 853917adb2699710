"""Repository wiring.

Supabase when SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are set,
in-memory otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from calorieai.config import AnalysisSettings
from calorieai.domain.tracking.ports import (
    IAnalysisLogRepository,
    IFoodLogRepository,
    IQuotaRepository,
    IUserDirectory,
    IWaterLogRepository,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TrackingStores:
    users: IUserDirectory
    quotas: IQuotaRepository
    analysis_logs: IAnalysisLogRepository
    food_logs: IFoodLogRepository
    water_logs: IWaterLogRepository


def create_tracking_stores(settings: AnalysisSettings) -> TrackingStores:
    if settings.supabase_configured:
        from calorieai.infrastructure.persistence.supabase_store import (
            SupabaseAnalysisLogRepository,
            SupabaseFoodLogRepository,
            SupabaseQuotaRepository,
            SupabaseUserDirectory,
            SupabaseWaterLogRepository,
            create_supabase_client,
        )

        client = create_supabase_client(settings.supabase_url, settings.supabase_service_key)
        logger.info("tracking.backend", backend="supabase")
        return TrackingStores(
            users=SupabaseUserDirectory(client),
            quotas=SupabaseQuotaRepository(client),
            analysis_logs=SupabaseAnalysisLogRepository(client),
            food_logs=SupabaseFoodLogRepository(client),
            water_logs=SupabaseWaterLogRepository(client),
        )

    from calorieai.infrastructure.persistence.in_memory import (
        InMemoryAnalysisLogRepository,
        InMemoryFoodLogRepository,
        InMemoryQuotaRepository,
        InMemoryUserDirectory,
        InMemoryWaterLogRepository,
    )

    logger.warning("tracking.backend", backend="in_memory", reason="supabase not configured")
    return TrackingStores(
        users=InMemoryUserDirectory(),
        quotas=InMemoryQuotaRepository(),
        analysis_logs=InMemoryAnalysisLogRepository(),
        food_logs=InMemoryFoodLogRepository(),
        water_logs=InMemoryWaterLogRepository(),
    )
