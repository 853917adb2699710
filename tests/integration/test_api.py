"""API tests through the ASGI app.

Repositories are in-memory; the provider is a scripted httpx transport, so
every status mapping can be exercised without network access.
"""

import json
from datetime import timedelta
from typing import Any, AsyncIterator, Callable, Dict

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from calorieai.api.app import UPGRADE_URL, create_app, locale_for
from calorieai.application.guidance import MESSAGES, UserGuidance
from calorieai.config import AnalysisSettings
from calorieai.domain.tracking.entities import ScanQuota, UserContext, utc_today
from calorieai.infrastructure.ai.client import AnalysisClient
from calorieai.infrastructure.persistence.factory import TrackingStores
from calorieai.infrastructure.persistence.in_memory import (
    InMemoryAnalysisLogRepository,
    InMemoryFoodLogRepository,
    InMemoryQuotaRepository,
    InMemoryUserDirectory,
    InMemoryWaterLogRepository,
)

pytestmark = pytest.mark.integration

AYSE = {"Authorization": "Bearer token-ayse"}
JOHN = {"Authorization": "Bearer token-john"}


@pytest.fixture
def stores() -> TrackingStores:
    users = InMemoryUserDirectory(
        {
            "token-ayse": UserContext(user_id="u1", language="tr"),
            "token-john": UserContext(user_id="u2", language="en"),
        }
    )
    return TrackingStores(
        users=users,
        quotas=InMemoryQuotaRepository(),
        analysis_logs=InMemoryAnalysisLogRepository(),
        food_logs=InMemoryFoodLogRepository(),
        water_logs=InMemoryWaterLogRepository(),
    )


@pytest_asyncio.fixture
async def api(
    settings: AnalysisSettings,
    stores: TrackingStores,
    http_factory: Any,
    sleep_recorder: Any,
) -> AsyncIterator[Callable[..., AsyncClient]]:
    """Build an API client whose provider replies follow ``transport``."""
    opened = []

    def _make(transport: Any, **overrides: Any) -> AsyncClient:
        app_settings = settings.with_overrides(**overrides) if overrides else settings
        analysis_client = AnalysisClient(
            app_settings, http_client=http_factory(transport), sleep=sleep_recorder
        )
        app = create_app(app_settings, stores=stores, client=analysis_client)
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")
        opened.append(client)
        return client

    yield _make
    for client in opened:
        await client.aclose()


@pytest.fixture
def body(pixel_png: str) -> Dict[str, Any]:
    return {
        "image_base64": f"data:image/png;base64,{pixel_png}",
        "meal_type": "Lunch",
        "dietary_preferences": ["vegetarian"],
    }


@pytest.fixture
def ok_transport(
    make_transport: Any, gemini_reply: Any, food_json: Any, lentil_soup: Dict[str, Any]
) -> Any:
    return make_transport(gemini_reply(food_json(lentil_soup)))


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, api: Any, ok_transport: Any) -> None:
        response = await api(ok_transport).get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["provider"] == "gemini"
        assert data["model"] == "gemini-2.0-flash"
        assert data["credentials_configured"] is True
        assert "counters" in data["metrics"]


class TestAuth:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "token-ayse"}, {"Authorization": "Bearer forged"}],
    )
    async def test_unauthorized(
        self, api: Any, ok_transport: Any, body: Dict[str, Any], headers: Dict[str, str]
    ) -> None:
        response = await api(ok_transport).post("/analyze-food", json=body, headers=headers)

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert ok_transport.call_count == 0


class TestAnalyzeFood:
    @pytest.mark.asyncio
    async def test_success(
        self, api: Any, ok_transport: Any, body: Dict[str, Any], stores: TrackingStores
    ) -> None:
        response = await api(ok_transport).post("/analyze-food", json=body, headers=AYSE)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["remaining_scans"] == 2
        assert data["result"]["items"][0]["localized_name"] == "Mercimek çorbası"
        assert data["result"]["totals"]["calories"] == 180
        sent = ok_transport.sent_json()
        assert "lunch" in sent["contents"][0]["parts"][0]["text"]
        assert sent["contents"][0]["parts"][1]["inline_data"]["mime_type"] == "image/png"
        assert len(stores.analysis_logs.entries) == 1  # type: ignore[attr-defined]
        assert data["uncertain_items"] == []

    @pytest.mark.asyncio
    async def test_low_confidence_items_are_flagged(
        self,
        api: Any,
        make_transport: Any,
        gemini_reply: Any,
        food_json: Any,
        lentil_soup: Dict[str, Any],
        bread: Dict[str, Any],
        body: Dict[str, Any],
    ) -> None:
        bread["confidence"] = 0.4
        transport = make_transport(gemini_reply(food_json(lentil_soup, bread)))

        response = await api(transport).post("/analyze-food", json=body, headers=AYSE)

        assert response.status_code == 200
        assert response.json()["uncertain_items"] == ["Ekmek"]

    @pytest.mark.asyncio
    async def test_daily_limit(
        self, api: Any, ok_transport: Any, body: Dict[str, Any], stores: TrackingStores
    ) -> None:
        await stores.quotas.save(
            ScanQuota(user_id="u1", daily_scan_count=3, daily_scan_date=utc_today())
        )

        response = await api(ok_transport).post("/analyze-food", json=body, headers=AYSE)

        assert response.status_code == 429
        data = response.json()
        assert data["error"] == "daily_limit_reached"
        assert data["upgrade_url"] == UPGRADE_URL
        assert data["guidance"] == "upgrade_plan"
        assert data["message"] == MESSAGES["tr"][UserGuidance.UPGRADE_PLAN]
        assert ok_transport.call_count == 0

    @pytest.mark.asyncio
    async def test_invalid_image(self, api: Any, ok_transport: Any) -> None:
        response = await api(ok_transport).post(
            "/analyze-food", json={"image_base64": "not base64!!"}, headers=AYSE
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "invalid_request"
        assert data["details"][0]["loc"] == ["image"]
        assert ok_transport.call_count == 0

    @pytest.mark.asyncio
    async def test_unknown_meal_type_rejected_by_body_schema(
        self, api: Any, ok_transport: Any, body: Dict[str, Any]
    ) -> None:
        body["meal_type"] = "brunch"

        response = await api(ok_transport).post("/analyze-food", json=body, headers=AYSE)

        assert response.status_code == 422


class TestFailureMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure,status_code,kind,guidance,attempt",
        [
            (httpx.Response(503, text="overloaded"), 502, "provider_error", "try_again_later", 3),
            (httpx.Response(403, text="forbidden"), 502, "provider_error", "contact_support", 1),
            (httpx.ReadTimeout("slow"), 504, "timeout", "check_connection", 3),
            (httpx.ConnectError("refused"), 503, "network_error", "check_connection", 3),
        ],
    )
    async def test_transport_failures(
        self,
        api: Any,
        make_transport: Any,
        body: Dict[str, Any],
        failure: Any,
        status_code: int,
        kind: str,
        guidance: str,
        attempt: int,
    ) -> None:
        response = await api(make_transport(failure)).post(
            "/analyze-food", json=body, headers=JOHN
        )

        assert response.status_code == status_code
        data = response.json()
        assert data["error"] == kind
        assert data["kind"] == kind
        assert data["guidance"] == guidance
        assert data["message"] == MESSAGES["en"][UserGuidance(guidance)]
        assert data["attempt"] == attempt

    @pytest.mark.asyncio
    async def test_no_food_detected(
        self, api: Any, make_transport: Any, gemini_reply: Any, body: Dict[str, Any]
    ) -> None:
        transport = make_transport(gemini_reply('{"foods": [], "health_score": 0}'))

        response = await api(transport).post("/analyze-food", json=body, headers=AYSE)

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "analysis_failed"
        assert data["kind"] == "invalid_schema"
        assert data["guidance"] == "retake_photo"
        assert data["attempt"] == 1
        assert data["message"] == MESSAGES["tr"][UserGuidance.RETAKE_PHOTO]

    @pytest.mark.asyncio
    async def test_truncated(
        self, api: Any, make_transport: Any, gemini_reply: Any, body: Dict[str, Any]
    ) -> None:
        transport = make_transport(gemini_reply('{"foods": [{', finish_reason="MAX_TOKENS"))

        response = await api(transport).post("/analyze-food", json=body, headers=JOHN)

        assert response.status_code == 422
        assert response.json()["kind"] == "truncated"
        assert response.json()["guidance"] == "try_again"

    @pytest.mark.asyncio
    async def test_missing_credentials(
        self, api: Any, ok_transport: Any, body: Dict[str, Any]
    ) -> None:
        response = await api(ok_transport, gemini_api_key=None).post(
            "/analyze-food", json=body, headers=JOHN
        )

        assert response.status_code == 500
        assert response.json()["kind"] == "missing_credentials"
        assert response.json()["guidance"] == "contact_support"
        assert ok_transport.call_count == 0

    @pytest.mark.asyncio
    async def test_failed_scan_does_not_consume_quota(
        self,
        api: Any,
        make_transport: Any,
        body: Dict[str, Any],
        stores: TrackingStores,
    ) -> None:
        await api(make_transport(httpx.Response(500, text="boom"))).post(
            "/analyze-food", json=body, headers=AYSE
        )

        assert (await stores.quotas.get("u1")).daily_scan_count == 0


class TestFoodLogs:
    @pytest.mark.asyncio
    async def test_save_list_and_totals(
        self, api: Any, ok_transport: Any, body: Dict[str, Any]
    ) -> None:
        client = api(ok_transport)
        analyzed = (await client.post("/analyze-food", json=body, headers=AYSE)).json()

        saved = await client.post(
            "/food-logs",
            json={"result": analyzed["result"], "meal_type": "lunch"},
            headers=AYSE,
        )
        listed = await client.get("/food-logs", headers=AYSE)
        today = await client.get("/food-logs/today", headers=AYSE)
        others = await client.get("/food-logs", headers=JOHN)

        assert saved.status_code == 201
        assert saved.json()["food_name"] == "Mercimek çorbası"
        assert saved.json()["serving_info"] == "250 g"
        assert [e["id"] for e in listed.json()] == [saved.json()["id"]]
        assert today.json()["count"] == 1
        assert today.json()["calories"] == 180
        assert others.json() == []

    @pytest.mark.asyncio
    async def test_totals_must_match_items(
        self, api: Any, ok_transport: Any, body: Dict[str, Any], stores: TrackingStores
    ) -> None:
        client = api(ok_transport)
        result = (await client.post("/analyze-food", json=body, headers=AYSE)).json()["result"]
        result["totals"]["calories"] = 999

        response = await client.post(
            "/food-logs", json={"result": result, "meal_type": "lunch"}, headers=AYSE
        )

        assert response.status_code == 422
        assert "totals.calories" in str(response.json())
        assert await stores.food_logs.recent("u1", limit=10) == []

    @pytest.mark.asyncio
    async def test_non_finite_values_are_rejected(
        self, api: Any, ok_transport: Any, body: Dict[str, Any]
    ) -> None:
        client = api(ok_transport)
        result = (await client.post("/analyze-food", json=body, headers=AYSE)).json()["result"]
        result["items"][0]["calories"] = "Infinity"

        response = await client.post("/food-logs", json={"result": result}, headers=AYSE)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_limit_is_bounded(self, api: Any, ok_transport: Any) -> None:
        response = await api(ok_transport).get("/food-logs?limit=0", headers=AYSE)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_auth(self, api: Any, ok_transport: Any) -> None:
        response = await api(ok_transport).get("/food-logs/today")

        assert response.status_code == 401


RECIPE = {
    "title": "Mercimek köftesi",
    "description": "Bulgurlu kırmızı mercimek.",
    "ingredients": ["1 su bardağı mercimek", "1 su bardağı bulgur"],
    "instructions": ["Mercimeği haşla.", "Bulguru ekle.", "Yoğur ve şekil ver."],
    "prep_time": 40,
    "calories": 260,
    "protein": 13,
    "carbs": 45,
    "fat": 4,
    "difficulty": "Easy",
    "suitability_score": 90,
    "suitability_reason": "Vejetaryen ve lifli.",
}


class TestRecipes:
    @pytest.mark.asyncio
    async def test_suggest(
        self, api: Any, make_transport: Any, gemini_reply: Any, stores: TrackingStores
    ) -> None:
        transport = make_transport(gemini_reply(json.dumps({"recipes": [RECIPE]})))

        response = await api(transport).post(
            "/recipes/suggest",
            json={"ingredients": ["mercimek", "bulgur"], "meal_type": "any", "count": 1},
            headers=AYSE,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["recipes"][0]["title"] == "Mercimek köftesi"
        assert data["recipes"][0]["difficulty"] == "easy"
        assert data["ingredients_detected"] == []
        assert "Suggest 1 diverse recipes" in json.dumps(transport.sent_json())
        assert (await stores.quotas.get("u1")).daily_scan_count == 0

    @pytest.mark.asyncio
    async def test_invalid_image(self, api: Any, ok_transport: Any) -> None:
        response = await api(ok_transport).post(
            "/recipes/suggest", json={"image_base64": "not base64!!"}, headers=JOHN
        )

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_request"
        assert ok_transport.call_count == 0

    @pytest.mark.asyncio
    async def test_requires_auth(self, api: Any, ok_transport: Any) -> None:
        response = await api(ok_transport).post("/recipes/suggest", json={})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_provider_error(self, api: Any, make_transport: Any) -> None:
        transport = make_transport(httpx.Response(403, text="forbidden"))

        response = await api(transport).post("/recipes/suggest", json={}, headers=JOHN)

        assert response.status_code == 502
        assert response.json()["kind"] == "provider_error"
        assert response.json()["message"] == MESSAGES["en"][UserGuidance.CONTACT_SUPPORT]


class TestDiary:
    @pytest.mark.asyncio
    async def test_streak_and_weekly_stats(
        self, api: Any, ok_transport: Any, body: Dict[str, Any]
    ) -> None:
        client = api(ok_transport)
        empty = await client.get("/food-logs/streak", headers=AYSE)
        result = (await client.post("/analyze-food", json=body, headers=AYSE)).json()["result"]
        await client.post("/food-logs", json={"result": result}, headers=AYSE)

        streak = await client.get("/food-logs/streak", headers=AYSE)
        weekly = await client.get("/food-logs/weekly", headers=AYSE)

        assert empty.json() == {"streak": 0}
        assert streak.json() == {"streak": 1}
        data = weekly.json()
        today = utc_today()
        assert data["week_start"] == (today - timedelta(days=today.weekday())).isoformat()
        assert data["daily_calories"][today.weekday()] == 180
        assert sum(data["daily_calories"]) == 180
        assert data["total_meals"] == 1
        assert data["total_scans"] == 1
        assert data["average_calories"] == 180
        assert data["streak"] == 1

    @pytest.mark.asyncio
    async def test_water_logs(self, api: Any, ok_transport: Any) -> None:
        client = api(ok_transport)

        first = await client.post("/water-logs", json={"amount_ml": 250}, headers=AYSE)
        await client.post("/water-logs", json={"amount_ml": 500}, headers=AYSE)
        mine = await client.get("/water-logs/today", headers=AYSE)
        others = await client.get("/water-logs/today", headers=JOHN)

        assert first.status_code == 201
        assert first.json()["amount_ml"] == 250
        assert first.json()["type"] == "plain_water"
        assert mine.json()["total_ml"] == 750
        assert mine.json()["count"] == 2
        assert others.json()["total_ml"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -100, 5001])
    async def test_water_amount_is_bounded(
        self, api: Any, ok_transport: Any, amount: int
    ) -> None:
        response = await api(ok_transport).post(
            "/water-logs", json={"amount_ml": amount}, headers=AYSE
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_auth(self, api: Any, ok_transport: Any) -> None:
        responses = [
            await api(ok_transport).get(path)
            for path in ("/food-logs/streak", "/food-logs/weekly", "/water-logs/today")
        ]

        assert [r.status_code for r in responses] == [401, 401, 401]


def test_locale_for(settings: AnalysisSettings) -> None:
    assert locale_for(settings, "en").primary == "en"
    assert locale_for(settings, "en").secondary == "tr"
    tr = locale_for(settings, None)
    assert tr.primary == "tr"
    assert tr.secondary == "en"
    assert locale_for(settings, "DE").secondary == "en"
