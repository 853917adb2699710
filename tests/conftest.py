"""Shared fixtures.

Provider HTTP is faked with ``httpx.MockTransport``; backoff sleeps are
recorded instead of awaited, so retry tests run instantly.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

import httpx
import pytest
import pytest_asyncio
from dotenv import load_dotenv

from calorieai.config import AnalysisSettings
from calorieai.domain.analysis.entities import AnalysisRequest
from calorieai.metrics.analysis import reset_all

env_test_path = Path(__file__).parent.parent / ".env.test"
if env_test_path.exists():
    load_dotenv(env_test_path, override=True)

# 1x1 PNG
PIXEL_PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mP8/x8AAwMCAO+ip1sAAAAASUVORK5CYII="
)

LENTIL_SOUP: Dict[str, Any] = {
    "localized_name": "Mercimek çorbası",
    "alternate_name": "Lentil soup",
    "estimated_grams": 250,
    "confidence": 0.9,
    "calories": 180,
    "protein": 11,
    "carbs": 28,
    "fat": 3,
    "fiber": 6,
}

BREAD: Dict[str, Any] = {
    "localized_name": "Ekmek",
    "alternate_name": "Bread",
    "estimated_grams": 50,
    "confidence": 0.7,
    "calories": 130,
    "protein": 4.5,
    "carbs": 25,
    "fat": 1.2,
    "fiber": 1.5,
}


class SleepRecorder:
    """Drop-in for ``asyncio.sleep`` that records delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


class ScriptedTransport:
    """
    Replays one handler result per request, in order.

    Items are ``httpx.Response`` objects or exceptions to raise.
    The last item repeats once the script runs out.
    """

    def __init__(self, script: List[Any]) -> None:
        self._script = list(script)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self._script)) - 1
        item = self._script[index]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def sent_json(self, index: int = 0) -> Dict[str, Any]:
        body: Dict[str, Any] = json.loads(self.requests[index].content)
        return body


@pytest.fixture(autouse=True)
def _reset_metrics() -> Iterator[None]:
    reset_all()
    yield
    reset_all()


@pytest.fixture
def settings() -> AnalysisSettings:
    return AnalysisSettings(
        provider="gemini",
        gemini_api_key="test-gemini-key",
        openai_api_key="test-openai-key",
        timeout_s=5.0,
        max_attempts=3,
        base_delay_s=1.0,
    )


@pytest.fixture
def analysis_request() -> AnalysisRequest:
    return AnalysisRequest(
        image=PIXEL_PNG_B64,
        mime_type="image/png",
        meal_context="lunch",
        dietary_preferences={"vegetarian"},
        health_focus={"low sugar"},
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


def gemini_response(
    text: str,
    *,
    finish_reason: Optional[str] = "STOP",
    status_code: int = 200,
    usage: Optional[Dict[str, int]] = None,
) -> httpx.Response:
    candidate: Dict[str, Any] = {"content": {"role": "model", "parts": [{"text": text}]}}
    if finish_reason is not None:
        candidate["finishReason"] = finish_reason
    body: Dict[str, Any] = {
        "candidates": [candidate],
        "usageMetadata": usage
        or {"promptTokenCount": 1200, "candidatesTokenCount": 300, "totalTokenCount": 1500},
        "modelVersion": "gemini-2.0-flash",
    }
    return httpx.Response(status_code, json=body)


def openai_response(
    content: Optional[str],
    *,
    finish_reason: str = "stop",
    refusal: Optional[str] = None,
) -> httpx.Response:
    message: Dict[str, Any] = {"role": "assistant", "content": content}
    if refusal is not None:
        message["refusal"] = refusal
    return httpx.Response(
        200,
        json={
            "id": "chatcmpl-1",
            "model": "gpt-4o-2024-08-06",
            "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
            "usage": {"prompt_tokens": 900, "completion_tokens": 200, "total_tokens": 1100},
        },
    )


def analysis_json(*items: Dict[str, Any], **extra: Any) -> str:
    payload: Dict[str, Any] = {"foods": list(items), "health_score": 72, "insight": "Dengeli."}
    payload.update(extra)
    return json.dumps(payload, ensure_ascii=False)


@pytest.fixture
def gemini_reply() -> Callable[..., httpx.Response]:
    return gemini_response


@pytest.fixture
def openai_reply() -> Callable[..., httpx.Response]:
    return openai_response


@pytest.fixture
def food_json() -> Callable[..., str]:
    return analysis_json


@pytest.fixture
def lentil_soup() -> Dict[str, Any]:
    return dict(LENTIL_SOUP)


@pytest.fixture
def bread() -> Dict[str, Any]:
    return dict(BREAD)


@pytest.fixture
def pixel_png() -> str:
    return PIXEL_PNG_B64


@pytest.fixture
def make_transport() -> Callable[..., ScriptedTransport]:
    def _make(*script: Any) -> ScriptedTransport:
        return ScriptedTransport(list(script))

    return _make


@pytest_asyncio.fixture
async def http_factory() -> Any:
    """Build httpx clients on a scripted transport; closes them afterwards."""
    clients: List[httpx.AsyncClient] = []

    def _make(transport: ScriptedTransport) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()
