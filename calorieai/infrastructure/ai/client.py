"""
Analysis client: one food photo in, one validated AnalysisResult out.

Pipeline per call:
1. credentials check (no network call without a key)
2. prompt + provider request
3. POST with a wall-clock timeout, retried on transient failures with
   linear backoff (attempt n waits n * base_delay_s)
4. response extraction and repair
5. normalization and validation

Every failure is raised as an AnalysisError subclass carrying the attempt
number that produced it. Recipe suggestions run through the same pipeline
with their own prompt and normalizer.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from calorieai.config import AnalysisSettings
from calorieai.domain.analysis.entities import AnalysisRequest, AnalysisResult
from calorieai.domain.analysis.extraction import extract_payload
from calorieai.domain.analysis.normalizer import merge_aliases, normalize_payload
from calorieai.domain.analysis.ports import IVisionProvider, ProviderCall, ProviderReply
from calorieai.domain.analysis.prompt import build_prompt
from calorieai.domain.errors import (
    AnalysisError,
    AnalysisTimeoutError,
    MalformedResponseError,
    MissingCredentialsError,
    NetworkError,
    ProviderError,
    is_transient,
)
from calorieai.domain.recipes.entities import RecipeRequest, RecipeSuggestions
from calorieai.domain.recipes.normalizer import normalize_recipes
from calorieai.domain.recipes.prompt import build_recipe_prompt
from calorieai.infrastructure.ai.providers.factory import create_vision_provider
from calorieai.metrics import analysis as analysis_metrics

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class AnalysisClient:
    """
    Async client for food photo analysis and recipe suggestions.

    Holds no mutable state between calls, so one instance can serve
    concurrent requests.

    Args:
        settings: Provider, key, timeout and retry policy
        provider: Adapter override (defaults to the one named in settings)
        http_client: Shared httpx.AsyncClient; when omitted a short-lived
            client is opened per attempt. An injected client is never closed
            here.
        sleep: Backoff sleep (tests pass a recorder)

    Example:
        >>> client = AnalysisClient(AnalysisSettings.from_env())
        >>> result = await client.analyze(
        ...     AnalysisRequest(image=photo_b64, meal_context="lunch")
        ... )
        >>> result.totals.calories
        640.0
    """

    def __init__(
        self,
        settings: AnalysisSettings,
        provider: Optional[IVisionProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._provider = provider or create_vision_provider(settings)
        self._http = http_client
        self._sleep = sleep
        self._aliases = merge_aliases(self._provider.field_aliases)

    @property
    def provider_name(self) -> str:
        return self._provider.name

    @property
    def model(self) -> str:
        return self._provider.model

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Analyze one photo.

        Raises:
            MissingCredentialsError: No key for the configured provider
            AnalysisTimeoutError / NetworkError / ProviderError: Transport
                failure on the last attempt, or a non-retryable status
            TruncatedResponseError / RejectedResponseError: Provider signal
            MalformedResponseError: No parseable JSON object in the reply
            InvalidSchemaError: JSON does not describe any valid food item
        """
        started = time.perf_counter()
        provider = self._provider.name
        log = logger.bind(provider=provider, model=self._provider.model)

        attempts = 0
        try:
            api_key = self._require_key()
            call = self._provider.build_call(request, build_prompt(request), api_key)
            reply, attempts = await self._complete(call)
            payload = extract_payload(reply)
            result = normalize_payload(
                payload,
                aliases=self._aliases,
                processing_time_ms=_elapsed_ms(started),
                provider=provider,
                model=reply.model or self._provider.model,
                attempts=attempts,
                usage=reply.usage,
            )
        except AnalysisError as exc:
            if exc.attempt is None:
                exc.attempt = attempts or None
            elapsed = _elapsed_ms(started)
            analysis_metrics.record_failed(provider, exc.kind.value, elapsed)
            log.warning(
                "analysis.failed",
                kind=exc.kind.value,
                error=exc.message,
                status=exc.status,
                attempt=exc.attempt,
                raw_snippet=exc.raw_snippet,
                processing_time_ms=elapsed,
            )
            raise

        analysis_metrics.record_completed(provider, result.processing_time_ms)
        log.info(
            "analysis.completed",
            attempts=result.attempts,
            items=len(result.items),
            calories=result.totals.calories,
            finish_reason=reply.finish_reason,
            total_tokens=result.usage.total_tokens if result.usage else None,
            processing_time_ms=result.processing_time_ms,
        )
        return result

    async def suggest_recipes(self, request: RecipeRequest) -> RecipeSuggestions:
        """
        Suggest recipes from ingredient names and/or an ingredient photo.

        Same transport, retry and extraction as ``analyze``; only the prompt
        and the output schema differ.

        Raises:
            AnalysisError: Same classification as ``analyze``
        """
        started = time.perf_counter()
        log = logger.bind(provider=self._provider.name, model=self._provider.model)

        attempts = 0
        try:
            api_key = self._require_key()
            call = self._provider.build_call(request, build_recipe_prompt(request), api_key)
            reply, attempts = await self._complete(call)
            suggestions = normalize_recipes(
                extract_payload(reply),
                processing_time_ms=_elapsed_ms(started),
                provider=self._provider.name,
                model=reply.model or self._provider.model,
                attempts=attempts,
                usage=reply.usage,
            )
        except AnalysisError as exc:
            if exc.attempt is None:
                exc.attempt = attempts or None
            log.warning(
                "recipes.failed",
                kind=exc.kind.value,
                error=exc.message,
                attempt=exc.attempt,
                raw_snippet=exc.raw_snippet,
            )
            raise

        log.info(
            "recipes.completed",
            attempts=attempts,
            recipes=len(suggestions.recipes),
            processing_time_ms=suggestions.processing_time_ms,
        )
        return suggestions

    def _require_key(self) -> str:
        api_key = self._settings.api_key
        if not api_key:
            raise MissingCredentialsError(
                f"No API key configured for provider '{self._provider.name}'"
            )
        return api_key

    async def _complete(self, call: ProviderCall) -> Tuple[ProviderReply, int]:
        """Send ``call`` under the retry policy; returns the reply and attempts used."""
        attempt_no = 0
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_incrementing(
                start=self._settings.base_delay_s,
                increment=self._settings.base_delay_s,
            ),
            retry=retry_if_exception(is_transient),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        ):
            with attempt:
                attempt_no = attempt.retry_state.attempt_number
                reply = await self._send(call, attempt_no)
        return reply, attempt_no

    async def _send(self, call: ProviderCall, attempt_no: int) -> ProviderReply:
        """One attempt, bounded by the wall-clock timeout."""
        timeout_s = self._settings.timeout_s
        try:
            try:
                reply = await asyncio.wait_for(self._post(call), timeout=timeout_s)
            except asyncio.TimeoutError as exc:
                raise AnalysisTimeoutError(f"No response within {timeout_s}s") from exc
        except AnalysisError as exc:
            exc.attempt = attempt_no
            analysis_metrics.record_attempt(self._provider.name, exc.kind.value)
            logger.debug(
                "analysis.attempt_failed",
                provider=self._provider.name,
                attempt=attempt_no,
                kind=exc.kind.value,
                status=exc.status,
            )
            raise
        analysis_metrics.record_attempt(self._provider.name, "ok")
        return reply

    async def _post(self, call: ProviderCall) -> ProviderReply:
        if self._http is not None:
            response = await self._request(self._http, call)
        else:
            async with httpx.AsyncClient(timeout=self._settings.timeout_s) as http:
                response = await self._request(http, call)

        if not response.is_success:
            raise ProviderError(
                f"{self._provider.name} returned HTTP {response.status_code}",
                status=response.status_code,
                raw=response.text,
            )
        try:
            body: Any = response.json()
        except ValueError as exc:
            raise MalformedResponseError("BODY_NOT_JSON", raw=response.text) from exc
        if not isinstance(body, dict):
            raise MalformedResponseError("BODY_NOT_OBJECT", raw=response.text)
        return self._provider.read_reply(body)

    @staticmethod
    async def _request(http: httpx.AsyncClient, call: ProviderCall) -> httpx.Response:
        headers: Dict[str, str] = {"Content-Type": "application/json", **call.headers}
        try:
            return await http.post(call.url, json=call.payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise AnalysisTimeoutError(f"Transport timeout: {type(exc).__name__}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Transport failure: {type(exc).__name__}: {exc}") from exc

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        kind = exc.kind.value if isinstance(exc, AnalysisError) else "unknown"
        analysis_metrics.record_retry(self._provider.name, kind)
        logger.info(
            "analysis.retry_scheduled",
            provider=self._provider.name,
            attempt=retry_state.attempt_number,
            kind=kind,
            delay_s=retry_state.next_action.sleep if retry_state.next_action else None,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
