"""Google Gemini adapter (REST ``models/{model}:generateContent``).

Implements IVisionProvider: the image (when there is one) travels as
``inline_data`` next to the user hints, the schema instruction as
``systemInstruction``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from calorieai.domain.analysis.ports import (
    FinishStatus,
    ImageInput,
    ProviderCall,
    ProviderReply,
)
from calorieai.domain.analysis.prompt import PromptBundle
from calorieai.domain.errors import RejectedResponseError
from calorieai.infrastructure.ai.providers.base import envelope_error, first_dict, token_usage

_FINISH_MAP = {
    "STOP": FinishStatus.COMPLETE,
    "MAX_TOKENS": FinishStatus.TRUNCATED,
    "SAFETY": FinishStatus.REJECTED,
    "RECITATION": FinishStatus.REJECTED,
    "BLOCKLIST": FinishStatus.REJECTED,
    "PROHIBITED_CONTENT": FinishStatus.REJECTED,
    "SPII": FinishStatus.REJECTED,
    "IMAGE_SAFETY": FinishStatus.REJECTED,
}

# Keys used by the first Gemini prompt (name_tr / name_en), still accepted.
_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "localized_name": ("localized_name", "name_tr"),
    "alternate_name": ("alternate_name", "name_en"),
}


class GeminiProvider:
    """
    Gemini vision adapter.

    Example:
        >>> provider = GeminiProvider(model="gemini-2.0-flash")
        >>> call = provider.build_call(request, build_prompt(request), "key")
        >>> call.url
        'https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent'
    """

    name = "gemini"

    def __init__(
        self,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
    ) -> None:
        self.model = model
        self._base_url = base_url.rstrip("/")
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    @property
    def field_aliases(self) -> Mapping[str, Tuple[str, ...]]:
        return _FIELD_ALIASES

    def build_call(
        self,
        request: ImageInput,
        prompt: PromptBundle,
        api_key: str,
    ) -> ProviderCall:
        parts: List[Dict[str, Any]] = [{"text": prompt.user}]
        if request.image:
            parts.append({"inline_data": {"mime_type": request.mime_type, "data": request.image}})
        payload: Dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": prompt.system}]},
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "temperature": self._temperature,
                "maxOutputTokens": self._max_output_tokens,
                "responseMimeType": "application/json",
            },
        }
        return ProviderCall(
            url=f"{self._base_url}/models/{self.model}:generateContent",
            payload=payload,
            # header instead of ?key= so the key never shows up in URL logs
            headers={"x-goog-api-key": api_key},
        )

    def read_reply(self, body: Dict[str, Any]) -> ProviderReply:
        feedback = body.get("promptFeedback")
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            raise RejectedResponseError(f"Prompt blocked ({feedback['blockReason']})")

        candidate = first_dict(body.get("candidates"), "NO_CANDIDATES", body)
        finish_reason = candidate.get("finishReason")
        content = candidate.get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None
        if parts is not None and not isinstance(parts, list):
            raise envelope_error("PARTS_NOT_LIST", body)
        text = "".join(
            p.get("text", "") for p in parts or [] if isinstance(p, dict) and not p.get("thought")
        )

        meta = body.get("usageMetadata") or {}
        return ProviderReply(
            text=text,
            finish=_FINISH_MAP.get(str(finish_reason).upper(), FinishStatus.UNKNOWN),
            finish_reason=finish_reason,
            usage=token_usage(
                meta.get("promptTokenCount"),
                meta.get("candidatesTokenCount"),
                meta.get("totalTokenCount"),
            ),
            model=body.get("modelVersion") or self.model,
        )
