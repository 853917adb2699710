"""OpenAI adapter (REST ``chat/completions`` with a vision message).

Implements IVisionProvider. The image is sent as a ``data:`` URL with
``detail: high``; JSON mode is requested but not relied upon.
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
from calorieai.infrastructure.ai.providers.base import envelope_error, first_dict, token_usage

_FINISH_MAP = {
    "stop": FinishStatus.COMPLETE,
    "length": FinishStatus.TRUNCATED,
    "content_filter": FinishStatus.REJECTED,
}

# Server-side analyze-food variant answered with foods / name_tr / name_en.
_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "items": ("foods",),
    "localized_name": ("localized_name", "name_tr"),
    "alternate_name": ("alternate_name", "name_en"),
}


class OpenAIChatProvider:
    """OpenAI GPT-4o vision adapter."""

    name = "openai"

    def __init__(
        self,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
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
        content: List[Dict[str, Any]] = []
        if request.image:
            content.append(
                {
                    "type": "image_url",
                    "image_url": {
                        "url": f"data:{request.mime_type};base64,{request.image}",
                        "detail": "high",
                    },
                }
            )
        content.append({"type": "text", "text": prompt.user})
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": content},
            ],
            "max_tokens": self._max_output_tokens,
            "temperature": self._temperature,
            "response_format": {"type": "json_object"},
        }
        return ProviderCall(
            url=f"{self._base_url}/chat/completions",
            payload=payload,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def read_reply(self, body: Dict[str, Any]) -> ProviderReply:
        choice = first_dict(body.get("choices"), "NO_CHOICES", body)
        message = choice.get("message")
        if not isinstance(message, dict):
            raise envelope_error("NO_MESSAGE", body)

        finish_reason = choice.get("finish_reason")
        finish = _FINISH_MAP.get(str(finish_reason).lower(), FinishStatus.UNKNOWN)
        refusal = message.get("refusal")
        if refusal:
            finish = FinishStatus.REJECTED

        content = message.get("content")
        text = content if isinstance(content, str) else (refusal or "")

        usage = body.get("usage") or {}
        return ProviderReply(
            text=text,
            finish=finish,
            finish_reason=finish_reason if not refusal else "refusal",
            usage=token_usage(
                usage.get("prompt_tokens"),
                usage.get("completion_tokens"),
                usage.get("total_tokens"),
            ),
            model=body.get("model") or self.model,
        )
