"""Port (interface) for vision model providers.

A provider adapter only knows how to shape the HTTP request for its API
and how to read the response envelope. Transport, timeout, retry, parsing
and normalization live in the client and are shared by every provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from calorieai.domain.analysis.entities import TokenUsage
from calorieai.domain.analysis.prompt import PromptBundle


class FinishStatus(str, Enum):
    """Provider-reported completion status, normalized across providers."""

    COMPLETE = "complete"
    TRUNCATED = "truncated"  # output length limit hit
    REJECTED = "rejected"  # safety filter / refusal / blocked prompt
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProviderCall:
    """Ready-to-send HTTP request."""

    url: str
    payload: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderReply:
    """Text content and metadata read from a successful (2xx) response."""

    text: str
    finish: FinishStatus
    finish_reason: Optional[str] = None  # raw provider value, for logs
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None


class ImageInput(Protocol):
    """What a provider reads from a request: an optional base64 image."""

    @property
    def image(self) -> Optional[str]:
        ...

    @property
    def mime_type(self) -> str:
        ...


class IVisionProvider(Protocol):
    """
    Interface for vision model providers.

    Implementations:
    - GeminiProvider (generateContent REST API)
    - OpenAIChatProvider (chat/completions REST API)
    - test doubles
    """

    name: str
    model: str

    @property
    def field_aliases(self) -> Mapping[str, Tuple[str, ...]]:
        """Provider-specific field names, merged over the default aliases."""
        ...

    def build_call(
        self,
        request: ImageInput,
        prompt: PromptBundle,
        api_key: str,
    ) -> ProviderCall:
        """
        Build the HTTP request for one call.

        Args:
            request: Analysis or recipe request; the image part is left out
                when it has no image
            prompt: System instruction and user hints
            api_key: Provider credential

        Returns:
            ProviderCall with URL, JSON payload and headers
        """
        ...

    def read_reply(self, body: Dict[str, Any]) -> ProviderReply:
        """
        Read text, completion status and usage from a 2xx JSON body.

        Raises:
            MalformedResponseError: If the envelope lacks the expected structure
            RejectedResponseError: If the prompt itself was blocked
        """
        ...
