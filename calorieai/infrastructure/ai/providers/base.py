"""Helpers shared by the provider adapters."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from calorieai.domain.analysis.entities import TokenUsage
from calorieai.domain.errors import MalformedResponseError


def envelope_error(code: str, body: Any) -> MalformedResponseError:
    try:
        raw = json.dumps(body)[:500]
    except (TypeError, ValueError):
        raw = repr(body)[:500]
    return MalformedResponseError(code, raw=raw)


def first_dict(value: Any, code: str, body: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``value[0]`` if ``value`` is a non-empty list of dicts."""
    if not isinstance(value, list) or not value or not isinstance(value[0], dict):
        raise envelope_error(code, body)
    first: Dict[str, Any] = value[0]
    return first


def as_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(0, int(value))


def token_usage(
    prompt: Any,
    completion: Any,
    total: Any,
) -> Optional[TokenUsage]:
    counts: List[int] = [as_count(prompt), as_count(completion), as_count(total)]
    if not any(counts):
        return None
    prompt_tokens, completion_tokens, total_tokens = counts
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens or prompt_tokens + completion_tokens,
    )
