"""Extraction of the JSON object from provider text.

Providers are told to answer with bare JSON and routinely wrap it in
```json fences or prose, sometimes with a trailing comma. Truncated and
rejected replies are reported as such and never reach the parser.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

from calorieai.domain.analysis.ports import FinishStatus, ProviderReply
from calorieai.domain.errors import (
    MalformedResponseError,
    RejectedResponseError,
    TruncatedResponseError,
)

_FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\r?\n?")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def strip_code_fences(text: str) -> str:
    """Remove every markdown fence marker, keeping the fenced content."""
    return _FENCE_RE.sub("", text).strip()


def isolate_json_object(text: str) -> str:
    """Cut the text from the first ``{`` to the last ``}``."""
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last <= first:
        raise MalformedResponseError("NO_JSON_OBJECT", raw=text)
    return text[first : last + 1]


def repair_json(text: str) -> str:
    """Fix non-fatal defects: trailing commas before ``}`` or ``]``."""
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Parse an isolated object, retrying once on the repaired text.

    Raises:
        MalformedResponseError: If neither the text nor its repair parses,
            or the root is not an object
    """
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        try:
            obj = json.loads(repair_json(text))
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(f"INVALID_JSON: {exc.msg}", raw=text) from exc
    if not isinstance(obj, dict):
        raise MalformedResponseError("ROOT_NOT_OBJECT", raw=text)
    return obj


def check_finish(reply: ProviderReply) -> None:
    """Fail fast on provider-signaled truncation or rejection."""
    if reply.finish is FinishStatus.TRUNCATED:
        raise TruncatedResponseError(
            f"Provider stopped at its output limit ({reply.finish_reason})",
            raw=reply.text,
        )
    if reply.finish is FinishStatus.REJECTED:
        raise RejectedResponseError(
            f"Provider rejected the content ({reply.finish_reason})",
            raw=reply.text,
        )


def extract_payload(reply: ProviderReply) -> Dict[str, Any]:
    """
    Turn a provider reply into a JSON object.

    Order: completion status, fences, object isolation, repair, parse.

    Example:
        >>> reply = ProviderReply(
        ...     text='Sure! ```json\\n{"foods": [],}\\n```',
        ...     finish=FinishStatus.COMPLETE,
        ... )
        >>> extract_payload(reply)
        {'foods': []}
    """
    check_finish(reply)
    text = (reply.text or "").strip()
    if not text:
        raise MalformedResponseError("EMPTY_CONTENT")
    text = strip_code_fences(text)
    return parse_json_object(isolate_json_object(text))


__all__ = [
    "check_finish",
    "extract_payload",
    "isolate_json_object",
    "parse_json_object",
    "repair_json",
    "strip_code_fences",
]
