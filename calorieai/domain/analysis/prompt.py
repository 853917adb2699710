"""Prompt construction for food photo analysis."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from calorieai.domain.analysis.entities import AnalysisRequest

# Bump when the output schema or the rules change.
PROMPT_VERSION = 1

LANGUAGE_NAMES = {
    "tr": "Turkish",
    "en": "English",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "ar": "Arabic",
}


@dataclass(frozen=True)
class PromptBundle:
    system: str
    user: str
    version: int = PROMPT_VERSION


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code)


def _sorted_tags(tags: Iterable[str]) -> List[str]:
    return sorted(tags, key=str.lower)


def generate_system_prompt(*, primary: str = "tr", secondary: str = "en") -> str:
    """System instruction fixing the exact output schema.

    Providers do not always honor the "JSON only" rule, so the response
    extraction never relies on it.
    """
    primary_lang = language_name(primary)
    secondary_lang = language_name(secondary)
    return (
        "You are a professional nutritionist AI. Analyze the food in the image."
        " TASK: identify ALL visible food items separately, estimate each"
        " portion in grams (a standard dinner plate is about 26 cm across),"
        " and compute calories and macros per item."
        " MUST: return ONLY a valid UTF-8 JSON object with exactly this schema:"
        ' {"foods":[{"localized_name":"<'
        + primary_lang
        + ' name>","alternate_name":"<'
        + secondary_lang
        + ' name>","estimated_grams":<number>0>,"confidence":<0-1>,'
        '"calories":<kcal>=0>,"protein":<g>=0>,"carbs":<g>=0>,"fat":<g>=0>,'
        '"fiber":<g>=0>}],"health_score":<integer 0-100>,"insight":"<text>"}.'
        " DO_NOT: wrap the JSON in markdown or code fences, add explanations,"
        " comments or any text before or after the JSON object."
        " RULES:"
        " 1. every item needs all nine fields; numbers are plain numbers, no units"
        " 2. confidence is 0-1 (1 = certain); health_score is 0-100 (100 = very healthy)"
        " 3. side dishes such as bread, rice or salad count as separate items"
        " 4. insight is one or two sentences in "
        + primary_lang
        + "."
        ' 5. if there is no food in the image return {"foods":[]}'
    )


def generate_user_prompt(request: AnalysisRequest) -> str:
    """Contextual hints from the caller (meal, dietary flags, health focus)."""
    lines = [f"Meal type context: {request.meal_context.value}."]
    if request.dietary_preferences:
        prefs = ", ".join(_sorted_tags(request.dietary_preferences))
        lines.append(f"User dietary preferences: {prefs}.")
    if request.health_focus:
        focus = ", ".join(_sorted_tags(request.health_focus))
        lines.append(f"User health focus: {focus}.")
    lines.append("Analyze this food photo and answer with the JSON object only.")
    return " ".join(lines)


def build_prompt(request: AnalysisRequest) -> PromptBundle:
    return PromptBundle(
        system=generate_system_prompt(
            primary=request.locale.primary,
            secondary=request.locale.secondary,
        ),
        user=generate_user_prompt(request),
    )


__all__ = [
    "PROMPT_VERSION",
    "PromptBundle",
    "build_prompt",
    "generate_system_prompt",
    "generate_user_prompt",
    "language_name",
]
