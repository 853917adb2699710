"""Provider factory.

Selection follows ``AnalysisSettings.provider`` (env ``VISION_PROVIDER``):
- "gemini": Google Gemini generateContent (default)
- "openai": OpenAI chat/completions with a vision message

Usage:
    from calorieai.infrastructure.ai.providers.factory import create_vision_provider

    provider = create_vision_provider(AnalysisSettings.from_env())
"""

from calorieai.config import AnalysisSettings
from calorieai.domain.analysis.ports import IVisionProvider
from calorieai.infrastructure.ai.providers.gemini import GeminiProvider
from calorieai.infrastructure.ai.providers.openai_chat import OpenAIChatProvider


def create_vision_provider(settings: AnalysisSettings) -> IVisionProvider:
    """Create the provider adapter named in settings.

    The API key is not checked here; AnalysisClient raises
    MissingCredentialsError per call instead.
    """
    if settings.provider == "openai":
        return OpenAIChatProvider(
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            temperature=settings.temperature,
            max_output_tokens=settings.max_output_tokens,
        )
    if settings.provider == "gemini":
        return GeminiProvider(
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            temperature=settings.temperature,
            max_output_tokens=settings.max_output_tokens,
        )
    raise ValueError(f"Unknown vision provider: {settings.provider!r}")
