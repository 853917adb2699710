"""Vision provider adapters."""

from calorieai.infrastructure.ai.providers.factory import create_vision_provider
from calorieai.infrastructure.ai.providers.gemini import GeminiProvider
from calorieai.infrastructure.ai.providers.openai_chat import OpenAIChatProvider

__all__ = ["GeminiProvider", "OpenAIChatProvider", "create_vision_provider"]
