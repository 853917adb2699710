"""Configuration for the analysis pipeline.

Everything is read from the process environment. Entry points (scripts,
app factory, test conftest) load ``.env`` with python-dotenv before calling
``AnalysisSettings.from_env()``; importing this module never touches the
filesystem.

Example .env:
    VISION_PROVIDER=gemini
    GEMINI_API_KEY=...
    ANALYSIS_TIMEOUT_S=20
    ANALYSIS_MAX_ATTEMPTS=3
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

SUPPORTED_PROVIDERS = ("gemini", "openai")


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class AnalysisSettings:
    """
    Settings for the analysis client and the service around it.

    A missing API key is allowed here: the client refuses to run with
    MissingCredentialsError instead, so the app can still boot and report
    the problem per request.
    """

    provider: str = "gemini"
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    openai_model: str = "gpt-4o"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    openai_base_url: str = "https://api.openai.com/v1"

    timeout_s: float = 20.0
    max_attempts: int = 3
    base_delay_s: float = 1.0
    max_output_tokens: int = 2048
    temperature: float = 0.2

    primary_language: str = "tr"
    secondary_language: str = "en"

    free_daily_scan_limit: int = 3
    cost_per_token_usd: float = 0.00001

    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    log_level: str = "INFO"
    log_format: str = "console"

    def __post_init__(self) -> None:
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"VISION_PROVIDER must be one of {', '.join(SUPPORTED_PROVIDERS)}, "
                f"got {self.provider!r}"
            )
        if self.timeout_s <= 0:
            raise ValueError(f"Timeout must be positive, got {self.timeout_s}")
        if self.max_attempts < 1:
            raise ValueError(f"Max attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_s < 0:
            raise ValueError(f"Base delay must be >= 0, got {self.base_delay_s}")

    @property
    def api_key(self) -> Optional[str]:
        """Key of the selected provider."""
        if self.provider == "openai":
            return self.openai_api_key
        return self.gemini_api_key

    @property
    def model(self) -> str:
        if self.provider == "openai":
            return self.openai_model
        return self.gemini_model

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)

    def with_overrides(self, **changes: object) -> AnalysisSettings:
        return replace(self, **changes)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls) -> AnalysisSettings:
        """Build settings from environment variables."""
        defaults = cls()
        return cls(
            provider=(_env_str("VISION_PROVIDER", defaults.provider) or "").lower(),
            gemini_api_key=_env_str("GEMINI_API_KEY") or _env_str("EXPO_PUBLIC_GEMINI_API_KEY"),
            openai_api_key=_env_str("OPENAI_API_KEY"),
            gemini_model=_env_str("GEMINI_MODEL", defaults.gemini_model) or defaults.gemini_model,
            openai_model=(
                _env_str("OPENAI_VISION_MODEL", defaults.openai_model) or defaults.openai_model
            ),
            gemini_base_url=(
                _env_str("GEMINI_BASE_URL", defaults.gemini_base_url) or defaults.gemini_base_url
            ),
            openai_base_url=(
                _env_str("OPENAI_BASE_URL", defaults.openai_base_url) or defaults.openai_base_url
            ),
            timeout_s=_env_float("ANALYSIS_TIMEOUT_S", defaults.timeout_s),
            max_attempts=_env_int("ANALYSIS_MAX_ATTEMPTS", defaults.max_attempts),
            base_delay_s=_env_float("ANALYSIS_BASE_DELAY_S", defaults.base_delay_s),
            max_output_tokens=_env_int("ANALYSIS_MAX_OUTPUT_TOKENS", defaults.max_output_tokens),
            temperature=_env_float("ANALYSIS_TEMPERATURE", defaults.temperature),
            primary_language=(
                _env_str("ANALYSIS_PRIMARY_LANGUAGE", defaults.primary_language)
                or defaults.primary_language
            ),
            secondary_language=(
                _env_str("ANALYSIS_SECONDARY_LANGUAGE", defaults.secondary_language)
                or defaults.secondary_language
            ),
            free_daily_scan_limit=_env_int("FREE_DAILY_SCAN_LIMIT", defaults.free_daily_scan_limit),
            cost_per_token_usd=_env_float("COST_PER_TOKEN_USD", defaults.cost_per_token_usd),
            supabase_url=_env_str("SUPABASE_URL"),
            supabase_service_key=_env_str("SUPABASE_SERVICE_ROLE_KEY"),
            log_level=(_env_str("LOG_LEVEL", defaults.log_level) or defaults.log_level).upper(),
            log_format=(_env_str("LOG_FORMAT", defaults.log_format) or defaults.log_format).lower(),
        )
