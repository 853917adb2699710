"""User-facing guidance for classified analysis failures."""

from __future__ import annotations

from enum import Enum
from typing import Dict

from calorieai.domain.errors import AnalysisError, ErrorKind


class UserGuidance(str, Enum):
    CHECK_CONNECTION = "check_connection"
    TRY_AGAIN_LATER = "try_again_later"
    RETAKE_PHOTO = "retake_photo"
    TRY_AGAIN = "try_again"
    UPGRADE_PLAN = "upgrade_plan"
    SIGN_IN = "sign_in"
    CONTACT_SUPPORT = "contact_support"


_BY_KIND: Dict[ErrorKind, UserGuidance] = {
    ErrorKind.TIMEOUT: UserGuidance.CHECK_CONNECTION,
    ErrorKind.NETWORK_ERROR: UserGuidance.CHECK_CONNECTION,
    ErrorKind.TRUNCATED: UserGuidance.TRY_AGAIN,
    ErrorKind.MALFORMED_RESPONSE: UserGuidance.TRY_AGAIN,
    ErrorKind.REJECTED: UserGuidance.RETAKE_PHOTO,
    ErrorKind.INVALID_SCHEMA: UserGuidance.RETAKE_PHOTO,
    ErrorKind.QUOTA_EXCEEDED: UserGuidance.UPGRADE_PLAN,
    ErrorKind.UNAUTHORIZED: UserGuidance.SIGN_IN,
    ErrorKind.MISSING_CREDENTIALS: UserGuidance.CONTACT_SUPPORT,
}

MESSAGES: Dict[str, Dict[UserGuidance, str]] = {
    "tr": {
        UserGuidance.CHECK_CONNECTION: "Bağlantınızı kontrol edip tekrar deneyin.",
        UserGuidance.TRY_AGAIN_LATER: "Servis şu anda yoğun. Birazdan tekrar deneyin.",
        UserGuidance.RETAKE_PHOTO: "Yemeği net gösteren yeni bir fotoğraf çekin.",
        UserGuidance.TRY_AGAIN: "Analiz tamamlanamadı. Lütfen tekrar deneyin.",
        UserGuidance.UPGRADE_PLAN: (
            "Günlük ücretsiz tarama limitinize ulaştınız. "
            "Premium'a geçerek sınırsız tarama yapabilirsiniz."
        ),
        UserGuidance.SIGN_IN: "Oturumunuz sona erdi. Lütfen tekrar giriş yapın.",
        UserGuidance.CONTACT_SUPPORT: "Analiz servisi yapılandırılmamış. Destek ile iletişime geçin.",
    },
    "en": {
        UserGuidance.CHECK_CONNECTION: "Check your connection and try again.",
        UserGuidance.TRY_AGAIN_LATER: "The service is busy. Try again in a moment.",
        UserGuidance.RETAKE_PHOTO: "Take a new photo that clearly shows the food.",
        UserGuidance.TRY_AGAIN: "The analysis could not be completed. Please try again.",
        UserGuidance.UPGRADE_PLAN: (
            "You reached your free daily scan limit. Upgrade to Premium for unlimited scans."
        ),
        UserGuidance.SIGN_IN: "Your session has expired. Please sign in again.",
        UserGuidance.CONTACT_SUPPORT: "The analysis service is not configured. Contact support.",
    },
}


def guidance_for(error: AnalysisError) -> UserGuidance:
    """
    Pick the action to suggest for a failed analysis.

    Provider errors depend on the status: 429 and 5xx are temporary,
    any other status points at our configuration.

    Example:
        >>> guidance_for(ProviderError("busy", status=503))
        <UserGuidance.TRY_AGAIN_LATER: 'try_again_later'>
    """
    if error.kind is ErrorKind.PROVIDER_ERROR:
        if error.retryable:
            return UserGuidance.TRY_AGAIN_LATER
        return UserGuidance.CONTACT_SUPPORT
    return _BY_KIND.get(error.kind, UserGuidance.TRY_AGAIN)


def guidance_message(guidance: UserGuidance, language: str = "tr") -> str:
    table = MESSAGES.get(language.lower(), MESSAGES["en"])
    return table[guidance]
