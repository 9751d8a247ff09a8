"""Classify page/response text as rate limit, blocked credential or clean."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

RATE_LIMIT_PHRASES: tuple[str, ...] = (
    "rate limit",
    "límite de tasa",
    "limite de tasa",
)
CREDENTIAL_BLOCKED_PHRASES: tuple[str, ...] = (
    "something went wrong",
    "algo salió mal",
    "algo salio mal",
)
END_OF_CONTENT_PHRASES: tuple[str, ...] = (
    "No results for",
    "End of timeline",
    "No more tweets",
    "Hmm...this page doesn't exist",
    "No more Tweets available",
    "You're up to date",
    "That's all for now",
    "No se encontraron",
    "Fin de la cronología",
    "No hay más tweets",
    "Parece que esta página no existe",
    "No hay más Tweets disponibles",
    "Estás al día",
    "Eso es todo por ahora",
)


class ErrorKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    CREDENTIAL_BLOCKED = "credential_blocked"
    NONE = "none"


@dataclass(frozen=True)
class Classification:
    kind: ErrorKind
    reason: str = ""

    @property
    def is_error(self) -> bool:
        return self.kind is not ErrorKind.NONE


CLEAN = Classification(ErrorKind.NONE)


def classify_text(text: str | None) -> Classification:
    """Return the first matching error kind; rate limits win over blocked credentials."""
    if not text:
        return CLEAN
    lowered = text.lower()
    for phrase in RATE_LIMIT_PHRASES:
        if phrase in lowered:
            return Classification(ErrorKind.RATE_LIMIT, reason=phrase)
    for phrase in CREDENTIAL_BLOCKED_PHRASES:
        if phrase in lowered:
            return Classification(ErrorKind.CREDENTIAL_BLOCKED, reason=phrase)
    return CLEAN


def matches_error_phrase(message: str | None) -> bool:
    return classify_text(message).is_error
