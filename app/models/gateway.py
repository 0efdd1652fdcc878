"""Error taxonomy shared by the tip gateway, its proxy endpoint and its clients."""
from __future__ import annotations

from enum import Enum


class GatewayErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    RATE_LIMIT = "rate_limit"
    QUOTA = "quota"
    UPSTREAM = "upstream"
    FORMAT = "format"
    UNKNOWN = "unknown"

    @property
    def status_code(self) -> int:
        """HTTP status the proxy answers with for this kind of failure."""
        return _STATUS_CODES.get(self, 500)

    @classmethod
    def from_status(cls, status_code: int) -> "GatewayErrorKind":
        """Classify a non-success upstream HTTP status."""

        if status_code == 429:
            return cls.RATE_LIMIT
        if status_code in (402, 403):
            return cls.QUOTA
        return cls.UPSTREAM

    @classmethod
    def parse(cls, value: object, *, default: "GatewayErrorKind | None" = None) -> "GatewayErrorKind":
        try:
            return cls(value)
        except ValueError:
            return default or cls.UNKNOWN


_STATUS_CODES: dict[GatewayErrorKind, int] = {
    GatewayErrorKind.RATE_LIMIT: 429,
    GatewayErrorKind.QUOTA: 403,
}

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."
QUOTA_MESSAGE = "API key invalid or quota exceeded. Please check your Gemini API key."
FORMAT_MESSAGE = "Invalid response format from AI"


class GatewayError(RuntimeError):
    """Failure while producing tips, classified by ``kind``."""

    def __init__(self, kind: GatewayErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @classmethod
    def for_status(cls, status_code: int) -> "GatewayError":
        kind = GatewayErrorKind.from_status(status_code)
        if kind is GatewayErrorKind.RATE_LIMIT:
            return cls(kind, RATE_LIMIT_MESSAGE)
        if kind is GatewayErrorKind.QUOTA:
            return cls(kind, QUOTA_MESSAGE)
        return cls(kind, f"Gemini API error: {status_code}")

    @classmethod
    def invalid_format(cls, message: str = FORMAT_MESSAGE) -> "GatewayError":
        return cls(GatewayErrorKind.FORMAT, message)

    def as_dict(self) -> dict[str, str]:
        """Serialise the error for the proxy's JSON response body."""

        return {"error": self.message, "kind": self.kind.value}


__all__ = [
    "FORMAT_MESSAGE",
    "GatewayError",
    "GatewayErrorKind",
    "QUOTA_MESSAGE",
    "RATE_LIMIT_MESSAGE",
]
