"""
Error classifier: buckets heterogeneous provider failures into ErrorKind.
"""

from .adapters.base import ProviderError, ProviderErrorKind
from .models import ErrorKind


class ErrorClassifier:
    """
    Maps a failure to a small taxonomy used for user messaging.

    Structured ProviderError kinds are trusted first; anything else falls
    back to matching the message text. Checks run in a fixed order
    (quota, network, auth), the first match wins.
    """

    QUOTA_PATTERNS: tuple[str, ...] = (
        "quota",
        "rate limit",
        "rate-limit",
        "ratelimit",
        "rate_limit",
        "exceeded",
        "too many requests",
    )
    NETWORK_PATTERNS: tuple[str, ...] = (
        "failed to fetch",
        "fetch failed",
        "network",
        "cors",
        "timed out",
        "timeout",
        "connection",
    )
    AUTH_PATTERNS: tuple[str, ...] = (
        "api key",
        "api_key",
        "apikey",
        "unauthorized",
        "authentication",
        "not configured",
        "invalid key",
    )

    STRUCTURED_KINDS: dict[ProviderErrorKind, ErrorKind] = {
        ProviderErrorKind.RATE_LIMITED: ErrorKind.QUOTA_RATE_LIMIT,
        ProviderErrorKind.UNAUTHORIZED: ErrorKind.AUTH_CONFIG,
        ProviderErrorKind.TRANSPORT_FAILURE: ErrorKind.NETWORK,
    }

    REMEDIATION: dict[ErrorKind, str] = {
        ErrorKind.LIMIT_REACHED: (
            "You have reached your monthly generation limit for this category. "
            "Wait for next month's reset or upgrade to premium for token-based access."
        ),
        ErrorKind.INSUFFICIENT_TOKENS: (
            "Your token balance is too low for this model. "
            "Purchase more tokens or choose a cheaper model."
        ),
        ErrorKind.QUOTA_RATE_LIMIT: (
            "The AI providers are rate limiting requests or have exhausted their quota. "
            "Please wait a moment and try again, or pick a different model."
        ),
        ErrorKind.NETWORK: (
            "The AI providers could not be reached. "
            "Please check your connection and try again."
        ),
        ErrorKind.AUTH_CONFIG: (
            "The AI service is not configured correctly (missing or invalid API key). "
            "Please contact support."
        ),
        ErrorKind.UNKNOWN: (
            "An unexpected error occurred. Please try again later or contact support."
        ),
    }

    def classify(self, error: str | BaseException | None) -> ErrorKind:
        """
        Classify a raw error message or exception.

        Args:
            error: Error message, ProviderError, or any exception

        Returns:
            ErrorKind bucket (never LIMIT_REACHED / INSUFFICIENT_TOKENS,
            which only the admission controller produces)
        """
        if isinstance(error, ProviderError):
            structured = self.STRUCTURED_KINDS.get(error.kind)
            if structured is not None:
                return structured
            return self.classify_message(error.message)
        if isinstance(error, BaseException):
            return self.classify_message(str(error))
        return self.classify_message(error or "")

    def classify_message(self, message: str) -> ErrorKind:
        text = message.lower()
        if any(pattern in text for pattern in self.QUOTA_PATTERNS):
            return ErrorKind.QUOTA_RATE_LIMIT
        if any(pattern in text for pattern in self.NETWORK_PATTERNS):
            return ErrorKind.NETWORK
        if any(pattern in text for pattern in self.AUTH_PATTERNS):
            return ErrorKind.AUTH_CONFIG
        return ErrorKind.UNKNOWN

    def remediation(self, kind: ErrorKind) -> str:
        """User-facing guidance for an error kind."""
        return self.REMEDIATION[kind]


_default_classifier = ErrorClassifier()


def classify(error: str | BaseException | None) -> ErrorKind:
    """Classify with the default classifier."""
    return _default_classifier.classify(error)
