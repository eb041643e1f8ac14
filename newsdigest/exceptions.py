"""Custom exception hierarchy for the newsletter digest."""


class NewsDigestError(Exception):
    """Base exception for all newsletter digest errors."""


class ConfigurationError(NewsDigestError):
    """Raised when a required setting (API key, recipient) is missing."""


class EmailFetchError(NewsDigestError):
    """Raised when querying Gmail for newsletters fails."""


class LLMAPIError(NewsDigestError):
    """Raised when the chat-completions endpoint fails or returns garbage."""


class DigestAssembleError(NewsDigestError):
    """Raised when digest entries violate the assembly contract."""


class DeliveryError(NewsDigestError):
    """Raised when sending the digest email fails."""
