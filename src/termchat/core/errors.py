from __future__ import annotations

class ProviderError(Exception):
    """Base class for upstream provider failures."""

class ProviderClientError(ProviderError):
    """
    Non-retryable: caller/config issue (4xx invalid request, auth, unknown model,
    unsupported parameter, etc.).
    """

class ProviderTransientError(ProviderError):
    """
    Transient: rate limits, timeouts, network hiccups, 5xx, etc.
    The relay never retries these; the category is kept for logging.
    """

class ProviderNotConfiguredError(ProviderError):
    """The requested provider has no credential configured."""

    def __init__(self, provider: str, display_name: str | None = None):
        self.provider = provider
        super().__init__(f"{display_name or provider} API key not configured")

class UnsupportedProviderError(ValueError):
    """Unknown provider tag. There is no fallback to a default provider."""

    def __init__(self, provider: object):
        self.provider = provider
        super().__init__(f"Unsupported provider: {provider}")


class RelayError(Exception):
    """Base class for failures seen by the caller side of the relay."""

class RelayResponseError(RelayError):
    """The relay answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"Relay request failed with status {status_code}: {message}")

class RelayTransportError(RelayError):
    """The relay could not be reached or the connection dropped before any text."""

class StreamTruncatedError(RelayError):
    """The response body ended abnormally after some text was delivered."""

    def __init__(self, partial: str, reason: str = ""):
        self.partial = partial
        msg = f"Response stream ended early after {len(partial)} characters"
        super().__init__(f"{msg}: {reason}" if reason else msg)


class SessionBusyError(RuntimeError):
    """A terminal already has a generation in flight."""


def classify_upstream_error(exc: Exception) -> ProviderError:
    """
    Convert SDK exceptions into neutral provider errors.
    Avoid hard dependency on specific SDK exception classes by inspecting attributes/message.
    """
    if isinstance(exc, ProviderError):
        return exc
    status = getattr(exc, "status_code", None) or getattr(exc, "http_status", None)
    msg = str(exc) or exc.__class__.__name__

    if status is not None:
        s = int(status)
        if s == 429 or s >= 500:
            return ProviderTransientError(msg)
        return ProviderClientError(msg)

    lower = msg.lower()
    if any(k in lower for k in ("rate limit", "temporarily unavailable", "timeout", "timed out", "connection")):
        return ProviderTransientError(msg)
    if any(k in lower for k in ("invalid_request_error", "unsupported", "parameter", "authentication")):
        return ProviderClientError(msg)
    return ProviderTransientError(msg)
