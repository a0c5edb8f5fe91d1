from __future__ import annotations


class ProviderError(Exception):
    """Base error for provider failures."""


class ConfigurationError(ProviderError):
    pass


class AuthenticationError(ProviderError):
    pass


class BillingLimitError(ProviderError):
    """Provider answered 402 Payment Required."""


class RateLimitError(ProviderError):
    def __init__(
        self,
        retry_after_seconds: int | None = None,
        message: str = "Rate limited",
        *,
        daily_quota: bool = False,
    ):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds
        self.daily_quota = daily_quota


class UpstreamStatusError(ProviderError):
    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(message or f"Upstream error {status_code}.")
        self.status_code = status_code


class UpstreamUnavailableError(UpstreamStatusError):
    """502/503 from the provider."""


class UpstreamConnectionError(ProviderError):
    """Transport failure or timeout before a response arrived."""


class UpstreamProtocolError(ProviderError):
    """Unexpected upstream response shape / contract mismatch."""


class EmptyCompletionError(UpstreamProtocolError):
    """Successful status but no usable text in the body."""
