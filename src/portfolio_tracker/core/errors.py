"""Error taxonomy shared by chain adapters, pricing and storage."""

import httpx


class PortfolioTrackerError(Exception):
    """Base exception for all tracker errors."""


class InvalidAddressError(PortfolioTrackerError, ValueError):
    """Address string failed validation for its chain."""


class AuthenticationError(PortfolioTrackerError):
    """Shared-password authentication failed or is not configured."""


class ProviderError(PortfolioTrackerError):
    """
    Upstream data provider failure.

    Parameters
    ----------
    message : str
        User-facing error text
    provider : str
        Provider name (e.g., 'mempool.space', 'CoinGecko')
    status_code : int | None
        HTTP status, when the provider answered

    """

    def __init__(self, message: str, provider: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class RateLimitedError(ProviderError):
    """Provider rejected the request for exceeding its rate limit."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, provider, status_code)
        self.retry_after = retry_after


class NotFoundError(ProviderError):
    """Provider does not know the requested address or rejected it as invalid."""


class UnavailableError(ProviderError):
    """Provider is down, timing out or answering with a server error."""


def _parse_retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def error_from_response(provider: str, response: httpx.Response) -> ProviderError:
    """
    Map an unsuccessful HTTP response to the error taxonomy.

    Parameters
    ----------
    provider : str
        Provider name used in messages
    response : httpx.Response
        Non-2xx response

    Returns
    -------
    ProviderError
        RateLimitedError, NotFoundError, UnavailableError or a generic ProviderError

    """
    status = response.status_code
    if status == 429:
        msg = f"Rate limit exceeded for {provider}. Please wait a moment before refreshing again."
        return RateLimitedError(msg, provider, status, retry_after=_parse_retry_after(response))
    if status in (400, 404, 422):
        msg = f"Address not found on {provider}. Please check the address format."
        return NotFoundError(msg, provider, status)
    if status >= 500:
        msg = f"{provider} service is temporarily unavailable. Please try again later."
        return UnavailableError(msg, provider, status)
    msg = f"Failed to fetch data from {provider} ({status})"
    return ProviderError(msg, provider, status)


def error_from_exception(provider: str, exc: httpx.HTTPError) -> ProviderError:
    """Map a transport-level httpx failure to the error taxonomy."""
    if isinstance(exc, httpx.TimeoutException):
        msg = f"Request to {provider} timed out. Please try again later."
        return UnavailableError(msg, provider)
    if isinstance(exc, httpx.HTTPStatusError):
        return error_from_response(provider, exc.response)
    msg = f"Network error while contacting {provider}. Please check your connection."
    return UnavailableError(msg, provider)


def is_rate_limit_message(message: str) -> bool:
    """Whether a provider error body describes a rate limit."""
    lowered = message.lower()
    return "rate limit" in lowered or "too many requests" in lowered or "compute units" in lowered


def is_retryable(exc: BaseException) -> bool:
    """Only transient upstream failures are retried."""
    return isinstance(exc, UnavailableError)


def describe_error(exc: BaseException) -> str:
    """
    User-facing text for an error.

    Rate limits and unavailable services read differently so the user knows
    whether to wait or to retry.

    Parameters
    ----------
    exc : BaseException
        Error raised by an adapter, pricing service or store

    Returns
    -------
    str
        Message to display

    """
    if isinstance(exc, RateLimitedError):
        text = str(exc) or "Rate limit exceeded. Please wait a moment before refreshing again."
        if exc.retry_after:
            text = f"{text} (retry in {exc.retry_after:.0f}s)"
        return text
    if isinstance(exc, UnavailableError):
        return str(exc) or "Service is temporarily unavailable. Please try again later."
    if isinstance(exc, PortfolioTrackerError):
        return str(exc)
    return f"Unexpected error: {exc}"
