"""HTTP and JSON-RPC provider wrapper with retry and error classification."""

import itertools
from typing import Any

import httpx

from portfolio_tracker.core.errors import (
    InvalidAddressError,
    ProviderError,
    RateLimitedError,
    UnavailableError,
    error_from_exception,
    error_from_response,
    is_rate_limit_message,
)
from portfolio_tracker.rpc.retry import RetryConfig, call_with_retry

# JSON-RPC error codes
_INVALID_PARAMS = -32602
_TRANSIENT_CODES = {-32000, -32603}


class HTTPProvider:
    """
    Thin wrapper over an httpx client for one upstream data provider.

    Every request is classified into the tracker error taxonomy and transient
    failures are retried with exponential backoff. Rate limits and invalid
    input are never retried.

    Parameters
    ----------
    provider : str
        Provider name used in error messages and logs
    timeout : float
        Request timeout in seconds
    retry_config : RetryConfig | None
        Retry configuration
    headers : dict[str, str] | None
        Default request headers
    client : httpx.Client | None
        Pre-built client (tests inject one with a mock transport)

    """

    def __init__(
        self,
        provider: str,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        headers: dict[str, str] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.provider = provider
        self.retry_config = retry_config or RetryConfig()
        self.client = client or httpx.Client(timeout=timeout, headers=headers)
        self._request_ids = itertools.count(1)

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request with retry logic and exponential backoff.

        Parameters
        ----------
        method : str
            HTTP method
        url : str
            Request URL
        **kwargs : Any
            Passed to ``httpx.Client.request``

        Returns
        -------
        httpx.Response
            Successful (2xx) response

        Raises
        ------
        ProviderError
            Classified failure after retries are exhausted

        """
        return call_with_retry(self._send, method, url, config=self.retry_config, **kwargs)

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise error_from_exception(self.provider, e) from e

        if response.is_error:
            raise error_from_response(self.provider, response)
        return response

    def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET a URL and decode its JSON body.

        Parameters
        ----------
        url : str
            Request URL
        params : dict[str, Any] | None
            Query parameters

        Returns
        -------
        Any
            Decoded JSON

        """
        return self.request_json("GET", url, params=params)

    def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """
        Send a request and decode its JSON body.

        Parameters
        ----------
        method : str
            HTTP method
        url : str
            Request URL
        **kwargs : Any
            Passed to ``httpx.Client.request``

        Returns
        -------
        Any
            Decoded JSON, None for an empty body

        """
        response = self.request(method, url, **kwargs)
        if not response.content:
            return None
        return self._decode(response)

    def rpc(self, url: str, method: str, params: list[Any] | dict[str, Any]) -> Any:
        """
        Make a JSON-RPC 2.0 call.

        Parameters
        ----------
        url : str
            RPC endpoint
        method : str
            RPC method name (e.g., 'eth_getBalance', 'getBalance')
        params : list[Any] | dict[str, Any]
            Method parameters

        Returns
        -------
        Any
            The 'result' member of the response

        Raises
        ------
        RateLimitedError
            If the provider reports a rate limit in the error body
        InvalidAddressError
            If the provider rejects the parameters
        ProviderError
            For any other RPC error

        """
        payload = {"jsonrpc": "2.0", "id": next(self._request_ids), "method": method, "params": params}
        return call_with_retry(self._rpc_once, url, method, payload, config=self.retry_config)

    def _rpc_once(self, url: str, method: str, payload: dict[str, Any]) -> Any:
        response = self._send("POST", url, json=payload)
        return self._rpc_result(method, self._decode(response))

    def _rpc_result(self, method: str, body: Any) -> Any:
        if not isinstance(body, dict):
            msg = f"Invalid JSON-RPC response from {self.provider} for {method}"
            raise ProviderError(msg, self.provider)

        error = body.get("error")
        if not error:
            return body.get("result")

        if isinstance(error, dict):
            code = error.get("code")
            message = str(error.get("message", ""))
        else:
            code = None
            message = str(error)

        if code == 429 or is_rate_limit_message(message):
            msg = f"Rate limit exceeded for {self.provider}. Please wait before refreshing again."
            raise RateLimitedError(msg, self.provider)
        if code == _INVALID_PARAMS:
            msg = f"Invalid address for {self.provider}: {message}"
            raise InvalidAddressError(msg)
        if code in _TRANSIENT_CODES:
            msg = f"{self.provider} RPC error on {method}: {message}"
            raise UnavailableError(msg, self.provider)
        msg = f"{self.provider} RPC error on {method}: {message}"
        raise ProviderError(msg, self.provider)

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            msg = f"Invalid JSON response from {self.provider}"
            raise ProviderError(msg, self.provider, response.status_code) from e

    def close(self) -> None:
        """Close HTTP client."""
        self.client.close()

    def __enter__(self) -> "HTTPProvider":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
