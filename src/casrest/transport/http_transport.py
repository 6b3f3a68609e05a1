"""
casrest HTTP Transport Layer

Blocking HTTP transport for CAS server communication.

Supports:
- Owned or injected httpx.Client (the latter carries custom TLS/proxy setup)
- One uniform timeout applied to every call
- Mapping of connection failures and timeouts to TransportError

Redirects are never followed: the ticket endpoint answers 201 with a
Location header that must be read, not fetched.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import attrs
import httpx
import structlog

from casrest.core.exceptions import TransportError

DEFAULT_USER_AGENT = "casrest (Python CAS REST client)"
DEFAULT_TIMEOUT = 10.0


def _loggable_url(url: str) -> str:
    """URL without its query string; validation queries carry tickets."""
    return url.split("?", 1)[0]


@attrs.define
class HTTPTransport:
    """
    HTTP transport used by every CAS exchange.

    Example:
        with HTTPTransport(timeout=5.0) as transport:
            response = transport.post_form(
                "https://cas.example.com/cas/v1/tickets",
                {"username": "jdoe", "password": "secret"},
            )
    """

    timeout: float = DEFAULT_TIMEOUT
    verify_tls: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    client: Optional[httpx.Client] = None

    _owns_client: bool = attrs.field(default=False, init=False)
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def __attrs_post_init__(self) -> None:
        if self.client is None:
            self.client = httpx.Client(
                timeout=self.timeout,
                verify=self.verify_tls,
                follow_redirects=False,
            )
            self._owns_client = True

    def get(self, url: str) -> httpx.Response:
        """Issue a GET request."""
        return self._request("GET", url)

    def post_form(self, url: str, data: Dict[str, str]) -> httpx.Response:
        """Issue a POST request with an application/x-www-form-urlencoded body."""
        return self._request("POST", url, data=data)

    def _request(
        self,
        method: str,
        url: str,
        data: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        self._logger.debug("cas_request_sent", method=method, url=_loggable_url(url))

        try:
            response = self.client.request(
                method,
                url,
                data=data,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
                follow_redirects=False,
            )
        except httpx.TimeoutException as e:
            self._logger.warning(
                "cas_request_timeout",
                method=method,
                url=_loggable_url(url),
                timeout=self.timeout,
            )
            raise TransportError(f"CAS timeout after {self.timeout}s: {method} {_loggable_url(url)}") from e
        except httpx.TransportError as e:
            self._logger.warning(
                "cas_request_failed",
                method=method,
                url=_loggable_url(url),
                error=str(e),
            )
            raise TransportError(f"CAS communication error: {e}") from e

        self._logger.info(
            "cas_request_returned",
            method=method,
            url=_loggable_url(url),
            status=response.status_code,
        )
        return response

    def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client and self.client is not None:
            self.client.close()
            self._logger.debug("cas_transport_closed")

    def __enter__(self) -> "HTTPTransport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
