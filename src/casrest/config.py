"""
casrest Configuration

Process-level settings for the CAS REST client and middleware.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

import attrs
import httpx
from attrs import field, validators

from casrest.protocol.client import RestClient
from casrest.protocol.types import URLScheme
from casrest.transport.http_transport import (
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    HTTPTransport,
)

DEFAULT_REALM = "CAS Protected Area"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@attrs.define
class CASConfig:
    """
    CAS REST configuration.

    Attributes:
        cas_url: CAS server base URL (e.g., "https://cas.example.com/cas")
        service_url: Service tickets are requested for; None means the
            middleware uses the URL of each incoming request
        timeout: Deadline in seconds applied to every CAS call
        verify_tls: Verify the CAS server certificate
        user_agent: User-Agent header sent to CAS
        realm: Basic Authentication realm in 401 challenges
        url_scheme: CAS endpoint paths
    """

    cas_url: str = field(validator=[validators.instance_of(str), validators.min_len(1)])
    service_url: Optional[str] = None
    timeout: float = field(default=DEFAULT_TIMEOUT, converter=float, validator=validators.gt(0))
    verify_tls: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    realm: str = field(default=DEFAULT_REALM, validator=validators.matches_re(r"[^\r\n]*"))
    url_scheme: URLScheme = attrs.Factory(URLScheme)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        prefix: str = "CAS_",
    ) -> "CASConfig":
        """
        Build configuration from environment variables.

        Reads {prefix}URL (required), {prefix}SERVICE_URL, {prefix}TIMEOUT,
        {prefix}VERIFY_TLS, {prefix}USER_AGENT and {prefix}REALM.

        Raises:
            ValueError: If {prefix}URL is missing or a value is malformed
        """
        if environ is None:
            environ = os.environ

        cas_url = environ.get(f"{prefix}URL", "").strip()
        if not cas_url:
            raise ValueError(f"{prefix}URL must be set")

        kwargs = {"cas_url": cas_url}
        if environ.get(f"{prefix}SERVICE_URL"):
            kwargs["service_url"] = environ[f"{prefix}SERVICE_URL"].strip()
        if environ.get(f"{prefix}TIMEOUT"):
            kwargs["timeout"] = float(environ[f"{prefix}TIMEOUT"])
        if environ.get(f"{prefix}VERIFY_TLS"):
            kwargs["verify_tls"] = _parse_bool(f"{prefix}VERIFY_TLS", environ[f"{prefix}VERIFY_TLS"])
        if environ.get(f"{prefix}USER_AGENT"):
            kwargs["user_agent"] = environ[f"{prefix}USER_AGENT"]
        if environ.get(f"{prefix}REALM"):
            kwargs["realm"] = environ[f"{prefix}REALM"]

        return cls(**kwargs)

    def create_transport(self, http_client: Optional[httpx.Client] = None) -> HTTPTransport:
        """Transport honoring timeout, TLS verification and User-Agent."""
        return HTTPTransport(
            timeout=self.timeout,
            verify_tls=self.verify_tls,
            user_agent=self.user_agent,
            client=http_client,
        )


def create_rest_client(
    config: CASConfig,
    http_client: Optional[httpx.Client] = None,
) -> RestClient:
    """
    Create a RestClient from configuration.

    Args:
        config: CAS configuration
        http_client: Preconfigured httpx.Client (custom CA bundle, proxies,
            test transport); created from the config when omitted

    Returns:
        Configured RestClient
    """
    return RestClient(
        cas_url=config.cas_url,
        service_url=config.service_url,
        transport=config.create_transport(http_client),
        url_scheme=config.url_scheme,
    )
